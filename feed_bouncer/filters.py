"""
Tag filters for narrowing feed and item listings.
"""
from dataclasses import dataclass, field
from typing import List, Optional

VALID_TAG_CHARS = frozenset('abcdefghijklmnopqrstuvwxyz_')


def validate_tag(raw: str) -> Optional[str]:
    """
    Normalize a tag, rejecting anything outside lowercase letters and underscores.

    Args:
        raw: Tag as entered

    Returns:
        The trimmed tag, or None if it is empty or has invalid characters
    """
    tag = raw.strip()
    if not tag or any(c not in VALID_TAG_CHARS for c in tag):
        return None
    return tag


@dataclass
class TagFilter:
    """
    Parsed form of a filter string such as "news,!sport,=".

    `tag` requires the tag, `!tag` forbids it and `=` makes the filter exact:
    the required tags must then be every tag the feed has.
    """

    required: List[str] = field(default_factory=list)
    forbidden: List[str] = field(default_factory=list)
    exact: bool = False
    raw: str = ''

    @classmethod
    def parse(cls, raw: Optional[str]) -> 'TagFilter':
        raw = raw or ''
        result = cls(raw=raw)

        for token in raw.split(','):
            token = token.strip()
            if token == '=':
                result.exact = True
                continue

            target = result.required
            if token.startswith('!'):
                token = token[1:]
                target = result.forbidden

            tag = validate_tag(token)
            if tag is None:
                continue
            target.append(tag)

        return result

    def matches(self, feed) -> bool:
        if any(not feed.contains_tag(tag) for tag in self.required):
            return False
        if any(feed.contains_tag(tag) for tag in self.forbidden):
            return False
        return not self.exact or len(self.required) == len(feed.tags)

    def is_empty(self) -> bool:
        return not self.required and not self.forbidden and not self.exact
