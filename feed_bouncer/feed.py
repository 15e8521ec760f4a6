"""
The Feed aggregate: one subscribed source and every item ever seen from it.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Set

from feed_bouncer.feed_items import (
    FeedHeader,
    FeedItem,
    HeaderMeta,
    ItemKey,
    ItemMeta,
    header_from_dict,
    item_from_dict,
    sort_items,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2


class LookupKey(NamedTuple):
    """The (name, source url) pair a feed is identified by."""

    name: str
    feed_url: Optional[str]


@dataclass
class Feed:
    """
    Aggregate persisted as one JSON document per feed.

    Items and headers carry a sequence id taken from a persisted counter, so ids
    survive restarts and are never handed out twice.
    """

    name: str
    feed_url: Optional[str] = None
    opml: Optional[Dict[str, Any]] = None
    parent: Optional[str] = None
    tags: Set[str] = field(default_factory=set)
    title_aliases: Set[str] = field(default_factory=set)
    display_name: Optional[str] = None

    feed_headers: List[HeaderMeta] = field(default_factory=list)
    headers_counter: int = 0
    items: List[ItemMeta] = field(default_factory=list)
    items_counter: int = 0

    # Unkeyed lists from documents written before sequence ids existed
    legacy_headers: List[FeedHeader] = field(default_factory=list, repr=False)
    legacy_items: List[FeedItem] = field(default_factory=list, repr=False)

    def effective_display_name(self) -> str:
        return (self.display_name or self.name).strip()

    def original_display_name(self) -> str:
        return self.name.strip()

    def key(self) -> LookupKey:
        return LookupKey(self.name, self.feed_url)

    def titles(self) -> Iterator[str]:
        """The source's own title followed by every alias."""
        yield self.name
        yield from sorted(self.title_aliases)

    # Tags

    def extend_tags(self, tags: Iterable[str]) -> bool:
        """Add tags; returns True if any of them was new."""
        added = False
        for tag in tags:
            if tag not in self.tags:
                self.tags.add(tag)
                added = True
        return added

    def contains_tag(self, tag: str) -> bool:
        return tag in self.tags

    def remove_tag(self, tag: str) -> bool:
        if tag in self.tags:
            self.tags.remove(tag)
            return True
        return False

    # Aliases

    def title_alias_insert(self, name: str) -> bool:
        alias = name.strip()
        if alias in self.title_aliases:
            return False
        self.title_aliases.add(alias)
        return True

    def title_alias_remove(self, name: str) -> bool:
        alias = name.strip()
        if alias in self.title_aliases:
            self.title_aliases.remove(alias)
            return True
        logger.info(f"Did not remove alias {alias!r} from [{self.name}], not found among {sorted(self.title_aliases)}")
        return False

    def set_display_name(self, name: str) -> None:
        self.display_name = name

    # Headers and items

    def migrate_data(self) -> None:
        """
        Move legacy unkeyed headers/items into the id-stamped lists.

        Safe to call more than once: already migrated entries are left alone.
        """
        if not self.legacy_headers and not self.legacy_items:
            return

        migrated_headers = len(self.legacy_headers)
        migrated_items = len(self.legacy_items)

        for header in self.legacy_headers:
            self.push_feed_header(header)
        self.legacy_headers = []

        for item in self.legacy_items:
            self.push_item(item)
        self.legacy_items = []
        self.sort_items()

        logger.info(f"Migrated [{self.name}]: {migrated_headers} headers, {migrated_items} items")

    def contains_feed_header(self, header: FeedHeader) -> bool:
        return any(meta.header == header for meta in self.feed_headers)

    def push_feed_header(self, header: FeedHeader) -> HeaderMeta:
        meta = HeaderMeta(self.headers_counter, header)
        self.feed_headers.append(meta)
        self.headers_counter += 1
        return meta

    def push_item(self, item: FeedItem) -> ItemMeta:
        """Append without re-sorting; callers finish with sort_items()."""
        meta = ItemMeta(self.items_counter, item)
        self.items.append(meta)
        self.items_counter += 1
        return meta

    def extend_items(self, items: Iterable[FeedItem]) -> List[ItemMeta]:
        added = [self.push_item(item) for item in items]
        self.sort_items()
        return added

    def sort_items(self) -> None:
        sort_items(self.items, key=lambda meta: meta.item)

    def item_keys(self) -> Set[ItemKey]:
        return {meta.key() for meta in self.items}

    def find_item(self, item_id: int) -> Optional[ItemMeta]:
        for meta in self.items:
            if meta.id == item_id:
                return meta
        return None

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        return {
            'schema_version': SCHEMA_VERSION,
            'name': self.name,
            'display_name': self.display_name,
            'title_aliases': sorted(self.title_aliases),
            'feed_url': self.feed_url,
            'opml': self.opml,
            'parent': self.parent,
            'tags': sorted(self.tags),
            'feed_headers_v2': [meta.to_dict() for meta in self.feed_headers],
            'feed_headers_counter': self.headers_counter,
            'items_v2': [meta.to_dict() for meta in self.items],
            'items_counter': self.items_counter,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Feed':
        """
        Build a feed from its stored document.

        Raises:
            KeyError, ValueError, TypeError: If the document is malformed.
        """
        feed = cls(
            name=data['name'],
            feed_url=data.get('feed_url'),
            opml=data.get('opml'),
            parent=data.get('parent'),
            tags=set(data.get('tags') or []),
            title_aliases=set(data.get('title_aliases') or []),
            display_name=data.get('display_name'),
        )
        feed.feed_headers = [HeaderMeta.from_dict(h) for h in data.get('feed_headers_v2') or []]
        feed.items = [ItemMeta.from_dict(i) for i in data.get('items_v2') or []]

        # Counters must stay ahead of every id in use, even in hand-edited documents
        feed.headers_counter = max(
            int(data.get('feed_headers_counter') or 0),
            max((h.id + 1 for h in feed.feed_headers), default=0),
        )
        feed.items_counter = max(
            int(data.get('items_counter') or 0),
            max((i.id + 1 for i in feed.items), default=0),
        )

        feed.legacy_headers = [header_from_dict(h) for h in data.get('feed_headers') or []]
        feed.legacy_items = [item_from_dict(i) for i in data.get('feeds') or []]
        return feed
