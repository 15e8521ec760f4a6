"""
Canonical feed headers and items.

A header or item is one of two variants: the RSS variant, holding the RSS 2.0
channel/item fields as reported by the source, or the generic variant, used for
Atom, RDF and JSON feeds. The set of variants is closed; the accessors below
dispatch on it exhaustively.
"""
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar, Union

from feed_bouncer.utils.helpers import OLD_DATE, parse_generic_date, parse_rfc2822_date

T = TypeVar('T')

KIND_RSS = 'rss'
KIND_GENERIC = 'generic'

# (title, raw date string) as reported by the source
ItemKey = Tuple[Optional[str], Optional[str]]


@dataclass
class RssChannelHeader:
    """Channel-level fields of an RSS 2.0 feed."""

    title: str = ''
    link: str = ''
    description: str = ''
    language: Optional[str] = None
    copyright: Optional[str] = None
    managing_editor: Optional[str] = None
    webmaster: Optional[str] = None
    pub_date: Optional[str] = None
    last_build_date: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    generator: Optional[str] = None
    docs: Optional[str] = None
    ttl: Optional[str] = None
    image: Optional[Dict[str, Any]] = None


@dataclass
class GenericFeedHeader:
    """Feed-level fields of an Atom, RDF or JSON feed."""

    feed_type: str = ''
    id: Optional[str] = None
    title: Optional[str] = None
    updated: Optional[str] = None
    authors: List[Dict[str, Any]] = field(default_factory=list)
    description: Optional[str] = None
    links: List[Dict[str, Any]] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    generator: Optional[str] = None
    icon: Optional[str] = None
    language: Optional[str] = None
    logo: Optional[str] = None
    published: Optional[str] = None
    rights: Optional[str] = None


@dataclass
class RssItem:
    """One <item> of an RSS 2.0 channel."""

    title: Optional[str] = None
    link: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    comments: Optional[str] = None
    enclosure: Optional[Dict[str, Any]] = None
    guid: Optional[str] = None
    pub_date: Optional[str] = None
    content: Optional[str] = None


@dataclass
class GenericEntry:
    """One entry of an Atom, RDF or JSON feed."""

    id: Optional[str] = None
    title: Optional[str] = None
    links: List[Dict[str, Any]] = field(default_factory=list)
    summary: Optional[str] = None
    content: Optional[str] = None
    authors: List[Dict[str, Any]] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    published: Optional[str] = None
    updated: Optional[str] = None


FeedHeader = Union[RssChannelHeader, GenericFeedHeader]
FeedItem = Union[RssItem, GenericEntry]

_HEADER_KINDS = {KIND_RSS: RssChannelHeader, KIND_GENERIC: GenericFeedHeader}
_ITEM_KINDS = {KIND_RSS: RssItem, KIND_GENERIC: GenericEntry}


def _kind_of(value: Any) -> str:
    if isinstance(value, (RssItem, RssChannelHeader)):
        return KIND_RSS
    if isinstance(value, (GenericEntry, GenericFeedHeader)):
        return KIND_GENERIC
    raise TypeError(f"Not a feed header or item: {type(value).__name__}")


def _to_dict(value: Any) -> Dict[str, Any]:
    data = {'kind': _kind_of(value)}
    data.update(dataclasses.asdict(value))
    return data


def _from_dict(data: Dict[str, Any], kinds: Dict[str, type]) -> Any:
    kind = data.get('kind')
    cls = kinds.get(kind)
    if cls is None:
        raise ValueError(f"Unknown variant kind: {kind!r}")
    names = {f.name for f in dataclasses.fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


def header_to_dict(header: FeedHeader) -> Dict[str, Any]:
    return _to_dict(header)


def header_from_dict(data: Dict[str, Any]) -> FeedHeader:
    return _from_dict(data, _HEADER_KINDS)


def item_to_dict(item: FeedItem) -> Dict[str, Any]:
    return _to_dict(item)


def item_from_dict(data: Dict[str, Any]) -> FeedItem:
    return _from_dict(data, _ITEM_KINDS)


def header_title(header: FeedHeader) -> str:
    if isinstance(header, RssChannelHeader):
        return header.title
    if isinstance(header, GenericFeedHeader):
        return header.title or ''
    raise TypeError(f"Not a feed header: {type(header).__name__}")


def item_display_title(item: FeedItem) -> Optional[str]:
    if isinstance(item, (RssItem, GenericEntry)):
        return item.title.strip() if item.title is not None else None
    raise TypeError(f"Not a feed item: {type(item).__name__}")


def item_raw_date(item: FeedItem) -> Optional[str]:
    """Date string exactly as the source reported it."""
    if isinstance(item, RssItem):
        return item.pub_date
    if isinstance(item, GenericEntry):
        return item.published or item.updated
    raise TypeError(f"Not a feed item: {type(item).__name__}")


def item_publish_date(item: FeedItem) -> Optional[datetime]:
    if isinstance(item, RssItem):
        return parse_rfc2822_date(item.pub_date)
    if isinstance(item, GenericEntry):
        return parse_generic_date(item.published or item.updated)
    raise TypeError(f"Not a feed item: {type(item).__name__}")


def item_publish_date_or_old(item: FeedItem) -> datetime:
    return item_publish_date(item) or OLD_DATE


def item_content_link(item: FeedItem) -> Optional[str]:
    if isinstance(item, RssItem):
        return item.link
    if isinstance(item, GenericEntry):
        return item.links[0].get('href') if item.links else None
    raise TypeError(f"Not a feed item: {type(item).__name__}")


def item_key(item: FeedItem) -> ItemKey:
    """
    Identity key used to decide whether an item was already stored.

    Keys on the raw title and date strings, so a source that reformats the date
    of an unchanged item produces a second copy.
    """
    if isinstance(item, (RssItem, GenericEntry)):
        return (item.title, item_raw_date(item))
    raise TypeError(f"Not a feed item: {type(item).__name__}")


def sort_items(items: List[T], key: Callable[[T], FeedItem] = lambda v: v) -> None:
    """
    Sort in place by effective publish date, oldest first.

    The sort is stable, so items with equal dates keep their relative order.
    """
    items.sort(key=lambda v: item_publish_date_or_old(key(v)))


def _strip_prefix(title: str, prefix: str) -> str:
    title = title.strip()
    if title.startswith(prefix):
        title = title[len(prefix):]
    title = title.strip()
    for separator in ('-', ':'):
        if title.startswith(separator):
            title = title[len(separator):]
        title = title.strip()
    return title


def strip_title_prefixes(title: str, prefixes: Iterable[str]) -> str:
    """
    Remove feed-name prefixes such as "Feed Name: " from an item title.

    Args:
        title: Raw item title
        prefixes: Feed name and aliases

    Returns:
        The title with each prefix (longest first) and a following separator removed
    """
    candidates = sorted((p.strip() for p in prefixes), key=len, reverse=True)
    for prefix in candidates:
        title = _strip_prefix(title, prefix)
    return title


@dataclass
class HeaderMeta:
    """A stored header with its per-feed sequence id."""

    id: int
    header: FeedHeader

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'header': header_to_dict(self.header)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HeaderMeta':
        return cls(id=int(data['id']), header=header_from_dict(data['header']))


@dataclass
class ItemMeta:
    """A stored item with its per-feed sequence id."""

    id: int
    item: FeedItem

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'item': item_to_dict(self.item)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ItemMeta':
        return cls(id=int(data['id']), item=item_from_dict(data['item']))

    def publish_date_or_old(self) -> datetime:
        return item_publish_date_or_old(self.item)

    def display_title(self) -> Optional[str]:
        return item_display_title(self.item)

    def display_title_without_prefixes(self, feed) -> Optional[str]:
        title = self.display_title()
        if title is None:
            return None
        return strip_title_prefixes(title, feed.titles())

    def content_link(self) -> Optional[str]:
        return item_content_link(self.item)

    def key(self) -> ItemKey:
        return item_key(self.item)
