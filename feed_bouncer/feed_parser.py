"""
Feed parser module for normalizing fetched feed documents.
Turns RSS 2.0, Atom, RDF and JSON feed bodies into canonical headers and items.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import feedparser

from feed_bouncer.feed_items import (
    FeedHeader,
    FeedItem,
    GenericEntry,
    GenericFeedHeader,
    RssChannelHeader,
    RssItem,
    header_title,
    sort_items,
)

logger = logging.getLogger(__name__)

# RDF-based RSS 0.90/1.0 documents are not RSS 2.0 channels
_RDF_VERSIONS = {'rss090', 'rss10'}

JSON_FEED_VERSION_PREFIX = 'https://jsonfeed.org/version/'


@dataclass
class ParsedFeed:
    """A parsed feed document: one header and its items, oldest first."""

    header: FeedHeader
    items: List[FeedItem] = field(default_factory=list)

    @property
    def title(self) -> str:
        return header_title(self.header)

    def split_header(self) -> Tuple[FeedHeader, List[FeedItem]]:
        return self.header, self.items


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _terms(tags: Any) -> List[str]:
    terms = []
    for tag in tags or []:
        term = tag.get('term') if hasattr(tag, 'get') else None
        if term:
            terms.append(term)
    return terms


def _plain(value: Any) -> Any:
    """Convert feedparser's dict subclasses into plain JSON-friendly values."""
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _json_feed_authors(obj: Dict[str, Any]) -> List[Dict[str, Any]]:
    # JSON Feed 1.0 has a single `author`, 1.1 an `authors` list
    authors = obj.get('authors')
    if authors is None and obj.get('author'):
        authors = [obj['author']]
    return [_plain(author) for author in authors or [] if isinstance(author, dict)]


class FeedParser:
    """
    Parses fetched feed bodies and extracts headers and items.
    """

    def __init__(self):
        """Initialize the feed parser."""
        logger.debug("FeedParser initialized")

    def parse(self, body: bytes, url: str) -> Optional[ParsedFeed]:
        """
        Parse a fetched document.

        RSS 2.0 is tried first; any other format feedparser recognizes is read
        as a generic feed. JSON Feed documents, which feedparser does not read,
        are decoded directly.

        Args:
            body: Raw response body
            url: URL the body came from

        Returns:
            ParsedFeed with items sorted oldest first, or None if the body is not a feed
        """
        document = feedparser.parse(body, response_headers={'content-location': url})

        parsed = self._as_rss(document)
        if parsed is None:
            parsed = self._as_generic(document)
        if parsed is None and not document.get('version'):
            parsed = self._as_json_feed(body)
        if parsed is None:
            logger.warning(f"Could not parse feed from {url}")
            return None

        sort_items(parsed.items)
        logger.debug(f"Parsed {len(parsed.items)} items from {url}")
        return parsed

    def _as_rss(self, document) -> Optional[ParsedFeed]:
        version = document.get('version', '')
        if not version.startswith('rss') or version in _RDF_VERSIONS:
            return None

        header = self._extract_channel_header(document.feed)
        items = [self._extract_rss_item(entry) for entry in document.entries]
        return ParsedFeed(header=header, items=items)

    def _as_generic(self, document) -> Optional[ParsedFeed]:
        version = document.get('version', '')
        if not version:
            return None

        header = self._extract_generic_header(document.feed, version)
        items = [self._extract_generic_entry(entry) for entry in document.entries]
        return ParsedFeed(header=header, items=items)

    def _as_json_feed(self, body: bytes) -> Optional[ParsedFeed]:
        """
        Read a JSON Feed (https://jsonfeed.org) document.

        Args:
            body: Raw response body

        Returns:
            ParsedFeed, or None if the body is not JSON Feed
        """
        if not body.lstrip().startswith(b'{'):
            return None

        try:
            document = json.loads(body.decode('utf-8-sig'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Body is not valid JSON: {e}")
            return None

        if not isinstance(document, dict):
            return None
        version = document.get('version')
        if not isinstance(version, str) or not version.startswith(JSON_FEED_VERSION_PREFIX):
            return None

        header = self._extract_json_feed_header(document)
        items = [
            self._extract_json_feed_item(item)
            for item in document.get('items') or []
            if isinstance(item, dict)
        ]
        return ParsedFeed(header=header, items=items)

    def _extract_json_feed_header(self, document: Dict[str, Any]) -> GenericFeedHeader:
        links = []
        if document.get('home_page_url'):
            links.append({'href': document['home_page_url'], 'rel': 'alternate'})
        if document.get('feed_url'):
            links.append({'href': document['feed_url'], 'rel': 'self'})

        return GenericFeedHeader(
            feed_type='json' + document['version'][len(JSON_FEED_VERSION_PREFIX):].replace('.', ''),
            id=_text(document.get('feed_url')),
            title=_text(document.get('title')),
            authors=_json_feed_authors(document),
            description=_text(document.get('description')),
            links=links,
            icon=_text(document.get('favicon')),
            language=_text(document.get('language')),
            logo=_text(document.get('icon')),
        )

    def _extract_json_feed_item(self, item: Dict[str, Any]) -> GenericEntry:
        links = []
        if item.get('url'):
            links.append({'href': item['url'], 'rel': 'alternate'})
        if item.get('external_url'):
            links.append({'href': item['external_url'], 'rel': 'related'})

        return GenericEntry(
            id=_text(item.get('id')),
            title=_text(item.get('title')),
            links=links,
            summary=_text(item.get('summary')),
            content=_text(item.get('content_html') or item.get('content_text')),
            authors=_json_feed_authors(item),
            categories=[str(tag) for tag in item.get('tags') or []],
            published=_text(item.get('date_published')),
            updated=_text(item.get('date_modified')),
        )

    def _extract_channel_header(self, channel) -> RssChannelHeader:
        """
        Extract channel fields from a feedparser RSS document.

        Args:
            channel: The `feed` part of a feedparser result

        Returns:
            RssChannelHeader
        """
        image = channel.get('image')
        return RssChannelHeader(
            title=channel.get('title', ''),
            link=channel.get('link', ''),
            description=channel.get('subtitle', channel.get('description', '')),
            language=_text(channel.get('language')),
            copyright=_text(channel.get('rights')),
            managing_editor=_text(channel.get('author')),
            webmaster=_text(channel.get('publisher')),
            pub_date=_text(channel.get('published')),
            last_build_date=_text(channel.get('updated')),
            categories=_terms(channel.get('tags')),
            generator=_text(channel.get('generator')),
            docs=_text(channel.get('docs')),
            ttl=_text(channel.get('ttl')),
            image=_plain(image) if image else None,
        )

    def _extract_rss_item(self, entry) -> RssItem:
        """
        Extract relevant data from an RSS entry.

        Args:
            entry: Feed entry from feedparser

        Returns:
            RssItem holding the values as the source reported them
        """
        content = None
        if entry.get('content'):
            content = entry.content[0].get('value')

        enclosure = None
        for link in entry.get('links', []):
            if link.get('rel') == 'enclosure':
                enclosure = _plain(link)
                break

        return RssItem(
            title=_text(entry.get('title')),
            link=_text(entry.get('link')),
            description=_text(entry.get('summary')),
            author=_text(entry.get('author')),
            categories=_terms(entry.get('tags')),
            comments=_text(entry.get('comments')),
            enclosure=enclosure,
            guid=_text(entry.get('id')),
            pub_date=_text(entry.get('published')),
            content=content,
        )

    def _extract_generic_header(self, feed, version: str) -> GenericFeedHeader:
        icon = feed.get('icon')
        logo = feed.get('logo') or (feed.get('image') or {}).get('href')
        return GenericFeedHeader(
            feed_type=version,
            id=_text(feed.get('id')),
            title=_text(feed.get('title')),
            updated=_text(feed.get('updated')),
            authors=_plain(feed.get('authors', [])),
            description=_text(feed.get('subtitle')),
            links=_plain(feed.get('links', [])),
            categories=_terms(feed.get('tags')),
            generator=_text(feed.get('generator')),
            icon=_text(icon),
            language=_text(feed.get('language')),
            logo=_text(logo),
            published=_text(feed.get('published')),
            rights=_text(feed.get('rights')),
        )

    def _extract_generic_entry(self, entry) -> GenericEntry:
        content = None
        if entry.get('content'):
            content = entry.content[0].get('value')

        links = _plain(entry.get('links', []))
        if not links and entry.get('link'):
            links = [{'href': entry.get('link')}]

        return GenericEntry(
            id=_text(entry.get('id')),
            title=_text(entry.get('title')),
            links=links,
            summary=_text(entry.get('summary')),
            content=content,
            authors=_plain(entry.get('authors', [])),
            categories=_terms(entry.get('tags')),
            published=_text(entry.get('published')),
            updated=_text(entry.get('updated')),
        )
