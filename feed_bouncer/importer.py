"""
Declarative source import from <storage>/import.json.

    {
      "sources": [
        {"type": "rss", "url": "https://example.com/feed.xml", "tags": ["news"]},
        {"type": "opml", "path": "subscriptions.opml", "ignore": true}
      ]
    }

Entries that were imported are flagged `"ignore": true` and the file is rewritten,
so each entry is processed once.
"""
import json
import logging
import os
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from feed_bouncer.exceptions import FetchError
from feed_bouncer.feed import Feed
from feed_bouncer.opml_utils import OpmlOutline, parse_opml
from feed_bouncer.utils.helpers import safe_save_json, validate_url

logger = logging.getLogger(__name__)

IMPORT_FILE = 'import.json'


class SourceImporter:
    """
    Adds sources to a Database from an import list, a single url or an OPML file.
    """

    def __init__(self, db, fetcher):
        """
        Args:
            db: Database to insert into
            fetcher: FeedFetcher used to look up the title of new rss sources
        """
        self.db = db
        self.fetcher = fetcher
        self.import_path = os.path.join(db.storage_path, IMPORT_FILE)

    def run_import(self) -> Dict[str, int]:
        """
        Process every non-ignored entry of import.json.

        A missing file is not an error. An unreadable file is logged and left alone.

        Returns:
            Dictionary with counts of imported, skipped and failed entries
        """
        stats = {'imported': 0, 'skipped': 0, 'failed': 0}

        if not os.path.exists(self.import_path):
            logger.debug(f"No import file at {self.import_path}")
            return stats

        try:
            with open(self.import_path, 'r', encoding='utf-8') as f:
                document = json.load(f)
            sources = document['sources']
            if not isinstance(sources, list):
                raise TypeError("'sources' must be a list")
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.error(f"Error when importing from {self.import_path}: {e!r}")
            return stats

        logger.info(f"Importing {len(sources)} entries from {self.import_path}")

        for entry in sources:
            if not isinstance(entry, dict):
                logger.warning(f"Skipping malformed import entry: {entry!r}")
                stats['failed'] += 1
                continue

            if entry.get('ignore', False):
                logger.debug(f"  skip {entry.get('url') or entry.get('path')}")
                stats['skipped'] += 1
                continue

            if self._import_entry(entry):
                entry['ignore'] = True
                stats['imported'] += 1
            else:
                stats['failed'] += 1

        if stats['imported']:
            safe_save_json(document, self.import_path, 'import', True)

        logger.info(
            f"Import finished: {stats['imported']} imported, {stats['skipped']} skipped, {stats['failed']} failed"
        )
        return stats

    def _import_entry(self, entry: Dict) -> bool:
        kind = entry.get('type')
        tags = [str(tag) for tag in entry.get('tags') or []]

        if kind == 'rss' and entry.get('url'):
            logger.info(f"  add {entry['url']}")
            return bool(self.import_from_rss(entry['url'], tags))

        if kind == 'opml' and entry.get('path'):
            logger.info(f"  add {entry['path']}")
            path = os.path.join(self.db.storage_path, entry['path'])
            return self.import_from_opml(path, tags) is not None

        logger.warning(f"Skipping import entry with unknown type or missing location: {entry!r}")
        return False

    def import_from_rss(self, url: str, tags: List[str]) -> List[str]:
        """
        Add a feed by its source url.

        If the url is already known, the tags are added to every feed using it.
        Otherwise the source is fetched once to learn its title.

        Args:
            url: Feed url
            tags: Tags to give the feed

        Returns:
            Ids of the feeds that were added or tagged; empty if the fetch failed
        """
        if not validate_url(url):
            logger.warning(f"Skipping import of invalid url: {url!r}")
            return []

        with self.db.write_locked():
            known = self.db.lookup.check_url(url)
            for feed_id in known:
                self.db.get_mut(feed_id).extend_tags(tags)
        if known:
            logger.debug(f"{url} already known as {sorted(known)}")
            return sorted(known)

        try:
            parsed = self.fetcher.download(url)
        except FetchError as e:
            logger.warning(f"Could not import {url}: {e}")
            return []

        if parsed is None:
            logger.warning(f"Could not import {url}: not a recognized feed")
            return []

        feed = Feed(name=parsed.title, feed_url=url, tags=set(tags))
        return [self.db.insert(feed)]

    def import_from_opml(self, path: str, tags: List[str]) -> Optional[List[str]]:
        """
        Add one feed per outline of an OPML file, nested outlines pointing at their parent.

        Returns:
            Ids of the inserted feeds, or None if the file could not be read
        """
        try:
            outlines = parse_opml(path)
        except (OSError, ET.ParseError, ValueError) as e:
            logger.error(f"Could not import OPML file {path}: {e}")
            return None

        inserted: List[str] = []
        for outline in outlines:
            self._add_outline(outline, None, tags, inserted)

        logger.info(f"Imported {len(inserted)} outlines from {path}")
        return inserted

    def _add_outline(self, outline: OpmlOutline, parent: Optional[str], tags: List[str],
                     inserted: List[str]) -> None:
        feed = Feed(
            name=outline.name,
            feed_url=outline.xml_url,
            opml=dict(outline.attributes),
            parent=parent,
            tags=set(tags),
        )
        feed_id = self.db.insert(feed)
        inserted.append(feed_id)

        for child in outline.children:
            self._add_outline(child, feed_id, tags, inserted)
