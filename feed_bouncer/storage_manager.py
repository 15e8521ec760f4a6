"""
Storage Manager module for the per-feed JSON documents.
"""
import copy
import json
import logging
import os
from typing import Dict, Iterator, Optional, Tuple

from feed_bouncer.exceptions import StorageCorruptError
from feed_bouncer.feed import Feed
from feed_bouncer.lookup import SourceLookup
from feed_bouncer.utils.helpers import safe_save_json

logger = logging.getLogger(__name__)


class FeedStore:
    """
    Keyed collection of Feed aggregates, one JSON document per feed.
    """

    def __init__(self, base_dir: str, sources: Optional[Dict[str, Feed]] = None):
        """
        Initialize the store.

        Args:
            base_dir: Storage root; documents live in <base_dir>/feeds
            sources: Feeds already loaded, keyed by feed id
        """
        self.base_dir = base_dir
        self.feeds_dir = os.path.join(base_dir, 'feeds')
        self.sources: Dict[str, Feed] = dict(sources or {})

        logger.debug(f"FeedStore initialized with feeds directory: {self.feeds_dir}")

    @classmethod
    def open(cls, base_dir: str) -> 'FeedStore':
        """
        Load every feed document under the storage root.

        A missing feeds directory yields an empty store.

        Args:
            base_dir: Storage root

        Returns:
            FeedStore with all documents loaded and migrated

        Raises:
            StorageCorruptError: If a document cannot be read or parsed.
        """
        store = cls(base_dir)

        if not os.path.isdir(store.feeds_dir):
            logger.info(f"No feeds directory at {store.feeds_dir}, starting empty")
            return store

        for filename in sorted(os.listdir(store.feeds_dir)):
            if not filename.endswith('.json'):
                continue

            feed_id = filename[:-len('.json')]
            file_path = os.path.join(store.feeds_dir, filename)
            store.sources[feed_id] = cls._load_feed(file_path)

        for feed in store.sources.values():
            feed.migrate_data()

        logger.info(f"Loaded {len(store.sources)} feeds from {store.feeds_dir}")
        return store

    @staticmethod
    def _load_feed(file_path: str) -> Feed:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            raise StorageCorruptError(file_path, f"could not be read: {e}") from e
        except json.JSONDecodeError as e:
            raise StorageCorruptError(file_path, f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise StorageCorruptError(file_path, "expected a JSON object")

        try:
            return Feed.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            raise StorageCorruptError(file_path, f"could not be parsed: {e!r}") from e

    def _file_path(self, feed_id: str) -> str:
        return os.path.join(self.feeds_dir, f"{feed_id}.json")

    def save(self, allow_shrink: bool = False) -> Dict[str, int]:
        """
        Write every feed document through the shrink guard.

        Args:
            allow_shrink: Accept documents that got smaller (used after removals)

        Returns:
            Dictionary with counts of saved and refused documents
        """
        os.makedirs(self.feeds_dir, exist_ok=True)

        stats = {'saved': 0, 'refused': 0}
        for feed_id, feed in self.iter():
            if safe_save_json(feed.to_dict(), self._file_path(feed_id), 'database', allow_shrink):
                stats['saved'] += 1
            else:
                stats['refused'] += 1

        if stats['refused']:
            logger.warning(f"Saved {stats['saved']} feeds, refused {stats['refused']} shrinking writes")
        else:
            logger.debug(f"Saved {stats['saved']} feeds to {self.feeds_dir}")
        return stats

    def save_shrunk(self) -> Dict[str, int]:
        return self.save(allow_shrink=True)

    def write_to_lookup(self, lookup: SourceLookup) -> None:
        for feed_id, feed in self.sources.items():
            lookup.touch(feed_id, feed.key())

    def iter(self) -> Iterator[Tuple[str, Feed]]:
        """Feeds in feed id order."""
        for feed_id in sorted(self.sources):
            yield feed_id, self.sources[feed_id]

    def get_or_insert(self, feed_id: str, feed: Feed) -> Feed:
        """
        Return the stored feed for an id, storing a copy of `feed` if there is none.
        """
        existing = self.sources.get(feed_id)
        if existing is None:
            existing = copy.deepcopy(feed)
            self.sources[feed_id] = existing
        return existing

    def get(self, feed_id: str) -> Optional[Feed]:
        return self.sources.get(feed_id)

    def __len__(self) -> int:
        return len(self.sources)

    def __contains__(self, feed_id: str) -> bool:
        return feed_id in self.sources
