"""
The Database service: feed store, identity lookup, read state and the refresh
cycle, all behind a single read/write lock.
"""
import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from feed_bouncer.feed import Feed
from feed_bouncer.feed_items import ItemMeta, sort_items
from feed_bouncer.filters import TagFilter
from feed_bouncer.importer import SourceImporter
from feed_bouncer.lookup import SourceLookup
from feed_bouncer.refresh import PlannedFeed, RefreshPlan, RefreshResult
from feed_bouncer.storage_manager import FeedStore
from feed_bouncer.user_data import UserDataStorage
from feed_bouncer.utils.helpers import create_feed_id
from feed_bouncer.utils.locks import ReadWriteLock
from feed_bouncer.utils.logging_utils import log_refresh_summary

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_PATH = './storage'


def _update_or_warn(current: Any, value: Any, field_name: str, feed_id: str) -> Any:
    """Fill an empty field; keep a set field and warn if a different value arrives."""
    if value is None:
        return current
    if current is None:
        return value
    if current != value:
        logger.warning(f"Mismatching {field_name} for {feed_id}: keeping {current!r}, ignoring {value!r}")
    return current


class Database:
    """
    Single-writer service object for one storage directory.

    Methods that change state take the write lock themselves; `get` and `get_mut`
    do not, so callers wrap them in `read_locked()` or `write_locked()`. The lock is
    not reentrant.
    """

    def __init__(self, store: FeedStore, user_data: UserDataStorage, storage_path: str):
        self.store = store
        self.user_data = user_data
        self.storage_path = storage_path
        self.lookup = SourceLookup()
        self._last_feed_update: Optional[datetime] = None
        self._update_seq_no = 0
        self._lock = ReadWriteLock()
        # Saves only need to exclude writers, but must not overlap each other
        self._save_lock = threading.Lock()

        self.store.write_to_lookup(self.lookup)

    @classmethod
    def init(cls, storage_path: Optional[str] = None) -> 'Database':
        """
        Open the storage directory, migrating old documents and rebuilding the lookup.

        Args:
            storage_path: Storage root, ./storage if omitted

        Raises:
            StorageCorruptError: If any stored document cannot be parsed.
        """
        storage_path = storage_path or DEFAULT_STORAGE_PATH
        store = FeedStore.open(storage_path)
        user_data = UserDataStorage.open(storage_path)
        logger.info(f"Database opened at {storage_path} with {len(store)} feeds")
        return cls(store, user_data, storage_path)

    # Locking

    @contextmanager
    def read_locked(self):
        with self._lock.read_locked():
            yield self

    @contextmanager
    def write_locked(self):
        with self._lock.write_locked():
            yield self

    # State

    @property
    def update_seq_no(self) -> int:
        return self._update_seq_no

    @property
    def last_feed_update(self) -> Optional[datetime]:
        return self._last_feed_update

    # Persistence

    def save(self) -> None:
        with self._save_lock, self._lock.read_locked():
            self.store.save()
            self.user_data.save(self.storage_path)

    def save_shrunk(self) -> None:
        """Save after deliberate removals, letting documents get smaller."""
        with self._save_lock, self._lock.read_locked():
            self.store.save_shrunk()
            self.user_data.save(self.storage_path)

    def save_user_data(self) -> None:
        with self._save_lock, self._lock.read_locked():
            self.user_data.save(self.storage_path)

    # Feed records

    def insert(self, feed: Feed) -> str:
        """
        Add a source, or merge it into the feed it resolves to.

        Args:
            feed: Candidate feed; it is copied, never aliased

        Returns:
            The feed id the source is stored under
        """
        with self._lock.write_locked():
            return self._insert(feed)

    def _insert(self, feed: Feed) -> str:
        key = feed.key()
        feed_id = self.lookup.check(key)
        if feed_id is None:
            feed_id = create_feed_id(feed.name, feed.feed_url)
            logger.debug(f"New feed id {feed_id} for [{feed.name}]")

        self.lookup.touch(feed_id, key)
        existing = self.store.get_or_insert(feed_id, feed)

        existing.feed_url = _update_or_warn(existing.feed_url, feed.feed_url, 'feed_url', feed_id)
        if existing.name != feed.name:
            logger.warning(f"Mismatching name for {feed_id}: keeping {existing.name!r}, ignoring {feed.name!r}")
        existing.opml = _update_or_warn(existing.opml, feed.opml, 'opml', feed_id)
        existing.parent = _update_or_warn(existing.parent, feed.parent, 'parent', feed_id)
        existing.display_name = _update_or_warn(existing.display_name, feed.display_name, 'display_name', feed_id)
        existing.extend_tags(feed.tags)

        return feed_id

    def get(self, feed_id: str) -> Optional[Feed]:
        return self.store.get(feed_id)

    def get_mut(self, feed_id: str) -> Optional[Feed]:
        """Mutable access to a feed; only valid inside `write_locked()`."""
        return self.store.get(feed_id)

    def _matching_feeds(self, tag_filter: Optional[TagFilter]) -> List[Tuple[str, Feed]]:
        return [
            (feed_id, feed) for feed_id, feed in self.store.iter()
            if tag_filter is None or tag_filter.matches(feed)
        ]

    def list_all_feeds(self, tag_filter: Optional[TagFilter] = None) -> List[Tuple[str, Feed]]:
        with self._lock.read_locked():
            return self._matching_feeds(tag_filter)

    def list_items_ordered_by_time(self, tag_filter: Optional[TagFilter] = None) -> List[Tuple[str, Feed, ItemMeta]]:
        """
        Every item of every matching feed, oldest first.

        Returns:
            List of (feed id, feed, item) tuples
        """
        with self._lock.read_locked():
            items = []
            for feed_id, feed in self._matching_feeds(tag_filter):
                for meta in feed.items:
                    items.append((feed_id, feed, meta))

        sort_items(items, key=lambda entry: entry[2].item)
        return items

    def known_tags(self) -> List[str]:
        with self._lock.read_locked():
            tags: Set[str] = set()
            for _, feed in self.store.iter():
                tags.update(feed.tags)
            return sorted(tags)

    # Read state

    def mark_item_read(self, feed_id: str, item_id: int) -> bool:
        """Mark one item read and save the read state if it changed."""
        with self._lock.write_locked():
            marked = self.user_data.mark_read(feed_id, item_id)

        if marked:
            self.save_user_data()
        return marked

    def mark_read_up_to(self, feed_id: str, item_id: int) -> int:
        """
        Mark an item and every older item of the same feed as read.

        Items dated the same as the given one count as older.

        Returns:
            Number of items newly marked read; 0 if the feed or item is unknown
        """
        with self._lock.write_locked():
            feed = self.store.get(feed_id)
            if feed is None:
                logger.warning(f"Cannot mark items read: unknown feed {feed_id}")
                return 0

            target = feed.find_item(item_id)
            if target is None:
                logger.warning(f"Cannot mark items read: feed {feed_id} has no item {item_id}")
                return 0

            cutoff = target.publish_date_or_old()
            ids = [meta.id for meta in feed.items if meta.publish_date_or_old() <= cutoff]
            marked = self.user_data.mark_many_read(feed_id, ids)

        self.save_user_data()
        return marked

    def is_item_read(self, feed_id: str, item_id: int) -> bool:
        with self._lock.read_locked():
            return self.user_data.is_read(feed_id, item_id)

    # Tags, aliases and names

    def add_tag(self, feed_id: str, tag: str) -> bool:
        tag = tag.strip()
        if not tag:
            return False

        with self._lock.write_locked():
            feed = self.store.get(feed_id)
            if feed is None:
                return False
            is_new = feed.extend_tags([tag])

        if is_new:
            self.save()
        return is_new

    def remove_tag(self, feed_id: str, tag: str) -> bool:
        with self._lock.write_locked():
            feed = self.store.get(feed_id)
            if feed is None:
                return False
            removed = feed.remove_tag(tag.strip())

        if removed:
            self.save_shrunk()
        return removed

    def add_title_alias(self, feed_id: str, alias: str) -> bool:
        with self._lock.write_locked():
            feed = self.store.get(feed_id)
            if feed is None:
                return False
            added = feed.title_alias_insert(alias)

        if added:
            self.save()
        return added

    def remove_title_alias(self, feed_id: str, alias: str) -> bool:
        with self._lock.write_locked():
            feed = self.store.get(feed_id)
            if feed is None:
                return False
            removed = feed.title_alias_remove(alias)

        if removed:
            self.save_shrunk()
        return removed

    def set_display_name(self, feed_id: str, name: Optional[str]) -> bool:
        """Set or (with an empty name) clear the user's display name for a feed."""
        name = name.strip() if name else None
        with self._lock.write_locked():
            feed = self.store.get(feed_id)
            if feed is None:
                return False
            feed.set_display_name(name or None)

        self.save_shrunk()
        return True

    # Import

    def import_sources(self, fetcher) -> Dict[str, int]:
        """Run the import list in the storage directory and save what it added."""
        stats = SourceImporter(self, fetcher).run_import()
        if stats['imported']:
            self.save()
        return stats

    # Refresh

    def build_refresh_plan(self) -> RefreshPlan:
        """Snapshot every feed that has a source url, with the current seq no."""
        with self._lock.read_locked():
            feeds = []
            for feed_id, feed in self.store.iter():
                if feed.feed_url is None:
                    continue
                feeds.append(PlannedFeed(
                    feed_id=feed_id,
                    feed_url=feed.feed_url,
                    name=feed.effective_display_name(),
                    existing_keys=frozenset(feed.item_keys()),
                ))
            plan = RefreshPlan(feeds=feeds, seq_no=self._update_seq_no)

        logger.info(f"Prepared refresh of {len(plan.feeds)} feeds at seq_no={plan.seq_no}")
        return plan

    def execute_plan(self, plan: RefreshPlan, fetcher, max_workers: int = 8) -> RefreshResult:
        return plan.execute(fetcher, max_workers=max_workers)

    def commit_plan(self, result: RefreshResult) -> bool:
        """
        Merge a refresh result, unless another commit happened since it was planned.

        Returns:
            True if the result was applied, False if it was discarded
        """
        with self._lock.write_locked():
            if result.seq_no != self._update_seq_no:
                logger.warning(
                    f"Discarding refresh planned at seq_no={result.seq_no}, "
                    f"database is at seq_no={self._update_seq_no}"
                )
                return False

            logger.info(f"Committing new items, seq_no={result.seq_no}")
            for feed_id, update in result.results.items():
                feed = self.store.get(feed_id)
                if feed is None:
                    continue
                for header in update.headers:
                    if not feed.contains_feed_header(header):
                        feed.push_feed_header(header)
                feed.extend_items(update.items)

            self._last_feed_update = datetime.now(timezone.utc)
            self._update_seq_no = result.seq_no + 1
            logger.debug(f"Commit done, seq_no={self._update_seq_no}")
            return True

    def refresh(self, fetcher, max_workers: int = 8) -> Dict[str, Any]:
        """
        Run one full refresh cycle: plan, execute, commit and save.

        Args:
            fetcher: FeedFetcher used for the downloads
            max_workers: Number of feeds fetched concurrently

        Returns:
            Cycle statistics, with `committed` telling whether the result was applied
        """
        start_time = time.time()

        plan = self.build_refresh_plan()
        result = self.execute_plan(plan, fetcher, max_workers=max_workers)
        committed = self.commit_plan(result)
        if committed:
            self.save()

        stats: Dict[str, Any] = dict(result.stats)
        stats['committed'] = committed
        log_refresh_summary(logger, stats, time.time() - start_time)
        return stats
