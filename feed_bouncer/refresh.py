"""
Refresh cycle: snapshot the feeds to poll, download them without holding any
lock, and hand back the new headers and items for an optimistic commit.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from feed_bouncer.exceptions import FetchError
from feed_bouncer.feed_items import FeedHeader, FeedItem, ItemKey, item_display_title, item_key, sort_items
from feed_bouncer.utils.logging_utils import log_new_items

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedFeed:
    """Everything a worker needs to refresh one feed, copied out of the store."""

    feed_id: str
    feed_url: str
    name: str
    existing_keys: FrozenSet[ItemKey]


@dataclass
class FeedUpdate:
    """Headers seen and items not yet stored, for one feed."""

    headers: List[FeedHeader] = field(default_factory=list)
    items: List[FeedItem] = field(default_factory=list)


@dataclass
class RefreshResult:
    """Outcome of executing a plan, tagged with the seq no it was planned at."""

    seq_no: int
    results: Dict[str, FeedUpdate] = field(default_factory=dict)
    stats: Dict[str, int] = field(default_factory=dict)


@dataclass
class RefreshPlan:
    """Feeds to poll, captured under the read lock at `seq_no`."""

    feeds: List[PlannedFeed]
    seq_no: int

    def execute(self, fetcher, max_workers: int = 8) -> RefreshResult:
        """
        Download every planned feed and collect what is new.

        Each feed is handled independently: a feed whose download or parse fails is
        left out of the result and the others carry on.

        Args:
            fetcher: FeedFetcher used for the downloads
            max_workers: Number of feeds fetched concurrently

        Returns:
            RefreshResult holding one FeedUpdate per successfully fetched feed
        """
        result = RefreshResult(seq_no=self.seq_no)
        result.stats = {'feeds_planned': len(self.feeds), 'feeds_fetched': 0, 'new_items': 0}

        if not self.feeds:
            return result

        workers = max(1, min(max_workers, len(self.feeds)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='refresh') as executor:
            updates = list(executor.map(lambda planned: refresh_feed(planned, fetcher), self.feeds))

        for planned, update in zip(self.feeds, updates):
            if update is None:
                continue
            result.results[planned.feed_id] = update
            result.stats['feeds_fetched'] += 1
            result.stats['new_items'] += len(update.items)

        return result


def refresh_feed(planned: PlannedFeed, fetcher) -> Optional[FeedUpdate]:
    """
    Refresh one feed, logging and swallowing its failure so the other feeds carry on.

    Returns:
        FeedUpdate, or None if the feed could not be downloaded or parsed
    """
    try:
        return _refresh_feed(planned, fetcher)
    except Exception:
        logger.error(
            f"Skipping [{planned.name}] this cycle: unexpected error refreshing {planned.feed_url}",
            exc_info=True,
        )
        return None


def _refresh_feed(planned: PlannedFeed, fetcher) -> Optional[FeedUpdate]:
    """
    Fetch one feed and keep only the items missing from the snapshot.

    Returns:
        FeedUpdate, or None if the feed could not be downloaded or parsed
    """
    try:
        parsed = fetcher.download(planned.feed_url)
    except FetchError:
        logger.warning(f"Skipping [{planned.name}] this cycle: could not download {planned.feed_url}")
        return None

    if parsed is None:
        logger.warning(f"Skipping [{planned.name}] this cycle: {planned.feed_url} is not a recognized feed")
        return None

    header, items = parsed.split_header()
    sort_items(items)

    update = FeedUpdate(headers=[header])
    for item in items:
        if item_key(item) not in planned.existing_keys:
            update.items.append(item)

    log_new_items(logger, planned.name, [item_display_title(item) or '' for item in update.items])
    return update
