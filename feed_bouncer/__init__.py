"""
Feed Bouncer Package

A personal feed aggregation engine: polls RSS/Atom/JSON feeds, keeps every item
durably per source and collapses renamed or re-announced sources into one feed.
"""

__version__ = "1.0.0"
__author__ = "Feed Bouncer Team"
__email__ = "team@example.com"

# Package-level imports for convenience
from .config_manager import ConfigManager
from .database import Database
from .feed import Feed
from .feed_fetcher import FeedFetcher
from .feed_parser import FeedParser
from .filters import TagFilter
from .scheduler import RefreshScheduler

__all__ = [
    'ConfigManager',
    'Database',
    'Feed',
    'FeedFetcher',
    'FeedParser',
    'TagFilter',
    'RefreshScheduler',
]
