"""
Main entry point for Feed Bouncer.
Wires configuration, storage, fetching and scheduling together.
"""
import argparse
import json
import logging
import sys
import time
from json.decoder import JSONDecodeError
from typing import Any, Dict, List, Optional

from feed_bouncer import __version__
from feed_bouncer.config_manager import ConfigManager
from feed_bouncer.database import Database
from feed_bouncer.exceptions import StorageCorruptError
from feed_bouncer.feed_fetcher import FeedFetcher
from feed_bouncer.scheduler import initialize_scheduler
from feed_bouncer.utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


class FeedBouncerApp:
    """
    Owns the Database and FeedFetcher for one storage directory.
    """

    def __init__(self, config_manager: ConfigManager, storage_path: Optional[str] = None):
        """
        Initialize the application from configuration.

        Args:
            config_manager: Loaded configuration
            storage_path: Storage root overriding `storage.base_dir`

        Raises:
            StorageCorruptError: If the stored feeds cannot be loaded.
        """
        self.config_manager = config_manager
        self.storage_path = storage_path or config_manager.get_config_value("storage.base_dir", "./storage")
        self.max_workers = config_manager.get_config_value("networking.max_workers", 8)

        self.fetcher = FeedFetcher(
            timeout=config_manager.get_config_value("networking.timeout_seconds", 30),
            max_attempts=config_manager.get_config_value("networking.retry_attempts", 5),
            retry_delay=config_manager.get_config_value("networking.retry_delay_seconds", 0.5),
            backoff_factor=config_manager.get_config_value("networking.backoff_factor", 2.0),
            user_agent=config_manager.get_config_value("networking.user_agent", "feed-bouncer/1.0"),
        )
        self.db = Database.init(self.storage_path)

        logger.info("Feed Bouncer initialized successfully")

    def import_sources(self) -> Dict[str, int]:
        return self.db.import_sources(self.fetcher)

    def run_refresh(self) -> Dict[str, Any]:
        """Run one refresh cycle over every feed with a source url."""
        return self.db.refresh(self.fetcher, max_workers=self.max_workers)

    def recent_items(self, count: int) -> List[Dict[str, Any]]:
        """
        The newest items across all feeds, newest first.

        Args:
            count: Number of items to return

        Returns:
            List of dictionaries with feed, title, date and link
        """
        items = self.db.list_items_ordered_by_time()
        recent = []
        for feed_id, feed, meta in reversed(items[-count:] if count > 0 else []):
            recent.append({
                "feed_id": feed_id,
                "feed": feed.effective_display_name(),
                "item_id": meta.id,
                "title": meta.display_title_without_prefixes(feed) or "???",
                "published": meta.publish_date_or_old().isoformat(),
                "link": meta.content_link(),
            })
        return recent

    def close(self):
        self.fetcher.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feed-bouncer",
        description="Feed Bouncer - aggregate RSS/Atom/JSON feeds into durable per-feed storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  feed-bouncer --run-now                         # Import and refresh once
  feed-bouncer --schedule                        # Refresh periodically until Ctrl+C
  feed-bouncer --recent 10                       # Show the 10 newest items
  feed-bouncer --storage-path ./my_storage --run-now
        """
    )
    parser.add_argument(
        "--storage-path",
        default=None,
        help="Storage directory (default: storage.base_dir from settings, ./storage)"
    )
    parser.add_argument(
        "--settings",
        default=None,
        help="Path to a JSON settings file"
    )
    parser.add_argument(
        "--run-now",
        action="store_true",
        help="Import sources and refresh all feeds once"
    )
    parser.add_argument(
        "--recent",
        type=int,
        metavar="N",
        default=None,
        help="Print the N newest items"
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Start the scheduler for periodic refreshes"
    )
    parser.add_argument(
        "--no-import",
        action="store_true",
        help="Skip processing import.json"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"feed-bouncer v{__version__}"
    )
    return parser


def _print_recent(app: FeedBouncerApp, count: int):
    for entry in app.recent_items(count):
        print(f"{entry['published']}  [{entry['feed']}]  {entry['title']}")
        if entry["link"]:
            print(f"    {entry['link']}")


def _run_scheduler(app: FeedBouncerApp) -> int:
    scheduler = initialize_scheduler(app.config_manager, app.run_refresh)
    if scheduler is None:
        logger.error("Scheduler is disabled in settings; nothing to run.")
        return 1

    logger.info("Starting scheduler - Press Ctrl+C to stop")
    scheduler.start()
    try:
        while True:
            time.sleep(1)
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped by user or system signal")
    finally:
        scheduler.stop()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the command line.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config_manager = ConfigManager(args.settings)
    except (FileNotFoundError, JSONDecodeError, TypeError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    log_level = 'DEBUG' if args.debug else config_manager.get_config_value("logging.level", "INFO")
    setup_logging(log_level=log_level, log_dir=config_manager.get_config_value("logging.log_dir", "./logs"))

    if not (args.run_now or args.schedule or args.recent is not None):
        logger.warning("No action specified. Use --run-now, --recent N or --schedule")
        parser.print_help()
        return 0

    try:
        app = FeedBouncerApp(config_manager, storage_path=args.storage_path)
    except StorageCorruptError as e:
        logger.critical(f"Refusing to start: {e}")
        return 1

    try:
        if (args.run_now or args.schedule) and not args.no_import:
            app.import_sources()

        if args.run_now:
            logger.info("Running immediate refresh")
            stats = app.run_refresh()
            logger.info(f"Immediate refresh summary: {json.dumps(stats, indent=2)}")

        if args.recent is not None:
            _print_recent(app, args.recent)

        if args.schedule:
            return _run_scheduler(app)
    except KeyboardInterrupt:
        logger.info("Process interrupted by user.")
    finally:
        app.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
