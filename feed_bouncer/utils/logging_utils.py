"""
Logging utilities for Feed Bouncer.
Contains helper functions for consistent logging across modules.
"""
import logging, os
from logging.handlers import TimedRotatingFileHandler
from typing import Dict, List, Optional


def log_fetch_attempt(logger: logging.Logger, url: str, attempt: int, max_attempts: int) -> None:
    """
    Log feed fetch attempt information.

    Args:
        logger: Logger instance to use
        url: URL being fetched
        attempt: Current attempt number
        max_attempts: Maximum number of attempts
    """
    logger.debug(f"Fetching {url} (attempt {attempt}/{max_attempts})")


def log_fetch_failure(logger: logging.Logger, url: str, error: str, attempts: int) -> None:
    """
    Log failed feed fetch.

    Args:
        logger: Logger instance to use
        url: URL that failed
        error: Error message
        attempts: Number of attempts made
    """
    logger.warning(f"Could not download {url} after {attempts} attempts: {error}")


def log_new_items(logger: logging.Logger, feed_name: str, titles: List[str]) -> None:
    """
    Log the items a refresh found for one feed.

    Args:
        logger: Logger instance to use
        feed_name: Display name of the feed
        titles: Titles of the new items
    """
    if not titles:
        return

    logger.info(f"New entries for [{feed_name}]: {len(titles)}")
    for title in titles:
        logger.debug(f"  [{title}]")


def log_refresh_summary(logger: logging.Logger, stats: Dict[str, int], duration: float) -> None:
    """
    Log refresh cycle summary.

    Args:
        logger: Logger instance to use
        stats: Refresh statistics dictionary
        duration: Total duration in seconds
    """
    planned = stats.get('feeds_planned', 0)
    fetched = stats.get('feeds_fetched', 0)
    new_items = stats.get('new_items', 0)
    failed = planned - fetched

    logger.info(f"Refresh completed in {duration:.2f}s: {new_items} new items from {fetched}/{planned} feeds ({failed} failed)")


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = "logs") -> logging.Logger:
    """
    Configure console and file logging.

    Args:
        log_level: Minimum logging level (e.g., "INFO", "DEBUG")
        log_dir: Directory to store log files, or None to log to the console only

    Returns:
        The configured root logger instance.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Repeated calls must not stack handlers
    for handler in list(root_logger.handlers):
        if getattr(handler, '_feed_bouncer', False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    console_handler._feed_bouncer = True
    root_logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        # File handler (daily rotation)
        file_handler = TimedRotatingFileHandler(os.path.join(log_dir, 'feed_bouncer.log'), when='midnight', interval=1, backupCount=7)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        file_handler._feed_bouncer = True
        root_logger.addHandler(file_handler)

    root_logger.info(f"Logging configured to level {log_level.upper()}. Log files in {log_dir}")
    return root_logger
