"""
Helper functions for Feed Bouncer.
Contains utility functions for identity hashing, date handling, retries and safe JSON writes.
"""
import hashlib
import json
import os
import random
import tempfile
import time
import urllib.parse
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime
from dateutil import parser as date_parser
from typing import Any, Callable, Optional, Tuple, Type
import logging

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

# Effective date of items whose publish date is absent or unparseable.
OLD_DATE = datetime(1996, 12, 19, 16, 39, 57, tzinfo=timezone(timedelta(hours=-8)))


def create_feed_id(name: str, feed_url: Optional[str] = None) -> str:
    """
    Derive a stable feed identity from a source's name and url.

    Args:
        name: Title reported by the source
        feed_url: Source url, if the feed has one

    Returns:
        Hex-encoded SHA-256 digest of the UTF-8 name followed by the url
    """
    digest = hashlib.sha256()
    digest.update(name.encode('utf-8'))
    if feed_url is not None:
        digest.update(feed_url.encode('utf-8'))
    return digest.hexdigest()


def normalize_weekday_names(date_string: str) -> str:
    """
    Replace spelled-out weekday names with their RFC 822 abbreviation.

    Args:
        date_string: Raw date string from an RSS feed

    Returns:
        Date string with e.g. "Monday" replaced by "Mon"
    """
    for day in WEEKDAY_NAMES:
        if day in date_string:
            date_string = date_string.replace(day, day[:3])
    return date_string


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_rfc2822_date(date_string: Optional[str]) -> Optional[datetime]:
    """
    Parse an RSS publication date.

    Args:
        date_string: Raw pubDate value

    Returns:
        Timezone-aware datetime, or None if the value is absent or unparseable
    """
    if not date_string or not date_string.strip():
        return None

    normalized = normalize_weekday_names(date_string.strip())
    try:
        parsed = parsedate_to_datetime(normalized)
    except (TypeError, ValueError, IndexError) as e:
        logger.debug(f"Could not parse date '{normalized}': {e}")
        return None

    return _ensure_aware(parsed) if parsed is not None else None


def parse_generic_date(date_string: Optional[str]) -> Optional[datetime]:
    """
    Parse an Atom / JSON feed timestamp.

    Args:
        date_string: Raw date value (usually ISO 8601)

    Returns:
        Timezone-aware datetime, or None if the value is absent or unparseable
    """
    if not date_string or not date_string.strip():
        return None

    try:
        return _ensure_aware(date_parser.parse(date_string.strip()))
    except (ValueError, TypeError, OverflowError) as e:
        logger.debug(f"Could not parse date '{date_string}': {e}")
        return None


def retry_with_backoff(func: Callable[[], Any], max_attempts: int, initial_delay: float,
                       backoff_factor: float = 2.0,
                       retry_on: Tuple[Type[BaseException], ...] = (Exception,),
                       on_failure: Optional[Callable[[int, BaseException], None]] = None) -> Any:
    """
    Call a function until it succeeds or the attempt budget is spent.

    Args:
        func: The function to call.
        max_attempts: Total number of calls to make before giving up.
        initial_delay: Delay in seconds after the first failure. Zero disables waiting.
        backoff_factor: The factor by which the delay increases each retry.
        retry_on: Exception types that count as a retryable failure.
        on_failure: Optional callback receiving (attempt, exception) after each failed call.

    Returns:
        The result of the function call if successful.

    Raises:
        The last exception raised by func once all attempts failed.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return func()
        except retry_on as e:
            if on_failure is not None:
                on_failure(attempt, e)
            if attempt >= max_attempts:
                raise
            if initial_delay > 0:
                delay = initial_delay * (backoff_factor ** (attempt - 1)) + random.uniform(0, initial_delay * 0.5)
                logger.debug(f"Attempt {attempt} failed. Retrying in {delay:.2f}s: {e}")
                time.sleep(delay)


def validate_url(url: str) -> bool:
    """
    Validate if a string is a proper URL.

    Args:
        url: URL string to validate

    Returns:
        True if valid URL, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    try:
        parsed = urllib.parse.urlparse(url)
        return bool(parsed.scheme and parsed.netloc)
    except ValueError:
        return False


def safe_save_json(data: Any, file_path: str, label: str, allow_shrink: bool) -> bool:
    """
    Write a JSON document without letting a truncated write replace a larger one.

    The document is serialized to a uniquely named temporary file in the same
    directory first, so concurrent writers never share a scratch file. The original
    is only replaced when the new file is at least as large, unless shrinking is allowed.

    Args:
        data: JSON-serializable document
        file_path: Destination path
        label: Name used in log messages
        allow_shrink: Accept output that is smaller than the current file

    Returns:
        True if the file was replaced, False if the shrink guard refused the write
    """
    directory, name = os.path.split(os.path.abspath(file_path))
    with tempfile.NamedTemporaryFile(
        'w', encoding='utf-8', dir=directory, prefix=f".{name}.", suffix='.tmp', delete=False
    ) as f:
        tmp_path = f.name
        try:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        except (OSError, TypeError, ValueError):
            f.close()
            os.remove(tmp_path)
            raise

    new_size = os.path.getsize(tmp_path)
    old_size = os.path.getsize(file_path) if os.path.exists(file_path) else 0

    if new_size < old_size and not allow_shrink:
        logger.warning(
            f"Refusing to save {label} to {file_path}: new size {new_size} bytes "
            f"is smaller than current size {old_size} bytes"
        )
        os.remove(tmp_path)
        return False

    os.replace(tmp_path, file_path)
    logger.debug(f"Saved {label} to {file_path} ({new_size} bytes)")
    return True
