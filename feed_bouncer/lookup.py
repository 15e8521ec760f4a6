"""
Identity lookup for feed sources.

Maps source titles and source urls to the feed ids already stored under them, so
a source announced again (or renamed) resolves to its existing identity.
"""
import logging
from typing import Dict, Optional, Set

from feed_bouncer.feed import LookupKey

logger = logging.getLogger(__name__)


class SourceLookup:
    """
    Title and url indices over the stored feeds.

    Rebuilt from the store at startup; never persisted.
    """

    def __init__(self):
        self.title_lookup: Dict[str, Set[str]] = {}
        self.url_lookup: Dict[str, Set[str]] = {}

    def touch(self, feed_id: str, key: LookupKey) -> None:
        """Register a feed id under its title and, if present, its url."""
        self.title_lookup.setdefault(key.name, set()).add(feed_id)
        if key.feed_url is not None:
            self.url_lookup.setdefault(key.feed_url, set()).add(feed_id)

    def check(self, key: LookupKey) -> Optional[str]:
        """
        Resolve a (name, url) pair to an existing feed id.

        A unique url match wins, then a unique title match. Ambiguous matches are
        never merged automatically.

        Args:
            key: Candidate name and optional url

        Returns:
            The matching feed id, or None if there is no unique match
        """
        title_matches = self.title_lookup.get(key.name, set())
        url_matches = self.url_lookup.get(key.feed_url, set()) if key.feed_url is not None else set()

        if len(url_matches) == 1:
            return next(iter(url_matches))
        if len(title_matches) == 1:
            return next(iter(title_matches))
        if len(url_matches) > 1 or len(title_matches) > 1:
            logger.warning(
                f"Multiple matches for [{key.name}] ({len(title_matches)} by title, "
                f"{len(url_matches)} by url); not merging"
            )
        return None

    def check_url(self, url: str) -> Set[str]:
        """All feed ids registered under a source url."""
        return set(self.url_lookup.get(url, set()))
