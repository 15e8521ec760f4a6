#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
feed_fetcher.py - Module for downloading feed sources over HTTP.
"""

import logging
from typing import Optional

import requests

from feed_bouncer.exceptions import FetchError
from feed_bouncer.feed_parser import FeedParser, ParsedFeed
from feed_bouncer.utils.helpers import retry_with_backoff
from feed_bouncer.utils.logging_utils import log_fetch_attempt, log_fetch_failure

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "feed-bouncer/1.0"


class FeedFetcher:
    """
    Downloads feed sources with a requests session and hands the body to FeedParser.
    """

    def __init__(self, timeout: float = 30, max_attempts: int = 5,
                 retry_delay: float = 0.5, backoff_factor: float = 2.0,
                 user_agent: str = DEFAULT_USER_AGENT,
                 parser: Optional[FeedParser] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize the fetcher with configuration and dependencies.

        Args:
            timeout (float): Per-attempt request timeout in seconds.
            max_attempts (int): Total attempts per download before giving up.
            retry_delay (float): Delay after the first failed attempt; 0 disables waiting.
            backoff_factor (float): Multiplier applied to the delay after each failure.
            user_agent (str): User-Agent header sent with every request.
            parser (FeedParser): Parser for fetched bodies; a default one is created if omitted.
            session (requests.Session): Session to reuse; a new one is created if omitted.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.backoff_factor = backoff_factor
        self.parser = parser or FeedParser()

        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'application/rss+xml, application/atom+xml, application/feed+json, application/xml;q=0.9, */*;q=0.8',
        })

        logger.debug("FeedFetcher initialized with requests session and parser")

    def _fetch_raw_content(self, url: str) -> bytes:
        """
        Fetch the raw body of a feed with retries.

        Args:
            url (str): URL of the feed

        Returns:
            bytes: Response body.

        Raises:
            FetchError: If every attempt failed.
        """
        attempts = {'count': 0}

        def fetch():
            attempts['count'] += 1
            log_fetch_attempt(logger, url, attempts['count'], self.max_attempts)
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.content

        def on_failure(attempt, error):
            logger.debug(f"Attempt {attempt}/{self.max_attempts} for {url} failed: {error}")

        try:
            return retry_with_backoff(
                func=fetch,
                max_attempts=self.max_attempts,
                initial_delay=self.retry_delay,
                backoff_factor=self.backoff_factor,
                retry_on=(requests.RequestException,),
                on_failure=on_failure,
            )
        except requests.RequestException as e:
            log_fetch_failure(logger, url, str(e), attempts['count'])
            raise FetchError(url, attempts['count'], e) from e

    def download(self, url: str) -> Optional[ParsedFeed]:
        """
        Download and parse a feed.

        Args:
            url (str): URL of the feed

        Returns:
            Optional[ParsedFeed]: Parsed feed, or None if the body is not a recognized feed format.

        Raises:
            FetchError: If the source could not be downloaded.
        """
        body = self._fetch_raw_content(url)
        logger.debug(f"Fetched {len(body)} bytes from {url}")
        return self.parser.parse(body, url)

    def close(self):
        self.session.close()
