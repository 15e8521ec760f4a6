"""
Exception types raised by the feed engine.
"""


class FeedBouncerError(Exception):
    """Base class for all engine errors."""


class FetchError(FeedBouncerError):
    """
    Raised when a feed source could not be downloaded after all retry attempts.
    """

    def __init__(self, url: str, attempts: int, cause: Exception = None):
        self.url = url
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Could not download {url} after {attempts} attempts: {cause}")


class StorageCorruptError(FeedBouncerError):
    """
    Raised at startup when a persisted document exists but cannot be read or parsed.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt storage document {path}: {reason}")
