"""Feed domain exceptions."""

from multifeed.core.domain.exceptions import DomainException


class FeedError(DomainException):
    """Base exception for feed lifecycle errors."""

    error_code = "FEED_ERROR"


class InvalidFeedConfigError(FeedError):
    """Raised when a feed definition cannot be built from configuration."""

    error_code = "INVALID_FEED_CONFIG"

    def __init__(self, message: str):
        super().__init__(f"Invalid feed configuration: {message}")


class TransportError(FeedError):
    """Raised by transports when a request cannot produce a payload."""

    error_code = "TRANSPORT_ERROR"


class FeedLoadError(FeedError):
    """The latest load of a feed failed."""

    error_code = "FEED_LOAD_FAILED"

    def __init__(self, name: str, cause: BaseException | None = None):
        self.feed = name
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Feed '{name}' failed to load{detail}")


class FeedDataTimeoutError(FeedError):
    """No data became available within the polling budget."""

    error_code = "FEED_DATA_TIMEOUT"

    def __init__(self, name: str, attempts: int):
        self.feed = name
        self.attempts = attempts
        super().__init__(f"Feed '{name}' had no data after {attempts} attempts")
