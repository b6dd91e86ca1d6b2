"""Bucketview exceptions."""


class BucketViewError(Exception):
    """Base exception for bucketview."""

    pass


class ConfigError(BucketViewError):
    """Configuration error."""

    pass


class ValidationError(BucketViewError):
    """Malformed client input. Raised before any backend call is made."""

    pass


class InvalidCursorError(ValidationError):
    """Continuation token could not be decoded."""

    pass


class InternalError(BucketViewError):
    """A backend request could not be constructed locally."""

    pass


class UpstreamError(BucketViewError):
    """The object store returned a failure status or could not be reached.

    Attributes:
        status_code: Backend HTTP status, or None for transport failures
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_transport_failure(self) -> bool:
        """Whether the backend never produced an HTTP response."""
        return self.status_code is None
