"""
Error taxonomy for the inbox service.

Each error carries the HTTP status the API layer renders it with, so route
handlers can simply let them propagate.
"""


class InboxError(Exception):
    """Base class for all inbox errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InboxError):
    """Caller supplied data that fails a contract precondition."""

    status_code = 400


class NotFoundError(InboxError):
    """Referenced identity has no matching record."""

    status_code = 404


class StorageError(InboxError):
    """
    The record store is unreachable or rejected an operation.

    `retryable` marks transient conditions (timeouts, locked database,
    lost connection) that a caller may retry.
    """

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable

    @property
    def status_code(self) -> int:
        return 503 if self.retryable else 500


class MalformedPayloadError(InboxError):
    """A webhook document does not match the expected shape."""

    status_code = 400

    def __init__(self, message: str, source: str = None):
        super().__init__(message)
        self.source = source
