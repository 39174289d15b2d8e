"""
Errors raised by the Files API services
"""


class FileServiceError(Exception):
    """Base class for file service errors"""


class InvalidArgument(FileServiceError):
    """The request itself is unusable (e.g. an empty batch). Do not retry as-is."""


class NotFound(FileServiceError):
    """A parent or file record could not be resolved."""


class StoreRejected(FileServiceError):
    """The store refused a record (validation or integrity failure)."""

    def __init__(self, messages: list[str]):
        self.messages = messages
        super().__init__(" ".join(messages))


class StoreUnavailable(FileServiceError):
    """The store could not be reached. The whole batch may be retried."""
