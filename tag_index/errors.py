from __future__ import annotations


class TagIndexError(Exception):
    """Base class for every error raised by the tag index."""
    pass


class ConfigurationError(TagIndexError, RuntimeError):
    """Raised at startup when a required setting is missing."""
    pass


class MalformedRequestError(TagIndexError, ValueError):
    """Raised when a request body is missing, unparsable or has the wrong shape."""
    pass


class StorageError(TagIndexError):
    """
    Any failure reported by the storage gateway.

    Attributes:
        code: Error code reported by the store (empty when unknown)
    """

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


class MissingFieldPathError(StorageError):
    """The update expression targets a nested path whose parent map does not exist yet."""
    pass


class ConditionalCheckFailedError(StorageError):
    """A conditional write was rejected because its condition did not hold."""
    pass
