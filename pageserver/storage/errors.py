"""Exception types raised by the page storage core.

A missing page is not an error: reads fall back to a fixed document and
deletes of absent names are no-ops.
"""


class StoreError(Exception):
    """Base class for everything the storage core raises."""


class StorageUnavailable(StoreError):
    """The backing file cannot be opened, locked, read or written."""


class ReadOnlyTransaction(StoreError):
    """A write was attempted inside a read-only transaction."""


class ValidationError(StoreError, ValueError):
    """A caller supplied an unusable name or document."""


class NameEmpty(ValidationError):
    def __init__(self, message: str = "name is empty") -> None:
        super().__init__(message)


class NestedWriteTransaction(StoreError):
    """A write was started on a thread that already holds the write transaction."""
