class StoreError(Exception):
    """Base class for collection store failures."""


class NotFoundError(StoreError, KeyError):
    """An operation referenced a sourceId that is not in the collection."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Frequency not found: {source_id}")

    def __str__(self):
        # KeyError would repr() the message
        return self.args[0]


class ValidationError(StoreError, ValueError):
    """A snapshot document failed structural validation."""


class PersistenceError(StoreError):
    """Writing the snapshot to storage failed."""
