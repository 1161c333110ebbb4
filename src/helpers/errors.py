"""Errors raised by a collection pass.

Configuration errors need an operator. Transient errors fail the pass and
are retried by whatever schedules the next pass."""


class CollectionError(Exception):
    """Base class for everything a collection pass raises on purpose"""


class ConfigurationError(CollectionError, ValueError):
    """Missing or invalid settings or credentials. Never retried"""


class TransientCollectionError(CollectionError):
    """Infrastructure failure. The next scheduled pass may succeed"""


class SnapshotFetchError(TransientCollectionError):
    """Could not get a complete order book from the venue"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(TransientCollectionError):
    """The pass transaction failed and was rolled back"""


class CollectionInProgressError(TransientCollectionError):
    """Another pass for the same venue is still running"""
