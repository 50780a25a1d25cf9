"""
Error taxonomy for store adapters and migrations.

Only the preflight errors (ConnectivityError, SessionExpiredError) ever escape a
public migration call. Everything else is captured into the result.
"""


class MigrationError(Exception):
    """Base class for migration errors."""


class ConnectivityError(MigrationError):
    """The device is offline or the cloud endpoint is unreachable."""


class SessionExpiredError(MigrationError):
    """The auth session could not be refreshed. The user must sign in again."""


class DataStoreError(Exception):
    """Raised by a store adapter when a read or write fails."""

    def __init__(self, message: str, entity_id: str | None = None):
        super().__init__(message)
        self.entity_id = entity_id


class StoreNetworkError(DataStoreError):
    """Transport-level failure talking to a remote store."""


class StoreValidationError(DataStoreError):
    """The store rejected a document as invalid."""

    def __init__(self, message: str, field: str | None = None, entity_id: str | None = None):
        super().__init__(message, entity_id=entity_id)
        self.field = field
