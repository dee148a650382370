"""Error taxonomy shared by the database services and the loader."""


class LoadError(Exception):
    """Base class for every failure a load can report."""

    kind = "LoadError"


class InputError(LoadError):
    """The caller supplied nothing usable to load."""

    kind = "InputError"


class StoreError(LoadError):
    """A database-level failure."""

    kind = "StoreError"


class TransientStoreError(StoreError):
    """Connectivity loss, lock timeout or pool exhaustion. Retrying may help."""

    kind = "TransientStoreError"


class PoolTimeoutError(TransientStoreError):
    """No pooled connection became available within the acquire timeout."""

    kind = "TransientStoreError"


class SchemaError(StoreError):
    """Unknown table or column, or a value the column rejects."""

    kind = "SchemaError"
