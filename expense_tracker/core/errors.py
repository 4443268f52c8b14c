# expense_tracker/core/errors.py


class StorageError(Exception):
    """Base class for failures raised by the expense store."""


class ConstraintViolation(StorageError):
    """A uniqueness or check constraint rejected the statement."""


class ForeignKeyViolation(StorageError):
    """An expense referenced a category that does not exist."""


class StorageUnavailable(StorageError):
    """The database could not be opened or the statement could not run."""
