class PersistenceError(Exception):
    """Base class for failures raised by the persistence services."""


class RecordNotFound(PersistenceError):
    """A read expected to find a row found none."""


class NoRowsAffected(PersistenceError):
    """A mutation expected to touch a row touched none."""


class ConstraintViolation(PersistenceError):
    """A write was rejected by a unique, primary or foreign key."""


class ChatIntegrityError(PersistenceError):
    """A user's tournament messages point at more than one tournament."""
