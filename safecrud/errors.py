class SafeCrudError(Exception):
    """Base exception for safecrud errors."""


class ConnectionFailure(SafeCrudError):
    """The database connection could not be established."""


class ExecutionFailure(SafeCrudError):
    """Any failure while preparing, binding or executing a CRUD statement."""


class GuardViolation(SafeCrudError, ValueError):
    """Arguments rejected before any SQL reaches the database."""


class CipherError(SafeCrudError):
    """General field encryption issues."""


class UnsupportedCipherError(CipherError):
    """The configured cipher method is not supported."""


class DecryptionError(CipherError):
    """A stored value could not be decrypted with the configured key and IV."""
