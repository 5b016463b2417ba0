"""Domain-specific exceptions for the kakeibo ledger core services."""

class ValidationError(ValueError):
    """Raised when caller-supplied input does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when a requested ledger resource cannot be located."""


class PersistenceError(IOError):
    """Raised when the storage collaborator encounters unrecoverable issues."""
