class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class MissingIdentifierError(DomainError):
    """Raised when an update targets a record without a persisted identifier."""


class RecordNotFoundError(DomainError):
    """Raised by a store when an update targets an unknown identifier."""


class StoreUnavailableError(DomainError):
    """Raised when the record store could not complete an operation."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class StaleRecordError(DomainError):
    """Raised by a store when a conditional update finds the record in another status."""
