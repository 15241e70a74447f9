"""Domain error taxonomy.

Services raise these; the API layer maps them to HTTP status codes.
"""


class DomainError(Exception):
    """Base class for business errors surfaced to callers."""


class NotFoundError(DomainError):
    """The requested entity does not exist."""

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class InvalidArgumentError(DomainError):
    """Input is malformed or out of range."""


class InvalidOperationError(DomainError):
    """A business rule forbids the requested operation."""


class InvalidStateTransition(InvalidOperationError):
    """Raised when a status change violates a state machine."""


class UnauthorizedError(DomainError):
    """The actor does not own the entity it is trying to change."""
