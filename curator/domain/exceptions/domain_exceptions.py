"""Domain-specific exceptions.

These exceptions represent curation rule violations and collaborator
failures. Resolution errors are recovered inside the application layer;
persistence errors are surfaced to the operator.
"""


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize domain exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ResourceNotFoundError(DomainException):
    """Raised when a requested resource does not exist."""

    pass


class ItemNotFoundError(ResourceNotFoundError):
    """Raised when a member identifier no longer resolves to a live item."""

    def __init__(self, item_id: str, details: dict | None = None) -> None:
        super().__init__(f"Item not found: {item_id}", details={"item_id": item_id, **(details or {})})
        self.item_id = item_id


class ContainerNotFoundError(ResourceNotFoundError):
    """Raised when the curated container does not exist."""

    def __init__(self, container_id: str, details: dict | None = None) -> None:
        super().__init__(
            f"Container not found: {container_id}",
            details={"container_id": container_id, **(details or {})},
        )
        self.container_id = container_id


class ServiceError(DomainException):
    """Raised when a collaborator service fails for a reason other than 404."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.status_code = status_code
        self.retryable = retryable


class PersistenceError(DomainException):
    """Raised when the membership update call fails.

    Never retried automatically; ``retryable`` only tells the operator
    whether re-issuing the edit is likely to succeed.
    """

    def __init__(self, message: str, *, retryable: bool = False, details: dict | None = None) -> None:
        super().__init__(message, details=details)
        self.retryable = retryable


class ContainerTypeMismatchError(DomainException):
    """Raised when a container does not accept the session's item kind."""

    pass


class SessionClosedError(DomainException):
    """Raised when an operation is attempted on a torn-down session."""

    pass
