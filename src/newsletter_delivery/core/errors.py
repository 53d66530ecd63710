"""
Domain Error Taxonomy

Errors raised by the command intake, the delivery queue and the
dispatcher. The HTTP layer maps these onto wire responses in
`api.shared.exceptions`.
"""

from typing import Any, Dict, List, Optional


class NewsletterError(Exception):
    """Base class for all domain errors."""


class ValidationError(NewsletterError):
    """Bad input to a command. The caller's fault; never retried."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class InvalidContentError(ValidationError):
    """Issue content is missing a title or both body representations."""


class ConflictError(NewsletterError):
    """A command collided with another in-flight command."""


class IdempotencyConflictError(ConflictError):
    """
    Two requests with the same idempotency key raced past the lookup.

    The caller should re-issue the request; the retry resolves to the
    stored response.
    """

    def __init__(self, owner_id: str, idempotency_key: str):
        super().__init__(
            f"Concurrent request with idempotency key '{idempotency_key}' is in progress"
        )
        self.owner_id = owner_id
        self.idempotency_key = idempotency_key


class DeliveryError(NewsletterError):
    """Base class for per-recipient delivery failures."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class TransientDeliveryError(DeliveryError):
    """Recoverable delivery failure (rate limit, 5xx, timeout)."""


class PermanentDeliveryError(DeliveryError):
    """Unrecoverable delivery failure for this recipient (bad address, 4xx)."""


class StorageError(NewsletterError):
    """The durable store is unreachable or rejected the operation."""


class UniqueViolation(StorageError):
    """A uniqueness constraint rejected a write."""
