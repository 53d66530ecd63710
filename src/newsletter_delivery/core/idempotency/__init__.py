"""
Idempotent Command Intake

Usage:
    from newsletter_delivery.core.idempotency import CommandProcessor

    processor = CommandProcessor(db, directory)
    response = await processor.submit(owner_id, idempotency_key, content)
    if response.idempotent_hit:
        # Same bytes as the first time; nothing new was enqueued
        ...
"""

from .processor import CommandProcessor, normalize_idempotency_key, ACCEPTED_STATUS
from .store import CachedResponse, IdempotencyRecord, IdempotencyStore, MAX_KEY_LENGTH

__all__ = [
    "CommandProcessor",
    "normalize_idempotency_key",
    "ACCEPTED_STATUS",
    "CachedResponse",
    "IdempotencyRecord",
    "IdempotencyStore",
    "MAX_KEY_LENGTH",
]
