"""
Durable Fan-out Delivery

One accepted issue becomes one delivery task per confirmed subscriber.
Workers claim tasks, send them and record the outcome.

Usage:
    from newsletter_delivery.core.delivery import DeliveryQueue, DeliveryWorker

    queue = DeliveryQueue(db, retry_policy=settings.retry_policy)
    worker = DeliveryWorker(queue, IssueStore(db), transport)
    await worker.start()
"""

from .models import DeliveryOutcome, DeliveryState, DeliveryTask, OutcomeKind
from .backoff import compute_backoff
from .queue import DeliveryQueue, LEASE_EXPIRED_ERROR
from .dispatcher import DeliveryWorker, ExecutionOutcome, WorkerPool
from .inspection import FailedDelivery, FailedDeliveryInspector

__all__ = [
    "DeliveryOutcome",
    "DeliveryState",
    "DeliveryTask",
    "OutcomeKind",
    "compute_backoff",
    "DeliveryQueue",
    "LEASE_EXPIRED_ERROR",
    "DeliveryWorker",
    "ExecutionOutcome",
    "WorkerPool",
    "FailedDelivery",
    "FailedDeliveryInspector",
]
