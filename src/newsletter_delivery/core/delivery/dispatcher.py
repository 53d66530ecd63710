"""
Delivery Dispatcher

Workers poll the delivery queue, claim one task at a time, send through
the email transport and record the outcome. Workers share nothing but the
queue, so scaling out is starting more of them, in this process or in
others.
"""

import asyncio
import logging
import os
import socket
import time
from enum import Enum
from typing import List, Optional

from ..issues.store import IssueStore
from ..observability.metrics import record_histogram
from ..observability.tracing import create_span
from ..subscribers.directory import SubscriberDirectory
from ..transport.base import EmailContent, EmailTransport
from ..transport.classification import classify_exception
from .models import DeliveryOutcome, DeliveryTask
from .queue import DeliveryQueue

logger = logging.getLogger(__name__)

UNSUBSCRIBED_REASON = "recipient no longer confirmed"


class ExecutionOutcome(str, Enum):
    TASK_COMPLETED = "task_completed"
    EMPTY_QUEUE = "empty_queue"


def default_worker_id(index: int = 0) -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{index}"


class DeliveryWorker:
    """
    One dispatcher loop.

    Features:
    - Claims due tasks one at a time
    - Sends outside any database transaction
    - Classifies every send result into success / transient / permanent
    - Sleeps `idle_interval` when the queue has nothing due
    """

    def __init__(
        self,
        queue: DeliveryQueue,
        issues: IssueStore,
        transport: EmailTransport,
        *,
        worker_id: Optional[str] = None,
        idle_interval: float = 1.0,
        send_timeout: float = 30.0,
        directory: Optional[SubscriberDirectory] = None,
        skip_unsubscribed: bool = False,
    ):
        self.worker_id = worker_id or default_worker_id()
        self.queue = queue
        self.issues = issues
        self.transport = transport
        self.idle_interval = idle_interval
        self.send_timeout = send_timeout
        self.directory = directory
        self.skip_unsubscribed = skip_unsubscribed and directory is not None
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the worker loop in the background."""
        if self._running:
            return

        self._running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name=f"delivery-worker-{self.worker_id}")
        logger.info(f"DeliveryWorker {self.worker_id} started")

    async def stop(self, grace_period: Optional[float] = None):
        """
        Stop the worker loop.

        A delivery already in progress is allowed to finish and record its
        outcome. Only when it is still running after `grace_period` seconds
        (default: the send timeout plus a small margin) is the loop
        cancelled, leaving the task to the lease reaper.
        """
        self._running = False
        self._stop_event.set()
        if self._task:
            if grace_period is None:
                grace_period = self.send_timeout + 5.0
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout=grace_period)
            except asyncio.TimeoutError:
                logger.warning(
                    f"DeliveryWorker {self.worker_id} did not finish within {grace_period}s, cancelling"
                )
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None
        logger.info(f"DeliveryWorker {self.worker_id} stopped")

    async def _idle(self):
        """Sleep `idle_interval`, waking early on stop."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.idle_interval)
        except asyncio.TimeoutError:
            pass

    async def _run(self):
        """Main processing loop."""
        while self._running:
            try:
                outcome = await self.try_execute_task()
                if outcome == ExecutionOutcome.EMPTY_QUEUE:
                    await self._idle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                # A claimed task left IN_FLIGHT here is recovered by the lease reaper.
                logger.error(f"DeliveryWorker {self.worker_id} error: {e}", exc_info=True)
                await self._idle()

    async def run_until_empty(self, max_iterations: Optional[int] = None) -> int:
        """Process due tasks until none is left; returns how many were handled."""
        handled = 0
        while max_iterations is None or handled < max_iterations:
            if await self.try_execute_task() == ExecutionOutcome.EMPTY_QUEUE:
                break
            handled += 1
        return handled

    async def try_execute_task(self) -> ExecutionOutcome:
        """Claim, send and resolve a single task."""
        task = await self.queue.claim_one(self.worker_id)
        if task is None:
            return ExecutionOutcome.EMPTY_QUEUE

        with create_span(
            "delivery.execute",
            {"task_id": task.task_id, "issue_id": task.issue_id, "attempt": task.attempt_count},
        ) as span:
            outcome = await self._deliver(task)
            span.set_attribute("outcome", outcome.kind.value)
            await self.queue.resolve(task, outcome)

        return ExecutionOutcome.TASK_COMPLETED

    async def _deliver(self, task: DeliveryTask) -> DeliveryOutcome:
        issue = await self.issues.get(task.issue_id)
        if issue is None:
            return DeliveryOutcome.permanent(f"issue {task.issue_id} not found")

        if self.skip_unsubscribed and not await self.directory.is_confirmed(task.recipient_email):
            logger.info(f"Skipping task {task.task_id}: {UNSUBSCRIBED_REASON}")
            return DeliveryOutcome.permanent(UNSUBSCRIBED_REASON)

        content = EmailContent(title=issue.title, html=issue.html_body, text=issue.text_body)
        started = time.monotonic()
        try:
            outcome = await asyncio.wait_for(
                self.transport.send(task.recipient_email, content),
                timeout=self.send_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            outcome = classify_exception(e)
        finally:
            record_histogram("delivery_send_duration_seconds", time.monotonic() - started)

        if not isinstance(outcome, DeliveryOutcome):
            outcome = DeliveryOutcome.transient(f"transport returned {type(outcome).__name__}")
        return outcome


class WorkerPool:
    """
    N independent DeliveryWorkers in one process.

    Usage:
        pool = WorkerPool(lambda worker_id: DeliveryWorker(..., worker_id=worker_id), size=4)
        await pool.start()
        ...
        await pool.stop()
    """

    def __init__(self, worker_factory, size: int = 4):
        self.size = max(1, int(size))
        self._worker_factory = worker_factory
        self.workers: List[DeliveryWorker] = []

    @property
    def running(self) -> bool:
        return any(worker.running for worker in self.workers)

    async def start(self):
        if self.workers:
            return
        self.workers = [self._worker_factory(default_worker_id(i)) for i in range(self.size)]
        for worker in self.workers:
            await worker.start()
        logger.info(f"WorkerPool started with {self.size} worker(s)")

    async def stop(self):
        await asyncio.gather(*(worker.stop() for worker in self.workers))
        self.workers = []
        logger.info("WorkerPool stopped")
