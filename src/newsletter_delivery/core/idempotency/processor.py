"""
Idempotent Command Processor

Turns a publish command into an issue, its delivery tasks and a cached
response, in one transaction. A repeated command with the same
(owner_id, idempotency_key) gets the stored response back byte for byte
and changes nothing.

Usage:
    processor = CommandProcessor(db, directory)
    response = await processor.submit(owner_id, "key-123", IssueContent(...))
"""

import json
import logging
from typing import Optional

from ..database.adapter import DatabaseAdapter
from ..delivery.queue import DeliveryQueue
from ..errors import IdempotencyConflictError, UniqueViolation, ValidationError
from ..issues.models import Issue, IssueContent
from ..issues.store import IssueStore
from ..observability.metrics import record_counter
from ..observability.tracing import create_span
from ..subscribers.directory import SubscriberDirectory
from ..timeutils import Clock, utc_now
from .store import MAX_KEY_LENGTH, CachedResponse, IdempotencyRecord, IdempotencyStore

logger = logging.getLogger(__name__)

ACCEPTED_STATUS = 201


def normalize_idempotency_key(key: Optional[str]) -> str:
    """Keys are opaque and kept byte-for-byte; only blankness and length are checked."""
    value = key or ""
    if not value.strip():
        raise ValidationError(
            "Idempotency key must not be empty",
            details=[{"field": "idempotency_key", "message": "required", "code": "empty"}],
        )
    if len(value) > MAX_KEY_LENGTH:
        raise ValidationError(
            f"Idempotency key must be at most {MAX_KEY_LENGTH} characters",
            details=[{"field": "idempotency_key", "message": "too long", "code": "max_length"}],
        )
    return value


def render_accepted_body(issue: Issue, recipients: int) -> bytes:
    return json.dumps(
        {
            "issue_id": issue.issue_id,
            "title": issue.title,
            "status": "accepted",
            "recipients": recipients,
            "created_at": issue.created_at.isoformat().replace("+00:00", "Z"),
        },
        sort_keys=True,
    ).encode("utf-8")


class CommandProcessor:

    def __init__(
        self,
        db: DatabaseAdapter,
        directory: SubscriberDirectory,
        *,
        queue: Optional[DeliveryQueue] = None,
        issues: Optional[IssueStore] = None,
        idempotency: Optional[IdempotencyStore] = None,
        clock: Clock = utc_now,
    ):
        self._db = db
        self._directory = directory
        self._clock = clock
        self._queue = queue or DeliveryQueue(db, clock=clock)
        self._issues = issues or IssueStore(db, clock=clock)
        self._idempotency = idempotency or IdempotencyStore(db, clock=clock)

    async def submit(
        self,
        owner_id: str,
        idempotency_key: str,
        content: IssueContent,
    ) -> CachedResponse:
        """
        Accept a publish command at most once per (owner_id, idempotency_key).

        Raises:
            ValidationError / InvalidContentError: bad key or content
            IdempotencyConflictError: a concurrent command with the same key
                won the race but its record is not visible yet
            StorageError: the store failed; nothing was written
        """
        key = normalize_idempotency_key(idempotency_key)
        valid = content.validated()

        with create_span("newsletter.submit", {"owner_id": owner_id}) as span:
            cached = await self._idempotency.get(owner_id, key)
            if cached is not None:
                span.set_attribute("idempotent_hit", True)
                return self._replay(cached)

            recipients = await self._directory.list_confirmed_subscribers()

            try:
                response = await self._accept(owner_id, key, valid, recipients)
            except UniqueViolation:
                # Lost the race: the winner committed between our lookup and insert.
                cached = await self._idempotency.get(owner_id, key)
                if cached is None:
                    raise IdempotencyConflictError(owner_id, key)
                span.set_attribute("idempotent_hit", True)
                return self._replay(cached)

            span.set_attribute("idempotent_hit", False)
            return response

    async def _accept(
        self,
        owner_id: str,
        key: str,
        content: IssueContent,
        recipients: list,
    ) -> CachedResponse:
        async with self._db.transaction() as tx:
            issue = await self._issues.insert(tx, content)
            enqueued = await self._queue.enqueue(tx, issue.issue_id, recipients)
            record = IdempotencyRecord(
                owner_id=owner_id,
                idempotency_key=key,
                response_status=ACCEPTED_STATUS,
                response_body=render_accepted_body(issue, enqueued),
                created_at=self._clock(),
            )
            await self._idempotency.save(tx, record)

        logger.info(
            f"Accepted issue {issue.issue_id} from {owner_id}: {enqueued} delivery task(s) enqueued"
        )
        record_counter("newsletter_issues_published_total", 1)
        return record.to_response(idempotent_hit=False)

    def _replay(self, record: IdempotencyRecord) -> CachedResponse:
        logger.info(
            f"Replaying stored response for owner={record.owner_id} key={record.idempotency_key}"
        )
        record_counter("idempotent_replays_total", 1)
        return record.to_response(idempotent_hit=True)
