"""
Delivery Task Queue

Durable multi-consumer work queue backed by the `delivery_tasks` table.

Claim protocol:
- `claim_one` runs in its own short transaction. It first reaps rows whose
  lease has expired, then moves one due PENDING row to IN_FLIGHT under a
  fresh claim token and commits before returning. On PostgreSQL the row is
  picked with `FOR UPDATE SKIP LOCKED`, so concurrent claimers never block
  on each other's rows. On SQLite `BEGIN IMMEDIATE` serializes claimers.
- `resolve` only applies while the caller's claim token is still current.
  If the lease expired and another worker reclaimed the row, the late
  resolve is ignored.
"""

import logging
import random
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from ..config import RetryPolicy
from ..database.adapter import DatabaseAdapter, Transaction
from ..observability.metrics import record_counter
from ..observability.tracing import create_span
from ..timeutils import Clock, to_db_timestamp, utc_now
from .backoff import compute_backoff
from .models import DeliveryOutcome, DeliveryState, DeliveryTask, OutcomeKind

logger = logging.getLogger(__name__)

LEASE_EXPIRED_ERROR = "lease expired"

_CLAIM_SQLITE = """
UPDATE delivery_tasks
SET state = $1, claimed_by = $2, claim_token = $3, lease_expires_at = $4, updated_at = $5
WHERE task_id = (
    SELECT task_id FROM delivery_tasks
    WHERE state = $6 AND execute_after <= $7
    ORDER BY execute_after ASC
    LIMIT 1
)
RETURNING *
"""

_CLAIM_POSTGRES = """
UPDATE delivery_tasks
SET state = $1, claimed_by = $2, claim_token = $3, lease_expires_at = $4, updated_at = $5
WHERE task_id = (
    SELECT task_id FROM delivery_tasks
    WHERE state = $6 AND execute_after <= $7
    ORDER BY execute_after ASC
    LIMIT 1
    FOR UPDATE SKIP LOCKED
)
RETURNING *
"""

_EXPIRED_SQLITE = """
SELECT task_id, attempt_count FROM delivery_tasks
WHERE state = $1 AND lease_expires_at <= $2
LIMIT $3
"""

_EXPIRED_POSTGRES = """
SELECT task_id, attempt_count FROM delivery_tasks
WHERE state = $1 AND lease_expires_at <= $2
LIMIT $3
FOR UPDATE SKIP LOCKED
"""


def _normalize_recipients(recipients: Iterable[str]) -> List[str]:
    # Deduplicate case-insensitively while preserving order.
    seen: set = set()
    out: List[str] = []
    for raw in recipients:
        email = str(raw or "").strip()
        if not email:
            continue
        key = email.casefold()
        if key in seen:
            continue
        seen.add(key)
        out.append(email)
    return out


class DeliveryQueue:
    """
    The fan-out target of a publish command.

    Usage:
        queue = DeliveryQueue(db, retry_policy=RetryPolicy(max_attempts=5))

        task = await queue.claim_one("worker-1")
        if task:
            outcome = await transport.send(...)
            await queue.resolve(task, outcome)
    """

    def __init__(
        self,
        db: DatabaseAdapter,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        lease_seconds: float = 120.0,
        reap_batch_size: int = 100,
        clock: Clock = utc_now,
        rng: Optional[random.Random] = None,
    ):
        self._db = db
        self.retry_policy = retry_policy or RetryPolicy()
        self.lease_seconds = lease_seconds
        self.reap_batch_size = reap_batch_size
        self._clock = clock
        self._rng = rng

    def _now(self) -> datetime:
        return self._clock()

    async def enqueue(self, tx: Transaction, issue_id: str, recipients: Iterable[str]) -> int:
        """
        Insert one PENDING task per distinct recipient inside `tx`.

        Returns the number of tasks created. The (issue_id, recipient_email)
        uniqueness constraint backs the de-duplication done here.
        """
        now = to_db_timestamp(self._now())
        emails = _normalize_recipients(recipients)
        await tx.executemany(
            """
            INSERT INTO delivery_tasks (
                task_id, issue_id, recipient_email, state, attempt_count,
                execute_after, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (issue_id, recipient_email) DO NOTHING
            """,
            [
                (str(uuid4()), issue_id, email, DeliveryState.PENDING.value, 0, now, now, now)
                for email in emails
            ],
        )
        logger.debug("Enqueued %d delivery tasks for issue %s", len(emails), issue_id)
        return len(emails)

    async def claim_one(self, worker_id: str) -> Optional[DeliveryTask]:
        """
        Atomically claim one due PENDING task for `worker_id`.

        Returns None when nothing is due. The claim is committed before this
        returns, so the caller holds no database lock while sending.
        """
        now = self._now()
        now_iso = to_db_timestamp(now)
        lease_iso = to_db_timestamp(now + timedelta(seconds=self.lease_seconds))

        with create_span("delivery.claim", {"worker_id": worker_id}) as span:
            async with self._db.transaction() as tx:
                await self._reap_expired(tx, now)
                query = _CLAIM_POSTGRES if tx.is_postgres else _CLAIM_SQLITE
                row = await tx.fetchrow(
                    query,
                    DeliveryState.IN_FLIGHT.value,
                    worker_id,
                    str(uuid4()),
                    lease_iso,
                    now_iso,
                    DeliveryState.PENDING.value,
                    now_iso,
                )
            span.set_attribute("claimed", row is not None)

        if row is None:
            return None

        task = DeliveryTask.from_row(row)
        logger.debug(
            "Worker %s claimed task %s (issue=%s attempt=%d)",
            worker_id, task.task_id, task.issue_id, task.attempt_count
        )
        return task

    async def _reap_expired(self, tx: Transaction, now: datetime) -> int:
        """Return expired IN_FLIGHT rows to PENDING, counting the lost attempt."""
        now_iso = to_db_timestamp(now)
        query = _EXPIRED_POSTGRES if tx.is_postgres else _EXPIRED_SQLITE
        rows = await tx.fetch(query, DeliveryState.IN_FLIGHT.value, now_iso, self.reap_batch_size)

        for row in rows:
            attempts = row["attempt_count"] + 1
            exhausted = attempts >= self.retry_policy.max_attempts
            state = DeliveryState.FAILED if exhausted else DeliveryState.PENDING
            await tx.execute(
                """
                UPDATE delivery_tasks
                SET state = $1, attempt_count = $2, last_error = $3, execute_after = $4,
                    claimed_by = NULL, claim_token = NULL, lease_expires_at = NULL,
                    updated_at = $5, completed_at = $6
                WHERE task_id = $7 AND state = $8
                """,
                state.value,
                attempts,
                LEASE_EXPIRED_ERROR,
                now_iso,
                now_iso,
                now_iso if exhausted else None,
                row["task_id"],
                DeliveryState.IN_FLIGHT.value,
            )
            logger.warning(
                "Delivery task %s lease expired (attempt %d), now %s",
                row["task_id"], attempts, state.value
            )
            record_counter("delivery_leases_expired_total", 1, {"state": state.value})

        return len(rows)

    async def reap_expired_leases(self) -> int:
        """Run the lease reaper on its own (operator tooling, tests)."""
        async with self._db.transaction() as tx:
            return await self._reap_expired(tx, self._now())

    async def resolve(self, task: DeliveryTask, outcome: DeliveryOutcome) -> Optional[DeliveryState]:
        """
        Record the outcome of a send attempt for a claimed task.

        - SUCCESS moves the task to DONE.
        - TRANSIENT_FAILURE counts one attempt and reschedules with backoff,
          or moves to FAILED once `max_attempts` attempts have failed.
        - PERMANENT_FAILURE moves straight to FAILED.

        Returns the new state, or None if the claim was no longer held.
        """
        now = self._now()
        now_iso = to_db_timestamp(now)
        attempts = task.attempt_count
        execute_after = task.execute_after
        completed_at: Optional[str] = now_iso
        last_error = outcome.reason

        if outcome.kind == OutcomeKind.SUCCESS:
            state = DeliveryState.DONE
            last_error = None
        elif outcome.kind == OutcomeKind.PERMANENT_FAILURE:
            state = DeliveryState.FAILED
            attempts += 1
        else:
            attempts += 1
            if attempts >= self.retry_policy.max_attempts:
                state = DeliveryState.FAILED
            else:
                state = DeliveryState.PENDING
                completed_at = None
                delay = compute_backoff(attempts, self.retry_policy, self._rng)
                execute_after = now + timedelta(seconds=delay)

        updated = await self._db.execute(
            """
            UPDATE delivery_tasks
            SET state = $1, attempt_count = $2, execute_after = $3, last_error = $4,
                claimed_by = NULL, claim_token = NULL, lease_expires_at = NULL,
                updated_at = $5, completed_at = $6
            WHERE task_id = $7 AND state = $8 AND claim_token = $9
            """,
            state.value,
            attempts,
            to_db_timestamp(execute_after),
            last_error[:1000] if last_error else None,
            now_iso,
            completed_at,
            task.task_id,
            DeliveryState.IN_FLIGHT.value,
            task.claim_token,
        )

        if updated != 1:
            logger.warning(
                "Ignoring outcome %s for task %s: claim %s no longer held",
                outcome.kind.value, task.task_id, task.claim_token
            )
            return None

        if state == DeliveryState.FAILED:
            logger.error(
                "Delivery task %s to %s failed permanently after %d attempt(s): %s",
                task.task_id, task.recipient_email, attempts, last_error
            )
        elif state == DeliveryState.PENDING:
            logger.warning(
                "Delivery task %s failed (attempt %d), retry at %s: %s",
                task.task_id, attempts, execute_after.isoformat(), last_error
            )
        else:
            logger.debug("Delivery task %s done", task.task_id)

        record_counter("deliveries_total", 1, {"outcome": outcome.kind.value, "state": state.value})
        return state

    async def get_task(self, task_id: str) -> Optional[DeliveryTask]:
        row = await self._db.fetchrow("SELECT * FROM delivery_tasks WHERE task_id = $1", task_id)
        return DeliveryTask.from_row(row) if row else None

    async def list_tasks(self, issue_id: str) -> List[DeliveryTask]:
        rows = await self._db.fetch(
            "SELECT * FROM delivery_tasks WHERE issue_id = $1 ORDER BY recipient_email ASC",
            issue_id
        )
        return [DeliveryTask.from_row(row) for row in rows]

    async def stats(self, issue_id: Optional[str] = None) -> Dict[str, int]:
        """Count tasks per state, optionally for one issue."""
        if issue_id:
            rows = await self._db.fetch(
                """
                SELECT state, COUNT(*) AS count FROM delivery_tasks
                WHERE issue_id = $1 GROUP BY state
                """,
                issue_id
            )
        else:
            rows = await self._db.fetch(
                "SELECT state, COUNT(*) AS count FROM delivery_tasks GROUP BY state"
            )

        stats = {state.value: 0 for state in DeliveryState}
        for row in rows:
            stats[row["state"]] = int(row["count"])
        return stats

    async def purge_delivered(self, older_than: timedelta) -> int:
        """Delete DONE tasks completed before `now - older_than`."""
        cutoff = to_db_timestamp(self._now() - older_than)
        deleted = await self._db.execute(
            "DELETE FROM delivery_tasks WHERE state = $1 AND completed_at < $2",
            DeliveryState.DONE.value,
            cutoff
        )
        logger.info(f"Purged {deleted} delivered tasks completed before {cutoff}")
        return deleted
