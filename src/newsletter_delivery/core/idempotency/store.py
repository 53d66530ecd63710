"""
Idempotency Store

Durable mapping from (owner_id, idempotency_key) to the response first
computed for that command. Records are written once, inside the same
transaction as the work they describe, and only read afterwards.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from ..database.adapter import DatabaseAdapter, Transaction
from ..timeutils import Clock, from_db_timestamp, to_db_timestamp, utc_now

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 64


class CachedResponse(BaseModel):
    """The status and exact body bytes returned for a command."""

    status_code: int
    body: bytes
    idempotent_hit: bool = False


class IdempotencyRecord(BaseModel):
    owner_id: str
    idempotency_key: str
    response_status: int
    response_body: bytes
    created_at: datetime = Field(default_factory=utc_now)

    def to_response(self, idempotent_hit: bool) -> CachedResponse:
        return CachedResponse(
            status_code=self.response_status,
            body=self.response_body,
            idempotent_hit=idempotent_hit,
        )


class IdempotencyStore:

    def __init__(self, db: DatabaseAdapter, clock: Clock = utc_now):
        self._db = db
        self._clock = clock

    async def get(self, owner_id: str, idempotency_key: str) -> Optional[IdempotencyRecord]:
        row = await self._db.fetchrow(
            """
            SELECT owner_id, idempotency_key, response_status, response_body, created_at
            FROM idempotency_records
            WHERE owner_id = $1 AND idempotency_key = $2
            """,
            owner_id,
            idempotency_key
        )
        if row is None:
            return None
        return IdempotencyRecord(
            owner_id=row["owner_id"],
            idempotency_key=row["idempotency_key"],
            response_status=row["response_status"],
            response_body=bytes(row["response_body"]),
            created_at=from_db_timestamp(row["created_at"]),
        )

    async def save(self, tx: Transaction, record: IdempotencyRecord) -> None:
        """
        Insert the record inside the caller's transaction.

        Raises UniqueViolation if a concurrent command already stored a
        record for the same (owner_id, idempotency_key).
        """
        await tx.execute(
            """
            INSERT INTO idempotency_records (
                owner_id, idempotency_key, response_status, response_body, created_at
            ) VALUES ($1, $2, $3, $4, $5)
            """,
            record.owner_id,
            record.idempotency_key,
            record.response_status,
            record.response_body,
            to_db_timestamp(record.created_at),
        )

    async def purge_older_than(self, retention: timedelta) -> int:
        """Drop records past the retention window; their keys become reusable."""
        cutoff = to_db_timestamp(self._clock() - retention)
        deleted = await self._db.execute(
            "DELETE FROM idempotency_records WHERE created_at < $1",
            cutoff
        )
        logger.info(f"Purged {deleted} idempotency records created before {cutoff}")
        return deleted
