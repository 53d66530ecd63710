"""
Failed Delivery Inspection

Read-only operator view over terminal FAILED delivery tasks. Nothing here
mutates the queue; failed tasks are never retried automatically.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..database.adapter import DatabaseAdapter
from ..timeutils import from_db_timestamp
from .models import DeliveryState

logger = logging.getLogger(__name__)


@dataclass
class FailedDelivery:
    """A delivery task that reached the terminal FAILED state."""
    task_id: str
    issue_id: str
    issue_title: Optional[str]
    recipient_email: str
    attempt_count: int
    last_error: Optional[str]
    created_at: datetime
    failed_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "issue_id": self.issue_id,
            "issue_title": self.issue_title,
            "recipient_email": self.recipient_email,
            "attempt_count": self.attempt_count,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "failed_at": self.failed_at.isoformat() if self.failed_at else None,
        }


class FailedDeliveryInspector:

    def __init__(self, db: DatabaseAdapter):
        self._db = db

    async def list_failed(
        self,
        limit: int = 100,
        offset: int = 0,
        issue_id: Optional[str] = None
    ) -> List[FailedDelivery]:
        """Failed tasks, most recently failed first."""
        if issue_id:
            rows = await self._db.fetch(
                """
                SELECT t.task_id, t.issue_id, i.title AS issue_title, t.recipient_email,
                       t.attempt_count, t.last_error, t.created_at,
                       COALESCE(t.completed_at, t.updated_at) AS failed_at
                FROM delivery_tasks t
                LEFT JOIN newsletter_issues i ON i.issue_id = t.issue_id
                WHERE t.state = $1 AND t.issue_id = $2
                ORDER BY failed_at DESC, t.task_id ASC
                LIMIT $3 OFFSET $4
                """,
                DeliveryState.FAILED.value, issue_id, limit, offset
            )
        else:
            rows = await self._db.fetch(
                """
                SELECT t.task_id, t.issue_id, i.title AS issue_title, t.recipient_email,
                       t.attempt_count, t.last_error, t.created_at,
                       COALESCE(t.completed_at, t.updated_at) AS failed_at
                FROM delivery_tasks t
                LEFT JOIN newsletter_issues i ON i.issue_id = t.issue_id
                WHERE t.state = $1
                ORDER BY failed_at DESC, t.task_id ASC
                LIMIT $2 OFFSET $3
                """,
                DeliveryState.FAILED.value, limit, offset
            )

        return [
            FailedDelivery(
                task_id=row["task_id"],
                issue_id=row["issue_id"],
                issue_title=row.get("issue_title"),
                recipient_email=row["recipient_email"],
                attempt_count=row["attempt_count"],
                last_error=row.get("last_error"),
                created_at=from_db_timestamp(row["created_at"]),
                failed_at=from_db_timestamp(row["failed_at"]),
            )
            for row in rows
        ]

    async def count_failed(self, issue_id: Optional[str] = None) -> int:
        if issue_id:
            result = await self._db.fetchrow(
                "SELECT COUNT(*) AS count FROM delivery_tasks WHERE state = $1 AND issue_id = $2",
                DeliveryState.FAILED.value, issue_id
            )
        else:
            result = await self._db.fetchrow(
                "SELECT COUNT(*) AS count FROM delivery_tasks WHERE state = $1",
                DeliveryState.FAILED.value
            )

        return int(result["count"]) if result else 0

    async def summary(self) -> Dict[str, Any]:
        """Totals by error reason and the oldest failure."""
        total = await self.count_failed()

        by_reason = await self._db.fetch(
            """
            SELECT COALESCE(last_error, 'unknown') AS reason, COUNT(*) AS count
            FROM delivery_tasks
            WHERE state = $1
            GROUP BY COALESCE(last_error, 'unknown')
            ORDER BY count DESC
            """,
            DeliveryState.FAILED.value
        )

        oldest = await self._db.fetchrow(
            """
            SELECT MIN(COALESCE(completed_at, updated_at)) AS oldest
            FROM delivery_tasks
            WHERE state = $1
            """,
            DeliveryState.FAILED.value
        )

        oldest_at = from_db_timestamp(oldest["oldest"]) if oldest else None
        return {
            "total_count": total,
            "by_reason": {row["reason"]: int(row["count"]) for row in by_reason},
            "oldest_failure": oldest_at.isoformat() if oldest_at else None,
        }
