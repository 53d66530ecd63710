"""
Delivery Models
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..timeutils import from_db_timestamp


class DeliveryState(str, Enum):
    """State of a delivery task."""
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"  # Terminal, surfaced for operator inspection

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryState.DONE, DeliveryState.FAILED)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class DeliveryOutcome:
    """The closed set of results a send attempt can have."""

    kind: OutcomeKind
    reason: Optional[str] = None

    @classmethod
    def success(cls) -> "DeliveryOutcome":
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def transient(cls, reason: str) -> "DeliveryOutcome":
        return cls(OutcomeKind.TRANSIENT_FAILURE, reason)

    @classmethod
    def permanent(cls, reason: str) -> "DeliveryOutcome":
        return cls(OutcomeKind.PERMANENT_FAILURE, reason)

    @property
    def is_success(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS


class DeliveryTask(BaseModel):
    """One obligation to deliver one issue to one recipient."""

    task_id: str
    issue_id: str
    recipient_email: str
    state: DeliveryState
    attempt_count: int = 0
    execute_after: datetime
    last_error: Optional[str] = None
    claimed_by: Optional[str] = None
    claim_token: Optional[str] = None
    lease_expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DeliveryTask":
        return cls(
            task_id=row["task_id"],
            issue_id=row["issue_id"],
            recipient_email=row["recipient_email"],
            state=DeliveryState(row["state"]),
            attempt_count=row["attempt_count"],
            execute_after=from_db_timestamp(row["execute_after"]),
            last_error=row.get("last_error"),
            claimed_by=row.get("claimed_by"),
            claim_token=row.get("claim_token"),
            lease_expires_at=from_db_timestamp(row.get("lease_expires_at")),
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row["updated_at"]),
            completed_at=from_db_timestamp(row.get("completed_at")),
        )
