"""
Subscriber Directory

Read side of the subscriptions table. Signup and confirmation live
elsewhere; this module only answers "who is confirmed right now".
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from email_validator import EmailNotValidError, validate_email

from ..database.adapter import DatabaseAdapter

logger = logging.getLogger(__name__)

CONFIRMED = "confirmed"


def parse_subscriber_email(raw: str) -> str:
    """Validate a stored address; raises EmailNotValidError."""
    return validate_email(raw, check_deliverability=False).normalized


class SubscriberDirectory(ABC):

    @abstractmethod
    async def list_confirmed_subscribers(self) -> List[str]:
        """Snapshot of confirmed subscriber addresses."""
        ...

    @abstractmethod
    async def is_confirmed(self, email: str) -> bool:
        """Whether `email` is still a confirmed subscriber."""
        ...


class SqlSubscriberDirectory(SubscriberDirectory):
    """
    Subscriber directory backed by the `subscriptions` table.

    Rows with an address that no longer validates are skipped with a
    warning instead of failing the whole publish.
    """

    def __init__(self, db: DatabaseAdapter):
        self._db = db

    async def list_confirmed_subscribers(self) -> List[str]:
        rows = await self._db.fetch(
            "SELECT email FROM subscriptions WHERE status = $1 ORDER BY subscribed_at ASC",
            CONFIRMED
        )

        emails: List[str] = []
        for row in rows:
            try:
                emails.append(parse_subscriber_email(row["email"]))
            except EmailNotValidError as e:
                logger.warning(
                    f"Skipping a confirmed subscriber. Their stored contact details are invalid: {e}"
                )
        return emails

    async def is_confirmed(self, email: str) -> bool:
        row = await self._db.fetchrow(
            "SELECT 1 AS found FROM subscriptions WHERE LOWER(email) = LOWER($1) AND status = $2",
            email,
            CONFIRMED
        )
        return row is not None
