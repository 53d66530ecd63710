"""
Issue Store

Issues are written once, inside the command intake transaction, and are
read-only afterwards.
"""

import logging
from typing import Any, Dict, Optional

from ..database.adapter import DatabaseAdapter, Transaction
from ..timeutils import Clock, from_db_timestamp, to_db_timestamp, utc_now
from .models import Issue, IssueContent

logger = logging.getLogger(__name__)


def _row_to_issue(row: Dict[str, Any]) -> Issue:
    return Issue(
        issue_id=row["issue_id"],
        title=row["title"],
        html_body=row["html_body"],
        text_body=row["text_body"],
        created_at=from_db_timestamp(row["created_at"]),
    )


class IssueStore:

    def __init__(self, db: DatabaseAdapter, clock: Clock = utc_now):
        self._db = db
        self._clock = clock

    async def insert(self, tx: Transaction, content: IssueContent) -> Issue:
        """Create the issue record inside the caller's transaction."""
        issue = Issue(
            title=content.title,
            html_body=content.html_body,
            text_body=content.text_body,
            created_at=self._clock(),
        )
        await tx.execute(
            """
            INSERT INTO newsletter_issues (issue_id, title, html_body, text_body, created_at)
            VALUES ($1, $2, $3, $4, $5)
            """,
            issue.issue_id,
            issue.title,
            issue.html_body,
            issue.text_body,
            to_db_timestamp(issue.created_at),
        )
        logger.debug("Inserted issue %s", issue.issue_id)
        return issue

    async def get(self, issue_id: str) -> Optional[Issue]:
        row = await self._db.fetchrow(
            "SELECT * FROM newsletter_issues WHERE issue_id = $1",
            issue_id
        )
        return _row_to_issue(row) if row else None

    async def count(self) -> int:
        return int(await self._db.fetchval("SELECT COUNT(*) AS count FROM newsletter_issues") or 0)
