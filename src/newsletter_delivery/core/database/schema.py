"""
Schema for the four durable tables.

newsletter_issues      one row per accepted publish command
delivery_tasks         one row per (issue, recipient) obligation
idempotency_records    one cached response per (owner, key)
subscriptions          the subscriber directory read at fan-out time

All timestamps are fixed-width UTC ISO-8601 text (see `timeutils`).
"""

import logging
from typing import List

from .adapter import DatabaseAdapter, DatabaseBackend

logger = logging.getLogger(__name__)


_COMMON_SQL = [
    """
    CREATE TABLE IF NOT EXISTS newsletter_issues (
      issue_id TEXT PRIMARY KEY,
      title TEXT NOT NULL,
      html_body TEXT NOT NULL,
      text_body TEXT NOT NULL,
      created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS delivery_tasks (
      task_id TEXT PRIMARY KEY,
      issue_id TEXT NOT NULL REFERENCES newsletter_issues (issue_id),
      recipient_email TEXT NOT NULL,
      state TEXT NOT NULL,
      attempt_count INTEGER NOT NULL DEFAULT 0,
      execute_after TEXT NOT NULL,
      last_error TEXT,
      claimed_by TEXT,
      claim_token TEXT,
      lease_expires_at TEXT,
      created_at TEXT NOT NULL,
      updated_at TEXT NOT NULL,
      completed_at TEXT,
      UNIQUE (issue_id, recipient_email)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_delivery_tasks_claimable
      ON delivery_tasks (state, execute_after)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_delivery_tasks_lease
      ON delivery_tasks (state, lease_expires_at)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_delivery_tasks_issue
      ON delivery_tasks (issue_id, state)
    """,
    """
    CREATE TABLE IF NOT EXISTS subscriptions (
      subscriber_id TEXT PRIMARY KEY,
      email TEXT NOT NULL UNIQUE,
      name TEXT NOT NULL DEFAULT '',
      status TEXT NOT NULL,
      subscribed_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_subscriptions_status
      ON subscriptions (status)
    """,
]

_SQLITE_SQL = [
    """
    CREATE TABLE IF NOT EXISTS idempotency_records (
      owner_id TEXT NOT NULL,
      idempotency_key TEXT NOT NULL,
      response_status INTEGER NOT NULL,
      response_body BLOB NOT NULL,
      created_at TEXT NOT NULL,
      PRIMARY KEY (owner_id, idempotency_key)
    )
    """,
]

_POSTGRES_SQL = [
    """
    CREATE TABLE IF NOT EXISTS idempotency_records (
      owner_id TEXT NOT NULL,
      idempotency_key TEXT NOT NULL,
      response_status SMALLINT NOT NULL,
      response_body BYTEA NOT NULL,
      created_at TEXT NOT NULL,
      PRIMARY KEY (owner_id, idempotency_key)
    )
    """,
]


def schema_statements(backend: DatabaseBackend) -> List[str]:
    extra = _POSTGRES_SQL if backend == DatabaseBackend.POSTGRESQL else _SQLITE_SQL
    return _COMMON_SQL + extra


async def ensure_schema(db: DatabaseAdapter) -> None:
    """Create tables and indexes if they do not exist yet."""
    await db.executescript(schema_statements(db.backend))
    logger.info(f"Schema ready on {db.backend.value}")
