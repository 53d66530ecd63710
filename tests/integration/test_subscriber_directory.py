"""
Integration tests for the SQL-backed subscriber directory.
"""

import json
from uuid import uuid4

import pytest

from newsletter_delivery.core.idempotency import CommandProcessor
from newsletter_delivery.core.subscribers import SqlSubscriberDirectory


async def _subscribe(db, email, status="confirmed", at="2026-01-01T00:00:00.000000Z"):
    await db.execute(
        """
        INSERT INTO subscriptions (subscriber_id, email, name, status, subscribed_at)
        VALUES ($1, $2, $3, $4, $5)
        """,
        str(uuid4()), email, "Reader", status, at
    )


class TestSqlSubscriberDirectory:

    @pytest.mark.asyncio
    async def test_only_confirmed_in_signup_order(self, db):
        await _subscribe(db, "second@example.com", at="2026-01-02T00:00:00.000000Z")
        await _subscribe(db, "first@example.com", at="2026-01-01T00:00:00.000000Z")
        await _subscribe(db, "waiting@example.com", status="pending_confirmation")

        emails = await SqlSubscriberDirectory(db).list_confirmed_subscribers()

        assert emails == ["first@example.com", "second@example.com"]

    @pytest.mark.asyncio
    async def test_invalid_stored_address_skipped(self, db, caplog):
        await _subscribe(db, "good@example.com")
        await _subscribe(db, "not-an-email")

        emails = await SqlSubscriberDirectory(db).list_confirmed_subscribers()

        assert emails == ["good@example.com"]
        assert "invalid" in caplog.text

    @pytest.mark.asyncio
    async def test_is_confirmed_ignores_case(self, db):
        await _subscribe(db, "reader@example.com")
        await _subscribe(db, "left@example.com", status="unsubscribed")
        directory = SqlSubscriberDirectory(db)

        assert await directory.is_confirmed("Reader@Example.com")
        assert not await directory.is_confirmed("left@example.com")
        assert not await directory.is_confirmed("nobody@example.com")

    @pytest.mark.asyncio
    async def test_publish_reads_directory(self, db, queue, sample_content):
        await _subscribe(db, "one@example.com")
        await _subscribe(db, "two@example.com")
        await _subscribe(db, "broken")

        processor = CommandProcessor(db, SqlSubscriberDirectory(db), queue=queue)
        response = await processor.submit("publisher-1", "key-1", sample_content)

        assert json.loads(response.body)["recipients"] == 2
