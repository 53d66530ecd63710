"""
Integration tests for the failed delivery inspection view.
"""

import pytest

from newsletter_delivery.core.delivery import DeliveryOutcome, FailedDeliveryInspector
from newsletter_delivery.core.issues import IssueContent, IssueStore


async def _issue_with_failures(db, queue, title, recipients, reason):
    async with db.transaction() as tx:
        issue = await IssueStore(db).insert(tx, IssueContent(title=title, text_body="b"))
        await queue.enqueue(tx, issue.issue_id, recipients)
    for _ in recipients:
        task = await queue.claim_one("worker-1")
        await queue.resolve(task, DeliveryOutcome.permanent(reason))
    return issue.issue_id


class TestFailedDeliveryInspector:

    @pytest.mark.asyncio
    async def test_nothing_failed(self, db):
        inspector = FailedDeliveryInspector(db)

        assert await inspector.list_failed() == []
        assert await inspector.count_failed() == 0
        assert await inspector.summary() == {
            "total_count": 0,
            "by_reason": {},
            "oldest_failure": None,
        }

    @pytest.mark.asyncio
    async def test_lists_failures_with_issue_title(self, db, queue):
        issue_id = await _issue_with_failures(
            db, queue, "Weekly", ["a@example.com", "b@example.com"], "HTTP 422"
        )
        inspector = FailedDeliveryInspector(db)

        failed = await inspector.list_failed()

        assert len(failed) == 2
        assert {f.recipient_email for f in failed} == {"a@example.com", "b@example.com"}
        assert all(f.issue_id == issue_id for f in failed)
        assert all(f.issue_title == "Weekly" for f in failed)
        assert all(f.attempt_count == 1 for f in failed)
        assert failed[0].to_dict()["last_error"] == "HTTP 422"

    @pytest.mark.asyncio
    async def test_filter_and_paginate(self, db, queue):
        first = await _issue_with_failures(
            db, queue, "One", ["a@example.com", "b@example.com", "c@example.com"], "bounced"
        )
        await _issue_with_failures(db, queue, "Two", ["d@example.com"], "HTTP 400")
        inspector = FailedDeliveryInspector(db)

        assert await inspector.count_failed() == 4
        assert await inspector.count_failed(issue_id=first) == 3

        page_one = await inspector.list_failed(limit=2, offset=0, issue_id=first)
        page_two = await inspector.list_failed(limit=2, offset=2, issue_id=first)
        assert len(page_one) == 2
        assert len(page_two) == 1
        assert {f.task_id for f in page_one}.isdisjoint({f.task_id for f in page_two})

    @pytest.mark.asyncio
    async def test_summary_groups_by_reason(self, db, queue, clock):
        await _issue_with_failures(db, queue, "One", ["a@example.com", "b@example.com"], "bounced")
        await _issue_with_failures(db, queue, "Two", ["c@example.com"], "HTTP 400")

        summary = await FailedDeliveryInspector(db).summary()

        assert summary["total_count"] == 3
        assert summary["by_reason"] == {"bounced": 2, "HTTP 400": 1}
        assert summary["oldest_failure"] == clock().isoformat()

    @pytest.mark.asyncio
    async def test_inspection_is_read_only(self, db, queue):
        await _issue_with_failures(db, queue, "One", ["a@example.com"], "bounced")
        inspector = FailedDeliveryInspector(db)

        await inspector.list_failed()
        await inspector.summary()

        assert (await queue.stats())["failed"] == 1
        assert await queue.claim_one("worker-1") is None
