"""
HTTP surface tests through httpx's ASGI transport.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from newsletter_delivery.api.main import create_app
from newsletter_delivery.core.config import Settings
from newsletter_delivery.core.delivery import DeliveryOutcome

PAYLOAD = {
    "title": "January Update",
    "content": {"html": "<p>Happy new year</p>", "text": "Happy new year"},
}


def _headers(key="key-1", publisher="publisher-1"):
    headers = {}
    if key is not None:
        headers["Idempotency-Key"] = key
    if publisher is not None:
        headers["X-Publisher-Id"] = publisher
    return headers


@pytest.fixture
def app(db, directory):
    return create_app(db=db, directory=directory, settings=Settings())


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestPublish:

    @pytest.mark.asyncio
    async def test_publish_accepted(self, client):
        response = await client.post("/newsletters", json=PAYLOAD, headers=_headers())

        assert response.status_code == 201
        assert response.headers["Idempotent-Replayed"] == "false"
        body = response.json()
        assert body["status"] == "accepted"
        assert body["recipients"] == 3
        assert body["title"] == "January Update"

    @pytest.mark.asyncio
    async def test_retry_replays_identical_response(self, client, app):
        first = await client.post("/newsletters", json=PAYLOAD, headers=_headers())
        second = await client.post("/newsletters", json=PAYLOAD, headers=_headers())

        assert second.status_code == first.status_code
        assert second.content == first.content
        assert second.headers["Idempotent-Replayed"] == "true"

        stats = await app.state.queue.stats()
        assert stats["pending"] == 3

    @pytest.mark.asyncio
    async def test_different_publishers_do_not_share_keys(self, client):
        first = await client.post("/newsletters", json=PAYLOAD, headers=_headers(publisher="p-1"))
        second = await client.post("/newsletters", json=PAYLOAD, headers=_headers(publisher="p-2"))

        assert second.headers["Idempotent-Replayed"] == "false"
        assert first.json()["issue_id"] != second.json()["issue_id"]

    @pytest.mark.asyncio
    async def test_missing_publisher_is_401(self, client):
        response = await client.post("/newsletters", json=PAYLOAD, headers=_headers(publisher=None))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_missing_key_is_400(self, client):
        response = await client.post("/newsletters", json=PAYLOAD, headers=_headers(key=None))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_oversized_key_is_400(self, client):
        response = await client.post("/newsletters", json=PAYLOAD, headers=_headers(key="k" * 65))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_empty_title_is_400_with_details(self, client, app):
        payload = {"title": "  ", "content": {"html": "", "text": "body"}}

        response = await client.post("/newsletters", json=payload, headers=_headers())

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "title"
        assert (await app.state.queue.stats())["pending"] == 0

    @pytest.mark.asyncio
    async def test_malformed_body_is_400(self, client):
        response = await client.post(
            "/newsletters", json={"title": "No content"}, headers=_headers()
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestAdmin:

    @pytest.mark.asyncio
    async def test_failed_deliveries_listed(self, client, app):
        published = await client.post("/newsletters", json=PAYLOAD, headers=_headers())
        issue_id = published.json()["issue_id"]
        task = await app.state.queue.claim_one("worker-1")
        await app.state.queue.resolve(task, DeliveryOutcome.permanent("HTTP 422"))

        response = await client.get("/admin/deliveries/failed", params={"issue_id": issue_id})

        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["total"] == 1
        assert body["meta"]["has_more"] is False
        assert body["data"][0]["recipient_email"] == task.recipient_email
        assert body["data"][0]["last_error"] == "HTTP 422"
        assert body["data"][0]["issue_title"] == "January Update"

    @pytest.mark.asyncio
    async def test_failed_summary(self, client, app):
        await client.post("/newsletters", json=PAYLOAD, headers=_headers())
        task = await app.state.queue.claim_one("worker-1")
        await app.state.queue.resolve(task, DeliveryOutcome.permanent("bounced"))

        response = await client.get("/admin/deliveries/failed/summary")

        assert response.json()["by_reason"] == {"bounced": 1}

    @pytest.mark.asyncio
    async def test_stats(self, client, app):
        await client.post("/newsletters", json=PAYLOAD, headers=_headers())
        task = await app.state.queue.claim_one("worker-1")
        await app.state.queue.resolve(task, DeliveryOutcome.success())

        response = await client.get("/admin/deliveries/stats")

        assert response.json() == {"pending": 2, "in_flight": 0, "done": 1, "failed": 0}

    @pytest.mark.asyncio
    async def test_limit_validated(self, client):
        response = await client.get("/admin/deliveries/failed", params={"limit": 0})

        assert response.status_code == 400


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready(self, client):
        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "healthy"
