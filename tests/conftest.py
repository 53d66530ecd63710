"""
Shared Test Fixtures

Every test gets its own SQLite file under tmp_path, a frozen clock it can
move forward, and in-memory fakes for the subscriber directory and the
email transport.
"""

import pytest

from newsletter_delivery.core.config import RetryPolicy
from newsletter_delivery.core.database import DatabaseAdapter, DatabaseConfig, ensure_schema
from newsletter_delivery.core.delivery import DeliveryQueue, DeliveryWorker
from newsletter_delivery.core.idempotency import CommandProcessor
from newsletter_delivery.core.issues import IssueContent, IssueStore

from .fakes import SUBSCRIBERS, FrozenClock, RecordingTransport, StaticSubscriberDirectory


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def retry_policy():
    """No backoff delay, so retries are due on the very next claim."""
    return RetryPolicy(max_attempts=3, base_delay_seconds=0, max_delay_seconds=0, jitter=0)


@pytest.fixture
async def db(tmp_path):
    adapter = DatabaseAdapter(
        DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "newsletter.db"))
    )
    await adapter.connect()
    await ensure_schema(adapter)
    yield adapter
    await adapter.disconnect()


@pytest.fixture
def directory():
    return StaticSubscriberDirectory(SUBSCRIBERS)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def queue(db, clock, retry_policy):
    return DeliveryQueue(db, retry_policy=retry_policy, lease_seconds=120, clock=clock)


@pytest.fixture
def processor(db, directory, queue, clock):
    return CommandProcessor(db, directory, queue=queue, clock=clock)


@pytest.fixture
def make_worker(db, queue, transport):
    def _make(worker_id: str = "worker-0", **kwargs) -> DeliveryWorker:
        return DeliveryWorker(
            queue,
            IssueStore(db),
            kwargs.pop("transport", transport),
            worker_id=worker_id,
            idle_interval=0.01,
            **kwargs,
        )
    return _make


@pytest.fixture
def sample_content():
    return IssueContent(
        title="January Update",
        html_body="<p>Happy new year</p>",
        text_body="Happy new year",
    )
