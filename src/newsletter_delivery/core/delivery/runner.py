"""
Delivery Dispatcher Runner

Standalone process running a pool of delivery workers. Run as many of
these as needed; they coordinate only through the delivery queue.

Usage:
    python -m newsletter_delivery.core.delivery.runner

Environment Variables:
    DATABASE_BACKEND / SQLITE_PATH / DATABASE_URL: store selection
    DELIVERY_WORKERS: Workers in this process (default: 4)
    DELIVERY_IDLE_INTERVAL: Seconds to sleep when nothing is due (default: 1.0)
    DELIVERY_MAX_ATTEMPTS: Failed attempts before a task is terminal (default: 5)
    DELIVERY_LEASE_SECONDS: Claim lease before a task is reclaimable (default: 120)
    EMAIL_API_BASE_URL / EMAIL_SENDER / EMAIL_AUTH_TOKEN: email API
    LOG_LEVEL: Logging level (default: INFO)
"""

import sys
import signal
import asyncio
import logging
from typing import Optional

from ..config import Settings, get_settings
from ..database.adapter import DatabaseAdapter
from ..database.schema import ensure_schema
from ..issues.store import IssueStore
from ..observability.logging import configure_logging
from ..observability.metrics import init_metrics
from ..observability.tracing import init_tracing
from ..subscribers.directory import SqlSubscriberDirectory
from ..transport.base import EmailTransport
from ..transport.http_client import HttpEmailClient
from .dispatcher import DeliveryWorker, WorkerPool
from .queue import DeliveryQueue

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def build_worker_pool(
    db: DatabaseAdapter,
    transport: EmailTransport,
    settings: Settings,
) -> WorkerPool:
    """Wire a WorkerPool from settings."""
    queue = DeliveryQueue(
        db,
        retry_policy=settings.retry_policy,
        lease_seconds=settings.lease_seconds,
    )
    issues = IssueStore(db)
    directory = SqlSubscriberDirectory(db)

    def make_worker(worker_id: str) -> DeliveryWorker:
        return DeliveryWorker(
            queue,
            issues,
            transport,
            worker_id=worker_id,
            idle_interval=settings.idle_interval,
            send_timeout=settings.send_timeout,
            directory=directory,
            skip_unsubscribed=settings.skip_unsubscribed,
        )

    return WorkerPool(make_worker, size=settings.workers)


def build_transport(settings: Settings) -> EmailTransport:
    return HttpEmailClient(
        base_url=settings.email_base_url,
        sender=settings.email_sender,
        auth_token=settings.email_auth_token,
        timeout=settings.email_timeout,
    )


class DispatcherRunner:
    """
    Manages the worker pool lifecycle with graceful shutdown.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.pool: Optional[WorkerPool] = None
        self._shutdown_event = asyncio.Event()
        self._shutdown_requested = False

    def _setup_signal_handlers(self):
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in _SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self._handle_shutdown_signal, sig)

    def _remove_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in _SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)

    def _handle_shutdown_signal(self, sig: signal.Signals):
        """Handle shutdown signal."""
        if self._shutdown_requested:
            logger.warning(f"Received {sig.name} again, forcing exit")
            sys.exit(1)

        logger.info(f"Received {sig.name}, initiating graceful shutdown")
        self.request_shutdown()

    def request_shutdown(self):
        self._shutdown_requested = True
        self._shutdown_event.set()

    async def run(self, db: Optional[DatabaseAdapter] = None, transport: Optional[EmailTransport] = None):
        """Run the worker pool until shutdown is requested."""
        settings = self.settings

        logger.info("Starting delivery dispatcher")
        logger.info(f"  Workers: {settings.workers}")
        logger.info(f"  Idle interval: {settings.idle_interval}s")
        logger.info(f"  Max attempts: {settings.retry_policy.max_attempts}")
        logger.info(f"  Lease: {settings.lease_seconds}s")

        for issue in settings.validate():
            logger.warning(f"Config: {issue}")

        db = db or DatabaseAdapter()

        try:
            self._setup_signal_handlers()
            transport = transport or build_transport(settings)

            await db.connect()
            await ensure_schema(db)

            self.pool = build_worker_pool(db, transport, settings)
            await self.pool.start()
            logger.info("Delivery dispatcher is running")

            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Delivery dispatcher error: {e}", exc_info=True)
            raise
        finally:
            logger.info("Stopping delivery dispatcher")
            if self.pool:
                await self.pool.stop()
            if transport is not None:
                await transport.aclose()
            await db.disconnect()
            self._remove_signal_handlers()
            logger.info("Delivery dispatcher stopped")

    async def health_check(self) -> dict:
        """Return health status for monitoring."""
        running = bool(self.pool and self.pool.running)
        return {
            "status": "healthy" if running else "unhealthy",
            "running": running,
            "shutdown_requested": self._shutdown_requested
        }


async def main():
    """Main entry point."""
    settings = get_settings()
    configure_logging(level=settings.log_level, structured=settings.log_structured)
    init_tracing(otlp_endpoint=settings.otlp_endpoint)
    init_metrics(otlp_endpoint=settings.otlp_endpoint)

    runner = DispatcherRunner(settings)
    await runner.run()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
