"""
Newsletter Delivery API
=======================

Thin HTTP surface over the command processor and the operator inspection
views. Authentication is handled upstream.

Usage:
    uvicorn newsletter_delivery.api.main:app --host 0.0.0.0 --port 9200
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .. import __version__
from ..core.config import Settings, get_settings
from ..core.database.adapter import DatabaseAdapter
from ..core.database.schema import ensure_schema
from ..core.delivery.inspection import FailedDeliveryInspector
from ..core.delivery.queue import DeliveryQueue
from ..core.delivery.runner import build_transport, build_worker_pool
from ..core.idempotency.processor import CommandProcessor
from ..core.observability.logging import configure_logging
from ..core.observability.metrics import init_metrics
from ..core.observability.tracing import init_tracing
from ..core.subscribers.directory import SqlSubscriberDirectory, SubscriberDirectory
from ..core.transport.base import EmailTransport
from .routers import admin_router, health_router, newsletters_router
from .shared.middleware import register_error_handlers

logger = logging.getLogger(__name__)

API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "9200"))


def create_app(
    db: Optional[DatabaseAdapter] = None,
    directory: Optional[SubscriberDirectory] = None,
    transport: Optional[EmailTransport] = None,
    settings: Optional[Settings] = None,
    init_observability: bool = False,
) -> FastAPI:
    """
    Build the application.

    Components are wired eagerly onto `app.state`; the lifespan only
    connects the store, creates the schema and, when configured, starts
    the worker pool in this process.
    """
    settings = settings or get_settings()
    db = db or DatabaseAdapter()
    directory = directory or SqlSubscriberDirectory(db)

    queue = DeliveryQueue(
        db,
        retry_policy=settings.retry_policy,
        lease_seconds=settings.lease_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan - startup and shutdown."""
        if init_observability:
            configure_logging(level=settings.log_level, structured=settings.log_structured)
            init_tracing(service_version=__version__, otlp_endpoint=settings.otlp_endpoint)
            init_metrics(otlp_endpoint=settings.otlp_endpoint)

        for issue in settings.validate():
            logger.warning(f"Config: {issue}")

        await db.connect()
        await ensure_schema(db)

        pool = None
        pool_transport = None
        if settings.run_in_process:
            pool_transport = transport or build_transport(settings)
            pool = build_worker_pool(db, pool_transport, settings)
            await pool.start()
            app.state.worker_pool = pool

        yield

        if pool:
            await pool.stop()
            app.state.worker_pool = None
        if pool_transport is not None and transport is None:
            await pool_transport.aclose()
        await db.disconnect()

    app = FastAPI(
        title="Newsletter Delivery API",
        description="Idempotent newsletter publishing with durable fan-out",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = db
    app.state.queue = queue
    app.state.processor = CommandProcessor(db, directory, queue=queue)
    app.state.inspector = FailedDeliveryInspector(db)
    app.state.worker_pool = None

    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(newsletters_router)
    app.include_router(admin_router)

    return app


app = create_app(init_observability=True)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "newsletter_delivery.api.main:app",
        host=API_HOST,
        port=API_PORT,
    )
