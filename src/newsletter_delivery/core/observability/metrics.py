"""
OpenTelemetry Metrics

Counters and histograms for command intake and delivery.
"""

import logging
from typing import Optional, Dict, Any

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME

logger = logging.getLogger(__name__)

SERVICE = "newsletter-delivery"

# Global meter
_meter: Optional[metrics.Meter] = None

# Metric instruments
_counters: Dict[str, metrics.Counter] = {}
_histograms: Dict[str, metrics.Histogram] = {}


def init_metrics(
    service_name: str = SERVICE,
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
    export_interval_ms: int = 60000
) -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Args:
        service_name: Name of the service
        otlp_endpoint: OTLP exporter endpoint
        console_export: Enable console export for debugging
        export_interval_ms: Export interval in milliseconds

    Returns:
        Configured meter
    """
    global _meter

    readers = []

    if otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True)
        readers.append(PeriodicExportingMetricReader(
            otlp_exporter,
            export_interval_millis=export_interval_ms
        ))
        logger.info(f"OTel metrics: OTLP exporter configured -> {otlp_endpoint}")

    if console_export:
        readers.append(PeriodicExportingMetricReader(
            ConsoleMetricExporter(),
            export_interval_millis=export_interval_ms
        ))
        logger.info("OTel metrics: Console exporter enabled")

    resource = Resource.create({SERVICE_NAME: service_name})

    provider = MeterProvider(resource=resource, metric_readers=readers)
    metrics.set_meter_provider(provider)

    _meter = metrics.get_meter(service_name)
    _init_standard_metrics()

    logger.info(f"OTel metrics initialized: {service_name}")

    return _meter


def _init_standard_metrics():
    """Create the service's instruments on the current meter."""
    meter = get_meter()

    _counters["newsletter_issues_published_total"] = meter.create_counter(
        "newsletter_issues_published_total",
        description="Publish commands accepted",
        unit="1"
    )

    _counters["idempotent_replays_total"] = meter.create_counter(
        "idempotent_replays_total",
        description="Publish commands answered from the idempotency store",
        unit="1"
    )

    _counters["deliveries_total"] = meter.create_counter(
        "deliveries_total",
        description="Delivery attempts resolved, by outcome",
        unit="1"
    )

    _counters["delivery_leases_expired_total"] = meter.create_counter(
        "delivery_leases_expired_total",
        description="In-flight deliveries reclaimed after lease expiry",
        unit="1"
    )

    _histograms["delivery_send_duration_seconds"] = meter.create_histogram(
        "delivery_send_duration_seconds",
        description="Email transport call duration",
        unit="s"
    )


def get_meter() -> metrics.Meter:
    """Get the global meter."""
    global _meter
    if _meter is None:
        _meter = metrics.get_meter(SERVICE)
    return _meter


def record_counter(
    name: str,
    value: int = 1,
    attributes: Dict[str, Any] = None
):
    """Record a counter metric. No-op until `init_metrics` has run."""
    if name in _counters:
        _counters[name].add(value, attributes or {})


def record_histogram(
    name: str,
    value: float,
    attributes: Dict[str, Any] = None
):
    """Record a histogram metric. No-op until `init_metrics` has run."""
    if name in _histograms:
        _histograms[name].record(value, attributes or {})
