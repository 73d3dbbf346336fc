"""Telemetry for the storefront service.

Traces and metrics are exported over OTLP when ``TELEMETRY_ENABLED`` is set
(the default). With telemetry disabled the OpenTelemetry API falls back to its
no-op providers, so every instrument below stays safe to call.
"""
import logging
from typing import Tuple
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
import pyroscope

from config import (
    API_VERSION,
    DEPLOYMENT_ENVIRONMENT,
    OTEL_EXPORTER_OTLP_ENDPOINT,
    PROFILING_ENABLED,
    PYROSCOPE_SERVER,
    SERVICE_NAME,
    TELEMETRY_ENABLED
)

logger = logging.getLogger(__name__)

METRIC_EXPORT_INTERVAL_MS = 5000


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": API_VERSION,
        "deployment.environment": DEPLOYMENT_ENVIRONMENT
    })


def init_telemetry() -> Tuple[trace.Tracer, metrics.Meter]:
    """
    Install OTLP-exporting tracer and meter providers.

    Returns:
        Tracer and meter bound to the new providers
    """
    resource = _resource()

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(BatchSpanProcessor(
        OTLPSpanExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True)
    ))
    trace.set_tracer_provider(tracer_provider)

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True),
        export_interval_millis=METRIC_EXPORT_INTERVAL_MS
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))

    logger.info(f"Telemetry exporting to {OTEL_EXPORTER_OTLP_ENDPOINT}")
    return trace.get_tracer(__name__), metrics.get_meter(__name__)


def init_profiling() -> None:
    """Start Pyroscope continuous profiling when enabled."""
    if not PROFILING_ENABLED:
        logger.info("Profiling disabled")
        return
    try:
        pyroscope.configure(
            application_name=SERVICE_NAME,
            server_address=PYROSCOPE_SERVER,
            tags={"env": DEPLOYMENT_ENVIRONMENT, "version": API_VERSION}
        )
        logger.info(f"Profiling initialized with server: {PYROSCOPE_SERVER}")
    except Exception as e:
        logger.warning(f"Failed to initialize profiling: {e}")


if TELEMETRY_ENABLED:
    tracer, meter = init_telemetry()
else:
    tracer = trace.get_tracer(__name__)
    meter = metrics.get_meter(__name__)

# Catalog metrics
product_views_counter = meter.create_counter(
    "storefront.products.views",
    description="Total number of catalog listings served, by category and sort",
    unit="1"
)

product_detail_views_counter = meter.create_counter(
    "storefront.products.detail_views",
    description="Total number of individual product detail views",
    unit="1"
)

# Cart metrics
cart_additions_counter = meter.create_counter(
    "storefront.cart.additions",
    description="Total number of add-to-cart operations",
    unit="1"
)

cart_merges_counter = meter.create_counter(
    "storefront.cart.merges",
    description="Add-to-cart operations merged into an existing line",
    unit="1"
)

cart_removals_counter = meter.create_counter(
    "storefront.cart.removals",
    description="Total number of cart lines removed (explicitly or by zero quantity)",
    unit="1"
)

stale_cart_lines_counter = meter.create_counter(
    "storefront.cart.stale_lines",
    description="Cart lines rendered without a product because it was removed",
    unit="1"
)

# Currency metrics
rate_refresh_failures_counter = meter.create_counter(
    "storefront.currency.refresh_failures",
    description="Failed exchange rate refresh attempts",
    unit="1"
)

external_rates_duration_histogram = meter.create_histogram(
    "storefront.external.exchange_rates.duration",
    description="Duration of exchange rate source calls",
    unit="s"
)

# Admin metrics
catalog_changes_counter = meter.create_counter(
    "storefront.admin.catalog_changes",
    description="Product create/update/delete operations",
    unit="1"
)

# Security monitoring metrics
auth_failures_counter = meter.create_counter(
    "storefront.auth.failures",
    description="Total number of authentication failures",
    unit="1"
)

auth_attempts_counter = meter.create_counter(
    "storefront.auth.attempts",
    description="Total number of authentication attempts",
    unit="1"
)

rate_limit_exceeded_counter = meter.create_counter(
    "storefront.rate_limit.exceeded",
    description="Total number of rate limit violations",
    unit="1"
)

suspicious_activity_counter = meter.create_counter(
    "storefront.security.suspicious_activity",
    description="Total number of suspicious activity detections",
    unit="1"
)
