"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus counters for registrations, pins, auth failures,
    follow toggles and image-host errors

Both are initialised once at startup and injected into FastAPI via middleware.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter

from pinboard.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
USERS_REGISTERED_TOTAL = Counter(
    "users_registered_total",
    "Total number of accounts created",
)

PINS_CREATED_TOTAL = Counter(
    "pins_created_total",
    "Total number of pins created",
)

AUTH_FAILURES_TOTAL = Counter(
    "auth_failures_total",
    "Requests rejected by the auth dependency or by login",
    ["reason"],  # 'missing_cookie' | 'invalid_token' | 'unknown_user' | 'bad_credentials'
)

FOLLOW_TOGGLES_TOTAL = Counter(
    "follow_toggles_total",
    "Follow graph mutations",
    ["action"],  # 'follow' or 'unfollow'
)

IMAGE_STORE_ERRORS_TOTAL = Counter(
    "image_store_errors_total",
    "Failed calls to the image host",
    ["op"],  # 'upload' or 'delete'
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing() -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    if not settings.otel_enabled:
        logger.info("OTel tracing disabled")
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_otlp_endpoint,
            insecure=True,
        )
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info(
            "OTel tracing configured → %s", settings.otel_exporter_otlp_endpoint
        )
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)

    # Auto-instrument the database and image host so their spans appear in traces
    SQLAlchemyInstrumentor().instrument()
    BotocoreInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    if settings.otel_enabled:
        FastAPIInstrumentor.instrument_app(app)
