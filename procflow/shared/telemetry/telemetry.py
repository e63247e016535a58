"""OpenTelemetry distributed tracing configuration.

Spans cover HTTP requests, SQL round-trips, Redis publishes and the
engine's own operations (graph generation, block execution, validation
decisions, reconciliation). OTLP is the only remote exporter.
"""

from __future__ import annotations

import logging
import threading

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from sqlalchemy.ext.asyncio import AsyncEngine

from procflow.core.config import Settings

logger = logging.getLogger(__name__)

# Probes are polled constantly and carry no engine work.
_EXCLUDED_URLS = "/api/v1/health,/api/v1/health/ready"


class TelemetryConfig:
    """OpenTelemetry setup for procflow: tracer provider plus library instrumentation.

    Exporters: console, otlp, or none (spans are sampled but not exported).
    """

    def __init__(
        self,
        service_name: str,
        service_version: str,
        enabled: bool = True,
        environment: str = "development",
    ) -> None:
        self.service_name = service_name
        self.service_version = service_version
        self.enabled = enabled
        self.environment = environment
        self.tracer_provider: TracerProvider | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> TelemetryConfig:
        return cls(
            service_name=settings.app_name,
            service_version=settings.app_version,
            enabled=settings.telemetry_enabled,
            environment=settings.telemetry_environment,
        )

    def build_provider(self, sample_rate: float = 1.0) -> TracerProvider:
        """Return a tracer provider for this service (not yet installed globally).

        Child spans follow their parent's sampling decision, so one engine
        operation is either traced end to end or not at all.
        """
        resource = Resource(
            attributes={
                SERVICE_NAME: self.service_name,
                SERVICE_VERSION: self.service_version,
                "service.namespace": "procflow",
                "deployment.environment": self.environment,
            }
        )
        return TracerProvider(
            resource=resource, sampler=ParentBased(TraceIdRatioBased(sample_rate))
        )

    @staticmethod
    def build_exporter(exporter_type: str, otlp_endpoint: str | None) -> SpanExporter | None:
        """Return the span exporter for exporter_type; None for "none"."""
        match exporter_type:
            case "none":
                return None
            case "otlp" if otlp_endpoint:
                logger.info("Using OTLP span exporter: %s", otlp_endpoint)
                return OTLPSpanExporter(
                    endpoint=otlp_endpoint, insecure=otlp_endpoint.startswith("http://")
                )
            case "console":
                return ConsoleSpanExporter()
            case _:
                logger.warning("Unknown exporter type '%s', using console", exporter_type)
                return ConsoleSpanExporter()

    def setup_telemetry(
        self,
        exporter_type: str = "console",
        otlp_endpoint: str | None = None,
        sample_rate: float = 1.0,
    ) -> TracerProvider | None:
        """Install the tracer provider globally.

        Args:
            exporter_type: "console", "otlp", or "none".
            otlp_endpoint: OTLP gRPC endpoint (e.g. http://localhost:4317).
            sample_rate: Root sampling ratio within 0.0..1.0.

        Returns:
            TracerProvider, or None when telemetry is disabled or setup failed.
        """
        if not self.enabled:
            logger.info("Telemetry disabled")
            return None
        try:
            provider = self.build_provider(sample_rate)
            exporter = self.build_exporter(exporter_type, otlp_endpoint)
            if exporter is not None:
                provider.add_span_processor(BatchSpanProcessor(exporter))
            trace.set_tracer_provider(provider)
        except Exception:
            logger.exception("Failed to initialize telemetry")
            return None
        self.tracer_provider = provider
        logger.info(
            "OpenTelemetry initialized: service=%s, version=%s, exporter=%s, sample_rate=%.2f",
            self.service_name,
            self.service_version,
            exporter_type,
            sample_rate,
        )
        return provider

    def instrument_fastapi(self, app: FastAPI) -> None:
        """Instrument FastAPI routes (health probes excluded)."""
        if not self.tracer_provider:
            return
        try:
            FastAPIInstrumentor.instrument_app(
                app, tracer_provider=self.tracer_provider, excluded_urls=_EXCLUDED_URLS
            )
            logger.info("FastAPI instrumentation enabled")
        except Exception:
            logger.exception("Failed to instrument FastAPI")

    def instrument_sqlalchemy(self, engine: AsyncEngine) -> None:
        """Instrument the async engine's SQL round-trips."""
        if not self.tracer_provider:
            return
        try:
            SQLAlchemyInstrumentor().instrument(
                engine=engine.sync_engine, tracer_provider=self.tracer_provider
            )
            logger.info("SQLAlchemy instrumentation enabled")
        except Exception:
            logger.exception("Failed to instrument SQLAlchemy")

    def instrument_redis(self) -> None:
        """Instrument the Redis client used by the event emitter."""
        if not self.tracer_provider:
            return
        try:
            RedisInstrumentor().instrument(tracer_provider=self.tracer_provider)
            logger.info("Redis instrumentation enabled")
        except Exception:
            logger.exception("Failed to instrument Redis")

    def shutdown(self) -> None:
        """Flush remaining spans and shut the tracer provider down."""
        if self.tracer_provider is None:
            return
        try:
            self.tracer_provider.shutdown()
        except Exception:
            logger.exception("Error during telemetry shutdown")


_telemetry: TelemetryConfig | None = None
_telemetry_lock = threading.RLock()


def get_telemetry() -> TelemetryConfig | None:
    """Return the global telemetry instance (set at startup)."""
    with _telemetry_lock:
        return _telemetry


def set_telemetry(telemetry: TelemetryConfig | None) -> None:
    """Set (or clear, with None) the global telemetry instance."""
    global _telemetry
    with _telemetry_lock:
        _telemetry = telemetry


def configure_telemetry(settings: Settings, app: FastAPI) -> TelemetryConfig | None:
    """Set up tracing from settings and instrument app; None when disabled.

    Called once from the lifespan. The SQL engine is instrumented lazily
    when it is first created (see persistence.database).
    """
    if not settings.telemetry_enabled:
        return None
    telemetry = TelemetryConfig.from_settings(settings)
    if telemetry.setup_telemetry(
        exporter_type=settings.telemetry_exporter,
        otlp_endpoint=settings.telemetry_otlp_endpoint,
        sample_rate=settings.telemetry_sample_rate,
    ) is None:
        return None
    set_telemetry(telemetry)
    telemetry.instrument_fastapi(app)
    if settings.redis_enabled:
        telemetry.instrument_redis()
    return telemetry
