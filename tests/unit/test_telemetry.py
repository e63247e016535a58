"""Tests for TelemetryConfig construction, exporter selection and span attributes."""

import inspect

from fastapi import FastAPI
from opentelemetry.sdk.trace.export import ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased

from procflow.core.config import Settings
from procflow.domain.enums import TaskStatus
from procflow.shared.telemetry.telemetry import (
    TelemetryConfig,
    configure_telemetry,
    get_telemetry,
)
from procflow.shared.telemetry.tracing import _call_attributes


def test_from_settings_copies_service_identity() -> None:
    settings = Settings(
        _env_file=None, app_version="2.3.0", telemetry_environment="staging"
    )
    telemetry = TelemetryConfig.from_settings(settings)
    assert telemetry.service_name == "procflow"
    assert telemetry.service_version == "2.3.0"
    assert telemetry.environment == "staging"
    assert telemetry.enabled is False


def test_disabled_setup_installs_nothing() -> None:
    telemetry = TelemetryConfig("procflow", "1.0.0", enabled=False)
    assert telemetry.setup_telemetry(exporter_type="none") is None
    assert telemetry.tracer_provider is None


def test_configure_telemetry_disabled_returns_none() -> None:
    assert configure_telemetry(Settings(_env_file=None), FastAPI()) is None
    assert get_telemetry() is None


def test_provider_carries_resource_and_parent_based_sampler() -> None:
    telemetry = TelemetryConfig("procflow", "1.0.0", environment="test")
    provider = telemetry.build_provider(sample_rate=0.5)
    attributes = provider.resource.attributes
    assert attributes["service.name"] == "procflow"
    assert attributes["service.namespace"] == "procflow"
    assert attributes["deployment.environment"] == "test"
    assert isinstance(provider.sampler, ParentBased)


def test_exporter_selection() -> None:
    assert TelemetryConfig.build_exporter("none", None) is None
    assert isinstance(TelemetryConfig.build_exporter("console", None), ConsoleSpanExporter)
    # otlp without an endpoint falls back to the console exporter
    assert isinstance(TelemetryConfig.build_exporter("otlp", None), ConsoleSpanExporter)
    assert isinstance(TelemetryConfig.build_exporter("zipkin", None), ConsoleSpanExporter)


def test_instrumentation_is_skipped_without_provider() -> None:
    telemetry = TelemetryConfig("procflow", "1.0.0", enabled=False)
    telemetry.instrument_fastapi(FastAPI())
    telemetry.instrument_redis()
    telemetry.shutdown()


def test_call_attributes_keep_ids_and_drop_payloads() -> None:
    async def validate(self, task_id, level, actor_id, comment=None): ...

    signature = inspect.signature(validate)
    attributes = _call_attributes(
        signature, (object(), "task-1", 2, "mona"), {"comment": "looks good"}
    )
    assert attributes == {
        "procflow.task_id": "task-1",
        "procflow.level": "2",
        "procflow.actor_id": "mona",
    }


def test_call_attributes_unwrap_enums() -> None:
    def change_status(task_id, new_status, actor_id):
        pass

    attributes = _call_attributes(
        inspect.signature(change_status), ("task-1", TaskStatus.DONE, None), {}
    )
    assert attributes == {"procflow.task_id": "task-1", "procflow.new_status": "done"}
