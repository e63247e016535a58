"""Tests for Settings range validation."""

import pytest
from pydantic import ValidationError

from procflow.core.config import MAX_BULK_CHUNK_SIZE, Settings


def test_defaults_are_valid() -> None:
    settings = Settings(_env_file=None)
    assert settings.bulk_chunk_size == MAX_BULK_CHUNK_SIZE
    assert settings.actor_header_name == "X-User-ID"


@pytest.mark.parametrize(
    "overrides",
    [
        {"bulk_chunk_size": 0},
        {"bulk_chunk_size": MAX_BULK_CHUNK_SIZE + 1},
        {"emitter_timeout_seconds": 0},
        {"telemetry_sample_rate": 1.5},
        {"telemetry_enabled": True, "telemetry_exporter": "otlp"},
    ],
)
def test_out_of_range_values_are_rejected(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)
