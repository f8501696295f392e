from __future__ import annotations

import pytest

from airportledger.settings import Settings


def test_defaults_from_empty_environment(monkeypatch) -> None:
    for name in ("SWEEP_INTERVAL_SECONDS", "STORAGE_BACKEND", "BUS_BACKEND", "SAMPLE_SEED", "CORS_ORIGINS"):
        monkeypatch.delenv(f"AIRPORTLEDGER_{name}", raising=False)

    settings = Settings.from_env()

    assert settings.sweep_interval_seconds == 30
    assert settings.boarding_window_minutes == 30
    assert settings.max_delay_minutes == 480
    assert settings.storage_backend == "memory"
    assert settings.sample_seed is None
    assert settings.cors_origins == ["http://localhost:5173", "http://127.0.0.1:5173"]


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("AIRPORTLEDGER_SWEEP_INTERVAL_SECONDS", "5")
    monkeypatch.setenv("AIRPORTLEDGER_BUS_BACKEND", " Kafka ")
    monkeypatch.setenv("AIRPORTLEDGER_SAMPLE_SEED", "42")
    monkeypatch.setenv("AIRPORTLEDGER_AUTOSAVE", "off")
    monkeypatch.setenv("AIRPORTLEDGER_CORS_ORIGINS", "https://ops.example.com, *")
    monkeypatch.setenv("AIRPORTLEDGER_LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.sweep_interval_seconds == 5
    assert settings.bus_backend == "kafka"
    assert settings.sample_seed == 42
    assert settings.autosave is False
    assert settings.cors_origins == ["*"]
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("SWEEP_INTERVAL_SECONDS", "0"),
        ("SWEEP_INTERVAL_SECONDS", "soon"),
        ("STORAGE_BACKEND", "postgres"),
        ("LOG_LEVEL", "LOUD"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(f"AIRPORTLEDGER_{name}", value)

    with pytest.raises(ValueError):
        Settings.from_env()
