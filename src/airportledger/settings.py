from __future__ import annotations

import os
from dataclasses import dataclass, field

ENV_PREFIX = "AIRPORTLEDGER_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default).strip()


def _env_bool(name: str, default: bool) -> bool:
    return _env(name, "true" if default else "false").lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    sweep_interval_seconds: int = 30
    boarding_window_minutes: int = 30
    max_delay_minutes: int = 480
    currency: str = "USD"
    autosave: bool = True
    sample_seed: int | None = None
    sample_flights: int = 8
    storage_backend: str = "memory"
    bus_backend: str = "memory"
    kafka_bootstrap_servers: str = "127.0.0.1:9092"
    kafka_client_id: str = "airportledger-producer"
    log_level: str = "INFO"
    log_json: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"])

    @classmethod
    def from_env(cls) -> Settings:
        raw_seed = _env("SAMPLE_SEED", "")
        raw_origins = _env("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
        origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
        settings = cls(
            sweep_interval_seconds=_env_int("SWEEP_INTERVAL_SECONDS", 30),
            boarding_window_minutes=_env_int("BOARDING_WINDOW_MINUTES", 30),
            max_delay_minutes=_env_int("MAX_DELAY_MINUTES", 480),
            currency=_env("CURRENCY", "USD").upper(),
            autosave=_env_bool("AUTOSAVE", True),
            sample_seed=int(raw_seed) if raw_seed else None,
            sample_flights=_env_int("SAMPLE_FLIGHTS", 8),
            storage_backend=_env("STORAGE_BACKEND", "memory").lower(),
            bus_backend=_env("BUS_BACKEND", "memory").lower(),
            kafka_bootstrap_servers=_env("KAFKA_BOOTSTRAP_SERVERS", "127.0.0.1:9092"),
            kafka_client_id=_env("KAFKA_CLIENT_ID", "airportledger-producer"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON", False),
            cors_origins=["*"] if "*" in origins else origins,
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.boarding_window_minutes < 0:
            raise ValueError("boarding_window_minutes must not be negative")
        if self.max_delay_minutes <= 0:
            raise ValueError("max_delay_minutes must be positive")
        if self.storage_backend not in {"memory", "supabase"}:
            raise ValueError("Unsupported AIRPORTLEDGER_STORAGE_BACKEND. Use 'memory' or 'supabase'.")
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level {self.log_level!r}")
