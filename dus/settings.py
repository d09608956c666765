from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Discovery
    label_namespace: str = os.getenv("DUS_LABEL_NAMESPACE", "com.caddyserver.http")
    docker_host: str | None = os.getenv("DUS_DOCKER_HOST")
    retry_delay_s: float = _env_float("DUS_RETRY_DELAY_S", 0.5)

    # Logging
    log_level: str = os.getenv("DUS_LOG_LEVEL", "INFO").upper()
    event_log_size: int = _env_int("DUS_EVENT_LOG_SIZE", 200)

    # API
    api_host: str = os.getenv("DUS_API_HOST", "0.0.0.0")
    api_port: int = _env_int("DUS_API_PORT", 8000)

    @property
    def label_enable(self) -> str:
        return f"{self.label_namespace}.enable"


settings = Settings()
