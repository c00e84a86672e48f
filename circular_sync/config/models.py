"""Pydantic models describing the sync worker configuration."""

from __future__ import annotations

import re
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

_DURATION_PATTERN = re.compile(r"(?P<value>\d+)(?P<unit>[smhd])", re.IGNORECASE)
_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}
_SQLITE_PREFIX = "sqlite:///"


def parse_duration(value: str) -> timedelta:
    """Parse spans such as ``5m``, ``90s`` or ``1h30m`` into a timedelta."""

    text = value.strip().lower()
    if not text:
        raise ValueError("duration cannot be empty")
    total = timedelta()
    index = 0
    for match in _DURATION_PATTERN.finditer(text):
        if match.start() != index:
            raise ValueError(f"unsupported duration format: {value}")
        unit = _DURATION_UNITS[match.group("unit").lower()]
        total += timedelta(**{unit: int(match.group("value"))})
        index = match.end()
    if index != len(text):
        raise ValueError(f"unsupported duration format: {value}")
    return total


class SyncConfig(BaseModel):
    """Settings for one circular sync worker."""

    connection_string: str
    site_url: str
    cycle_wait: timedelta
    cleanup_period: timedelta = Field(default=timedelta(hours=6))
    recent_window: int = 25
    page_size: int = 100
    request_timeout: float = 30.0
    log_dir: Path = Field(default=Path("logs"))

    @field_validator("cycle_wait", "cleanup_period", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return timedelta(seconds=value)
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return timedelta(seconds=int(text))
            return parse_duration(text)
        return value

    @field_validator("connection_string", "site_url")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("value cannot be empty")
        return value

    @field_validator("log_dir", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_bounds(self) -> "SyncConfig":
        if self.cycle_wait <= timedelta():
            raise ValueError("cycle_wait must be positive")
        if self.cleanup_period <= timedelta():
            raise ValueError("cleanup_period must be positive")
        if self.recent_window < 0:
            raise ValueError("recent_window must be >= 0")
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        return self

    @property
    def database_path(self) -> Path:
        """SQLite database path resolved from the connection string."""

        raw = self.connection_string
        if raw.startswith(_SQLITE_PREFIX):
            raw = raw[len(_SQLITE_PREFIX):]
        return Path(raw).expanduser()


__all__ = ["SyncConfig", "parse_duration"]
