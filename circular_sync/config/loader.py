"""Configuration loading helpers: environment variables with a credentials file fallback."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError

from .models import SyncConfig

ENV_PREFIX = "CIRCULARS_"
# Any other suffix, or none, is read as JSON
YAML_EXTENSIONS = (".yaml", ".yml")

# Environment variable suffix -> SyncConfig field
ENV_FIELDS = {
    "DB_CONNECTION_STRING": "connection_string",
    "SITE_URL": "site_url",
    "CYCLE_WAIT": "cycle_wait",
    "CLEANUP_PERIOD": "cleanup_period",
    "RECENT_WINDOW": "recent_window",
    "PAGE_SIZE": "page_size",
    "REQUEST_TIMEOUT": "request_timeout",
    "LOG_DIR": "log_dir",
}

# Keys accepted in credentials files besides the field names themselves
FILE_ALIASES = {
    "ConnectionString": "connection_string",
    "SiteUrl": "site_url",
    "CycleWait": "cycle_wait",
}


class ConfigError(RuntimeError):
    """Raised when required settings are missing or invalid."""


def _read_file(path: Path) -> dict:
    if not path.exists():
        raise ConfigError(f"Credentials file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in YAML_EXTENSIONS:
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot parse credentials file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")
    return data


def _normalise_file_payload(payload: Mapping[str, object]) -> dict:
    normalised: dict = {}
    for key, value in payload.items():
        field = FILE_ALIASES.get(key, key)
        if field in SyncConfig.model_fields:
            normalised[field] = value
    return normalised


def _env_payload(environ: Mapping[str, str]) -> dict:
    payload: dict = {}
    for suffix, field in ENV_FIELDS.items():
        value = environ.get(f"{ENV_PREFIX}{suffix}")
        if value is not None:
            payload[field] = value
    return payload


def load_config(
    credentials_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SyncConfig:
    """Build the worker configuration.

    Environment variables win over the credentials file. The file is only
    required when ``CIRCULARS_DB_CONNECTION_STRING`` is not set.
    """

    environ = os.environ if environ is None else environ
    env_payload = _env_payload(environ)

    if "connection_string" not in env_payload and credentials_path is None:
        raise ConfigError(
            f"Missing {ENV_PREFIX}DB_CONNECTION_STRING and no credentials file argument given"
        )

    payload: dict = {}
    if credentials_path is not None:
        payload.update(_normalise_file_payload(_read_file(Path(credentials_path))))
    payload.update(env_payload)
    if "connection_string" not in payload:
        raise ConfigError(f"Credentials file {credentials_path} has no ConnectionString")

    for field, suffix in (("site_url", "SITE_URL"), ("cycle_wait", "CYCLE_WAIT")):
        if field not in payload:
            raise ConfigError(f"Missing {ENV_PREFIX}{suffix} env variable")

    try:
        return SyncConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


__all__ = ["ConfigError", "ENV_PREFIX", "load_config", "YAML_EXTENSIONS"]
