from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load the YAML config (default config/dashboard.yml)
- Validate it against the JSON schema shipped next to this module
- Apply defaults (timezone=UTC, default poll intervals, 30s request timeout)
- Apply environment overrides for the gateway URL and token
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

ENV_API_URL = "PIPELINE_API_URL"
ENV_API_TOKEN = "PIPELINE_API_TOKEN"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class GatewayConfig:
    base_url: str
    api_prefix: str = "/api/automate"
    token: str | None = None
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class Intervals:
    """Timer periods in seconds."""
    status_refresh: float = 20.0
    auto_trigger: float = 180.0
    download_poll: float = 5.0
    import_poll: float = 30.0
    build_settle: float = 3.0  # one-shot delay after a build-task trigger
    import_debounce: float = 15.0  # minimum spacing between import triggers


@dataclass(frozen=True)
class DashboardConfig:
    gateway: GatewayConfig
    timezone: str = "UTC"
    session_file: Path = Path(".dashboard/session.json")
    intervals: Intervals = field(default_factory=Intervals)
    max_build_attempts: int = 3

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: if the schema file is missing or unreadable, or the data
            violates it (missing keys, wrong types, unknown keys)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path, *, environ: Mapping[str, str] | None = None) -> DashboardConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)

    env = os.environ if environ is None else environ
    gw_raw = data["gateway"]
    gateway = GatewayConfig(
        base_url=env.get(ENV_API_URL) or gw_raw["base_url"],
        api_prefix=gw_raw.get("api_prefix", "/api/automate"),
        token=env.get(ENV_API_TOKEN) or gw_raw.get("token"),
        timeout_seconds=float(gw_raw.get("timeout_seconds", 30.0)),
    )

    tz = data.get("timezone", "UTC")
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {tz}") from e

    iv_raw = data.get("intervals", {})
    intervals = Intervals(**{k: float(v) for k, v in iv_raw.items()})

    return DashboardConfig(
        gateway=gateway,
        timezone=tz,
        session_file=Path(data.get("session_file", ".dashboard/session.json")),
        intervals=intervals,
        max_build_attempts=int(data.get("max_build_attempts", 3)),
    )
