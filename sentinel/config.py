"""
Centralized configuration for the monitoring engine.

Configuration is static for the life of the process. Resolution order, lowest
to highest precedence:

1. Defaults declared on MonitorConfig
2. The ``monitor:`` section of a YAML file (config/sentinel.yaml under
   SENTINEL_HOME, or an explicit path)
3. SENTINEL_* environment variables

Anything that would leave scoring undefined (non-positive threshold, empty
kind set, ...) raises ConfigurationError at load time so the daemon refuses
to start.
"""

import logging
import math
import os
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from sentinel import paths
from sentinel.errors import ConfigurationError
from sentinel.models import ActivityKind

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "sentinel.yaml"

DEFAULT_HIGH_RISK_KINDS = frozenset(
    {ActivityKind.DELETE, ActivityKind.TRANSACTION, ActivityKind.AUTHORIZATION}
)

# field name -> environment variable
ENV_VARS: dict[str, str] = {
    "window_seconds": "SENTINEL_WINDOW_SECONDS",
    "interval_seconds": "SENTINEL_INTERVAL_SECONDS",
    "backoff_seconds": "SENTINEL_BACKOFF_SECONDS",
    "count_threshold": "SENTINEL_COUNT_THRESHOLD",
    "score_threshold": "SENTINEL_SCORE_THRESHOLD",
    "known_kinds": "SENTINEL_KNOWN_KINDS",
    "high_risk_kinds": "SENTINEL_HIGH_RISK_KINDS",
    "query_timeout_seconds": "SENTINEL_QUERY_TIMEOUT_SECONDS",
    "alert_webhook_url": "SENTINEL_ALERT_WEBHOOK_URL",
}


@dataclass(frozen=True)
class MonitorConfig:
    """Validated engine configuration."""

    window_seconds: float = 900.0
    interval_seconds: float = 60.0
    backoff_seconds: float = 10.0
    count_threshold: int = 10
    score_threshold: float = 0.7
    known_kinds: frozenset[ActivityKind] = field(default_factory=lambda: frozenset(ActivityKind))
    high_risk_kinds: frozenset[ActivityKind] = DEFAULT_HIGH_RISK_KINDS
    query_timeout_seconds: float = 5.0
    alert_webhook_url: str | None = None

    def __post_init__(self):
        self.validate()

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)

    def validate(self) -> None:
        """Raise ConfigurationError for any setting that leaves the engine undefined."""
        durations = ("window_seconds", "interval_seconds", "backoff_seconds", "query_timeout_seconds")
        for name in durations:
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value}")
        if self.count_threshold <= 0:
            raise ConfigurationError(
                f"count_threshold must be positive, got {self.count_threshold}"
            )
        if not 0 < self.score_threshold <= 1:
            raise ConfigurationError(
                f"score_threshold must be in (0, 1], got {self.score_threshold}"
            )
        if not self.known_kinds:
            raise ConfigurationError("known_kinds must not be empty")
        if not self.high_risk_kinds <= self.known_kinds:
            extra = sorted(k.value for k in self.high_risk_kinds - self.known_kinds)
            raise ConfigurationError(f"high_risk_kinds not in known_kinds: {extra}")

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "MonitorConfig":
        """Build from loosely-typed values (YAML, env strings)."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")

        kwargs: dict[str, Any] = {}
        try:
            for key, value in data.items():
                if value is None:
                    continue
                if key in ("known_kinds", "high_risk_kinds"):
                    kwargs[key] = _parse_kinds(value)
                elif key == "count_threshold":
                    kwargs[key] = int(value)
                elif key == "alert_webhook_url":
                    kwargs[key] = str(value) or None
                else:
                    kwargs[key] = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid config value: {e}") from e
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return {
            "window_seconds": self.window_seconds,
            "interval_seconds": self.interval_seconds,
            "backoff_seconds": self.backoff_seconds,
            "count_threshold": self.count_threshold,
            "score_threshold": self.score_threshold,
            "known_kinds": sorted(k.value for k in self.known_kinds),
            "high_risk_kinds": sorted(k.value for k in self.high_risk_kinds),
            "query_timeout_seconds": self.query_timeout_seconds,
            "alert_webhook_url": self.alert_webhook_url,
        }


def _parse_kinds(value: Any) -> frozenset[ActivityKind]:
    if isinstance(value, str):
        value = [v for v in value.split(",") if v.strip()]
    return frozenset(ActivityKind.parse(v) for v in value)


def env_overrides(environ: dict[str, str] | None = None) -> dict[str, str]:
    """Collect SENTINEL_* overrides that are set."""
    environ = os.environ if environ is None else environ
    return {key: environ[var] for key, var in ENV_VARS.items() if environ.get(var)}


def default_config_path() -> Path:
    return paths.app_home() / "config" / CONFIG_FILENAME


def read_yaml_section(path: Path) -> dict[str, Any]:
    """Read the ``monitor:`` section of a YAML config file."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping")
    section = data.get("monitor", {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"'monitor' section in {path} must be a mapping")
    return section


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> MonitorConfig:
    """
    Load configuration from defaults, YAML file and environment.

    An explicit *path* must exist; the default path is optional.
    """
    merged: dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        merged.update(read_yaml_section(path))
    else:
        default = default_config_path()
        if default.exists():
            merged.update(read_yaml_section(default))
            path = default

    merged.update(env_overrides(environ))
    config = MonitorConfig.from_mapping(merged)
    logger.info("Loaded monitor config from %s", path or "defaults/env")
    return config
