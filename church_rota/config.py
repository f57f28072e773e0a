"""Load and validate scheduler configuration (YAML or JSON)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError


DEFAULT_DB_URL = "sqlite:///church_rota.db"


@dataclass
class BatchSettings:
    workers: int = 4
    max_targets: int = 52
    cross_date_fairness: bool = True


@dataclass
class TimeoutSettings:
    snapshot_seconds: float = 5.0
    lock_seconds: float = 5.0
    target_seconds: float = 30.0


@dataclass
class CleaningSettings:
    group_count: int = 6
    duty_role: Optional[str] = None  # restrict groups to people qualified for this role


@dataclass
class SchedulerConfig:
    db_url: str = DEFAULT_DB_URL
    batch: BatchSettings = field(default_factory=BatchSettings)
    timeouts: TimeoutSettings = field(default_factory=TimeoutSettings)
    cleaning: CleaningSettings = field(default_factory=CleaningSettings)
    random_seed: Optional[int] = None

    def validate(self) -> "SchedulerConfig":
        if self.batch.workers < 1:
            raise ConfigurationError(f"batch.workers must be >= 1, got {self.batch.workers}")
        if self.batch.max_targets < 1:
            raise ConfigurationError(f"batch.max_targets must be >= 1, got {self.batch.max_targets}")
        for name in ("snapshot_seconds", "lock_seconds", "target_seconds"):
            value = getattr(self.timeouts, name)
            if value <= 0:
                raise ConfigurationError(f"timeouts.{name} must be positive, got {value}")
        if self.cleaning.group_count < 1:
            raise ConfigurationError(
                f"cleaning.group_count must be >= 1, got {self.cleaning.group_count}"
            )
        return self


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")
    return value


def config_from_dict(raw: Dict[str, Any]) -> SchedulerConfig:
    """Build a SchedulerConfig from a plain mapping, ignoring unknown keys."""
    batch = _section(raw, "batch")
    timeouts = _section(raw, "timeouts")
    cleaning = _section(raw, "cleaning")
    try:
        cfg = SchedulerConfig(
            db_url=str(raw.get("db_url", DEFAULT_DB_URL)),
            batch=BatchSettings(
                workers=int(batch.get("workers", 4)),
                max_targets=int(batch.get("max_targets", 52)),
                cross_date_fairness=bool(batch.get("cross_date_fairness", True)),
            ),
            timeouts=TimeoutSettings(
                snapshot_seconds=float(timeouts.get("snapshot_seconds", 5.0)),
                lock_seconds=float(timeouts.get("lock_seconds", 5.0)),
                target_seconds=float(timeouts.get("target_seconds", 30.0)),
            ),
            cleaning=CleaningSettings(
                group_count=int(cleaning.get("group_count", 6)),
                duty_role=cleaning.get("duty_role"),
            ),
            random_seed=None if raw.get("random_seed") is None else int(raw["random_seed"]),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e
    return cfg.validate()


def load_config(path: str | Path | None = None) -> SchedulerConfig:
    """
    Load configuration from a YAML or JSON file.

    Args:
        path: Path to the config file. None returns the defaults.

    Returns:
        Validated SchedulerConfig
    """
    if path is None:
        return SchedulerConfig().validate()

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        raw = json.loads(text) if text.strip() else {}
    else:
        raw = yaml.safe_load(text) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping at the top level")
    return config_from_dict(raw)
