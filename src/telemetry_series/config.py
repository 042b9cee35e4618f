from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import pandas as pd
import yaml

from .aggregate.bucket_aggregator import BUCKET_ORIGINS
from .utils.timebuckets import bucket_width


@dataclass(frozen=True)
class PipelineConfig:
    # Ingestion
    chunk_size: int = 50_000

    # Aggregation: bucket width (pandas offset alias) and label timezone
    bucket_freq: str = "1min"
    bucket_origin: str = "start"  # "start" (earliest record) or "epoch" (wall clock)
    timezone: str = "UTC"
    time_pad_seconds: float = 1.0
    max_services: int = 5
    max_kpis: int = 20

    # Downsampling budget (points per chart series)
    max_points: int = 1500

    def validate(self) -> "PipelineConfig":
        """Raise ValueError on out-of-range settings; returns self."""
        for name in ("chunk_size", "max_services", "max_kpis", "max_points"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        if self.max_points < 2:
            raise ValueError(f"max_points must be at least 2, got {self.max_points!r}")
        if self.time_pad_seconds < 0:
            raise ValueError(f"time_pad_seconds must be >= 0, got {self.time_pad_seconds!r}")
        if not self.bucket_freq:
            raise ValueError("bucket_freq must not be empty")
        bucket_width(self.bucket_freq)
        if self.bucket_origin not in BUCKET_ORIGINS:
            raise ValueError(f"bucket_origin must be one of {BUCKET_ORIGINS}, got {self.bucket_origin!r}")
        try:
            pd.Timestamp(0, unit="s", tz=self.timezone)
        except (KeyError, ValueError, TypeError) as e:
            raise ValueError(f"Unknown timezone {self.timezone!r}") from e
        return self

    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        """Copy with non-None overrides applied (CLI options)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes).validate()


# YAML section -> fields read from it
CONFIG_SECTIONS: dict[str, tuple[str, ...]] = {
    "ingestion": ("chunk_size",),
    "aggregation": ("bucket_freq", "bucket_origin", "timezone", "time_pad_seconds", "max_services", "max_kpis"),
    "downsample": ("max_points",),
}


def config_from_dict(raw: dict[str, Any] | None) -> PipelineConfig:
    """Build a config from the sectioned YAML mapping.

    Unknown sections or keys raise ValueError so typos do not pass silently.
    """
    raw = raw or {}
    known = {f.name for f in fields(PipelineConfig)}
    values: dict[str, Any] = {}

    for section, body in raw.items():
        if section not in CONFIG_SECTIONS:
            raise ValueError(f"Unknown config section '{section}'")
        for key, value in (body or {}).items():
            if key not in CONFIG_SECTIONS[section] or key not in known:
                raise ValueError(f"Unknown key '{key}' in config section '{section}'")
            values[key] = value

    return PipelineConfig(**values).validate()


def load_config(config_path: str | Path) -> PipelineConfig:
    """Load configuration from YAML file."""
    with open(config_path) as f:
        return config_from_dict(yaml.safe_load(f))
