"""
Monitor configuration models for pagepulse.

Configuration is supplied once at initialisation, either built in code or
loaded from the [pagepulse] table of a TOML file:

    [pagepulse]
    build_version = "2024.06.1"

    [pagepulse.budgets]
    lcp = { threshold = 2500, unit = "ms" }
    bundle_size = { threshold = 250, unit = "kb" }

    [pagepulse.buffer]
    capacity = 100
    flush_interval_ms = 10000
    endpoint = "https://rum.example/collect"

All models are frozen; nothing may change the configuration at runtime.
Malformed configuration raises ConfigurationError at load time.
"""

from __future__ import annotations

import math
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from pagepulse.errors import ConfigurationError

BUDGET_UNITS = frozenset({"ms", "s", "kb", "bytes", "score", "count", "percent"})


class BudgetEntry(BaseModel):
    """Threshold for a single metric."""

    threshold: float
    unit: str = "ms"

    model_config = ConfigDict(frozen=True)

    @field_validator("threshold")
    @classmethod
    def _positive_threshold(cls, value: float) -> float:
        if not math.isfinite(value) or value <= 0:
            raise ValueError("threshold must be a positive finite number")
        return value

    @field_validator("unit")
    @classmethod
    def _known_unit(cls, value: str) -> str:
        unit = value.strip().lower()
        if unit not in BUDGET_UNITS:
            raise ValueError(f"unknown unit '{value}', expected one of {sorted(BUDGET_UNITS)}")
        return unit


class SeverityPolicy(BaseModel):
    """Ratio cutoffs for violation severity (value / threshold)."""

    high_ratio: float = Field(default=2.0, gt=1.0)
    medium_ratio: float = Field(default=1.5, gt=1.0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _ordered(self) -> SeverityPolicy:
        if self.medium_ratio > self.high_ratio:
            raise ValueError("medium_ratio must not exceed high_ratio")
        return self


class EscalationConfig(BaseModel):
    """Violation log retention and burst detection."""

    burst_threshold: int = Field(default=10, ge=1)
    burst_window_ms: float = Field(default=60_000.0, gt=0)
    retention_ms: float = Field(default=24 * 60 * 60 * 1000.0, gt=0)
    max_violations: int = Field(default=10_000, ge=1)

    model_config = ConfigDict(frozen=True)


class BufferConfig(BaseModel):
    """Event buffer and delivery settings."""

    capacity: int = Field(default=100, ge=1)
    flush_interval_ms: float = Field(default=10_000.0, gt=0)
    endpoint: str | None = None
    timeout_s: float = Field(default=5.0, gt=0)

    model_config = ConfigDict(frozen=True)


class PreloadConfig(BaseModel):
    """Speculative loading policy."""

    enabled: bool = True
    # concurrent dispatches per network condition
    caps: dict[str, int] = Field(default_factory=lambda: {"fast": 3, "moderate": 1, "slow": 0})
    hover_delay_ms: float = Field(default=65.0, ge=0)
    viewport_margin_px: float = Field(default=200.0, ge=0)
    high_probability: float = Field(default=0.7, ge=0, le=1)
    low_probability: float = Field(default=0.4, ge=0, le=1)
    rel: str = "prefetch"

    model_config = ConfigDict(frozen=True)

    @field_validator("caps")
    @classmethod
    def _valid_caps(cls, value: dict[str, int]) -> dict[str, int]:
        unknown = set(value) - {"fast", "moderate", "slow"}
        if unknown:
            raise ValueError(f"unknown network conditions in caps: {sorted(unknown)}")
        if any(cap < 0 for cap in value.values()):
            raise ValueError("caps must be non-negative")
        return {"fast": 3, "moderate": 1, "slow": 0, **value}

    @model_validator(mode="after")
    def _ordered(self) -> PreloadConfig:
        if self.low_probability > self.high_probability:
            raise ValueError("low_probability must not exceed high_probability")
        return self

    def cap_for(self, condition: str) -> int:
        return self.caps.get(condition, 0)


class InteractionConfig(BaseModel):
    """Rapid-click detection."""

    rapid_click_count: int = Field(default=3, ge=2)
    rapid_click_window_ms: float = Field(default=1000.0, gt=0)
    cooldown_ms: float = Field(default=2000.0, ge=0)

    model_config = ConfigDict(frozen=True)


class MonitorConfig(BaseModel):
    """Complete pagepulse configuration."""

    build_version: str = "dev"
    budgets: dict[str, BudgetEntry] = Field(default_factory=dict)
    buffer: BufferConfig = Field(default_factory=BufferConfig)
    preload: PreloadConfig = Field(default_factory=PreloadConfig)
    severity: SeverityPolicy = Field(default_factory=SeverityPolicy)
    escalation: EscalationConfig = Field(default_factory=EscalationConfig)
    interaction: InteractionConfig = Field(default_factory=InteractionConfig)

    model_config = ConfigDict(frozen=True)

    @field_validator("budgets", mode="before")
    @classmethod
    def _normalise_budget_names(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        normalised: dict[str, Any] = {}
        for name, entry in value.items():
            key = str(name).strip().lower()
            if not key:
                raise ValueError("budget metric name must not be empty")
            if key in normalised:
                raise ValueError(f"duplicate budget for metric '{key}'")
            normalised[key] = entry
        return normalised


def build_config(data: Mapping[str, Any] | None = None, **overrides: Any) -> MonitorConfig:
    """
    Validate a configuration mapping.

    Raises:
        ConfigurationError: If any section is malformed
    """
    payload = {**(data or {}), **overrides}
    try:
        return MonitorConfig.model_validate(payload)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid pagepulse configuration: {e.error_count()} error(s)",
            detail={"errors": e.errors(include_url=False)},
        ) from e


def load_config(toml_path: Path) -> MonitorConfig:
    """
    Load configuration from the [pagepulse] table of a TOML file.

    Args:
        toml_path: Path to the TOML file

    Returns:
        MonitorConfig (defaults when the table is absent)

    Raises:
        ConfigurationError: If the file is unreadable or malformed
    """
    try:
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Cannot read {toml_path}: {e}") from e

    section = data.get("pagepulse", {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[pagepulse] in {toml_path} must be a table")
    return build_config(section)
