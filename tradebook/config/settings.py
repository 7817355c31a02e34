"""Application settings — merges config YAML files with .env overrides via Pydantic Settings."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_CONFIG_DIR = _PROJECT_ROOT / "config"


def _load_yaml(profile: str = "default") -> dict[str, Any]:
    """Load and merge YAML config files.

    Loads ``default.yaml`` first, then overlays the requested profile.
    """
    base: dict[str, Any] = {}
    default_path = _CONFIG_DIR / "default.yaml"
    if default_path.exists():
        with open(default_path) as f:
            base = yaml.safe_load(f) or {}

    if profile != "default":
        overlay_path = _CONFIG_DIR / f"{profile}.yaml"
        if overlay_path.exists():
            with open(overlay_path) as f:
                overlay = yaml.safe_load(f) or {}
            base = _deep_merge(base, overlay)
    return base


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (override wins)."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------

class DecimalSettings(BaseSettings):
    """Rounding applied to every division (average prices, ratios, rates)."""

    scale: int = 4
    rounding: str = "ROUND_HALF_UP"


class MetricsSettings(BaseSettings):
    """Per-trade risk/reward heuristic.

    ``risk_fraction`` of the entry notional is treated as the amount at risk;
    losing or flat trades report ``reward_multiple`` times that as reward.
    """

    risk_fraction: Decimal = Decimal("0.02")
    reward_multiple: Decimal = Decimal("2")


class IngestSettings(BaseSettings):
    """Interpretation of broker exports."""

    # IANA zone applied to timestamps that carry no UTC offset
    timezone: str = "UTC"


class DatabaseSettings(BaseSettings):
    path: str = "data/tradebook.db"
    busy_timeout_ms: int = 5000


class LoggingSettings(BaseSettings):
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level application settings.

    Build order:
    1. Load ``config/default.yaml``
    2. Overlay profile YAML (e.g. ``strict.yaml``)
    3. Override with environment variables / ``.env``
    """

    model_config = SettingsConfigDict(
        env_prefix="TRADEBOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    decimal: DecimalSettings = Field(default_factory=DecimalSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    ingest: IngestSettings = Field(default_factory=IngestSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(profile: str = "default") -> Settings:
    """Create a ``Settings`` instance from YAML + env vars.

    Parameters
    ----------
    profile:
        Config profile name (maps to ``config/<profile>.yaml``).
        Use ``"default"`` or ``"strict"``.
    """
    yaml_data = _load_yaml(profile)

    return Settings(
        decimal=DecimalSettings(**(yaml_data.get("decimal", {}))),
        metrics=MetricsSettings(**(yaml_data.get("metrics", {}))),
        ingest=IngestSettings(**(yaml_data.get("ingest", {}))),
        database=DatabaseSettings(**(yaml_data.get("database", {}))),
        logging=LoggingSettings(**(yaml_data.get("logging", {}))),
    )
