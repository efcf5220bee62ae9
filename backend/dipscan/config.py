"""Scan configuration.

Scalar defaults come from environment variables (``DIPSCAN_*``, or a
``.env`` file). Weights and the full pipeline configuration can be
overridden from an optional YAML file.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dipscore.models.config import (
    DEFAULT_VSA_WINDOW,
    MS_PER_HOUR,
    BuyScanConfig,
    PipelineConfig,
)

logger = logging.getLogger(__name__)


class ScanSettings(BaseSettings):
    """Scan defaults loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DIPSCAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    threshold: float = Field(default=80.0, ge=0, le=100)
    peak_window_hours: float = Field(default=48.0, gt=0)
    cooldown_hours: float = Field(default=30 * 24.0, ge=0)
    vsa_window: int = Field(default=DEFAULT_VSA_WINDOW, ge=2)

    # Visible window (days shown/scored, and how far back it is shifted)
    window_days: int = Field(default=365, ge=1)
    offset_days: int = Field(default=0, ge=0)

    log_level: str = "INFO"

    def buy_config(self) -> BuyScanConfig:
        return BuyScanConfig(
            threshold=self.threshold,
            peak_window_ms=int(self.peak_window_hours * MS_PER_HOUR),
            cooldown_ms=int(self.cooldown_hours * MS_PER_HOUR),
        )


_settings: ScanSettings | None = None


def get_scan_settings() -> ScanSettings:
    """Get cached scan settings instance."""
    global _settings
    if _settings is None:
        _settings = ScanSettings()
    return _settings


def load_pipeline_config(
    path: Path | str | None = None,
    settings: ScanSettings | None = None,
) -> PipelineConfig:
    """Build the pipeline configuration.

    Settings supply the buy-scan parameters and VSA window; a YAML file,
    when given, may override any section (``vsa_weights``,
    ``score_weights``, ``vsa_window``, ``buy``).

    Falls back to settings-only defaults if the file doesn't exist.

    Raises:
        pydantic.ValidationError: If the YAML holds invalid values
    """
    settings = settings or get_scan_settings()
    base = {
        "vsa_window": settings.vsa_window,
        "buy": settings.buy_config().model_dump(),
    }

    if path is None:
        return PipelineConfig(**base)

    config_path = Path(path)
    if not config_path.exists():
        logger.info("No config file found at %s, using defaults", config_path)
        return PipelineConfig(**base)

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    buy_overrides = raw.pop("buy", None) or {}
    merged = {**base, **raw}
    merged["buy"] = {**base["buy"], **buy_overrides}

    config = PipelineConfig(**merged)
    logger.info(
        "Loaded pipeline config from %s: threshold=%.1f, vsa_window=%d, activation=%.2f",
        config_path,
        config.buy.threshold,
        config.vsa_window,
        config.vsa_weights.activation,
    )
    return config
