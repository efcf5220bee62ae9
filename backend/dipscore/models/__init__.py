"""Data and configuration models."""

from dipscore.models.bar import Bar, OhlcvColumns, mvrvz_column
from dipscore.models.config import (
    ABSOLUTE_CAP,
    BLENDED_CAP,
    DEFAULT_VSA_WINDOW,
    FOUR_HOURS_MS,
    MAX_SCORE_WEIGHT,
    MS_PER_DAY,
    MS_PER_HOUR,
    BuyScanConfig,
    PipelineConfig,
    ScoreWeights,
    VsaWeights,
)
from dipscore.models.signal import BuyEvent, ScoreResult

__all__ = [
    "Bar",
    "OhlcvColumns",
    "mvrvz_column",
    "ABSOLUTE_CAP",
    "BLENDED_CAP",
    "DEFAULT_VSA_WINDOW",
    "FOUR_HOURS_MS",
    "MAX_SCORE_WEIGHT",
    "MS_PER_DAY",
    "MS_PER_HOUR",
    "BuyScanConfig",
    "PipelineConfig",
    "ScoreWeights",
    "VsaWeights",
    "BuyEvent",
    "ScoreResult",
]
