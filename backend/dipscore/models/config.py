"""Pipeline configuration models.

All tunables are validated when the model is built, so a bad weight or
window size fails before any series is scanned.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Confidence caps
ABSOLUTE_CAP = 100.0  # absolute override fired
BLENDED_CAP = 99.9  # weighted blend never reaches the absolute cap

MS_PER_HOUR = 3_600_000
MS_PER_DAY = 86_400_000
FOUR_HOURS_MS = 4 * MS_PER_HOUR

# Slider range for score weights
MAX_SCORE_WEIGHT = 5.0

DEFAULT_VSA_WINDOW = 24  # 24 x 1h bars


class VsaWeights(BaseModel):
    """Per-pattern weights for the VSA composite score."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    stopping: float = Field(default=1.4, ge=0)
    no_supply: float = Field(default=1.0, ge=0)
    test_bar: float = Field(default=1.2, ge=0)
    shakeout: float = Field(default=2.2, ge=0)
    climactic: float = Field(default=1.6, ge=0)
    spring: float = Field(default=2.0, ge=0)
    demand: float = Field(default=1.0, ge=0)
    effort_result: float = Field(default=1.2, ge=0)

    # Composite fires when the summed weight of active patterns reaches this
    activation: float = Field(default=2.6, gt=0)

    def pattern_weights(self) -> dict[str, float]:
        """Return the pattern weights keyed by pattern name (no activation)."""
        return self.model_dump(exclude={"activation"})


class ScoreWeights(BaseModel):
    """Weights of the confidence components.

    The field set is fixed. Callers may change values between runs
    (assignment is validated); a run only ever reads them.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    bollinger: float = Field(default=1.0, ge=0, le=MAX_SCORE_WEIGHT)
    macd: float = Field(default=1.0, ge=0, le=MAX_SCORE_WEIGHT)
    vsa: float = Field(default=1.0, ge=0, le=MAX_SCORE_WEIGHT)
    sma_stack: float = Field(default=1.5, ge=0, le=MAX_SCORE_WEIGHT)
    prev_low_up: float = Field(default=1.0, ge=0, le=MAX_SCORE_WEIGHT)
    rsi10: float = Field(default=1.5, ge=0, le=MAX_SCORE_WEIGHT)
    rsi20: float = Field(default=1.2, ge=0, le=MAX_SCORE_WEIGHT)
    rsi30: float = Field(default=1.0, ge=0, le=MAX_SCORE_WEIGHT)
    # Experimental: deep PI ratio (< 0.125)
    pi_deep: float = Field(default=2.0, ge=0, le=MAX_SCORE_WEIGHT)


class BuyScanConfig(BaseModel):
    """Buy-event extraction parameters (all independent of each other)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    threshold: float = Field(default=80.0, ge=0, le=ABSOLUTE_CAP)
    peak_window_ms: int = Field(default=48 * MS_PER_HOUR, gt=0)
    cooldown_ms: int = Field(default=30 * MS_PER_DAY, ge=0)


class PipelineConfig(BaseModel):
    """Everything one pipeline run reads. Passed explicitly to each run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    vsa_weights: VsaWeights = VsaWeights()
    vsa_window: int = Field(default=DEFAULT_VSA_WINDOW, ge=2)
    score_weights: ScoreWeights = ScoreWeights()
    buy: BuyScanConfig = BuyScanConfig()

    @model_validator(mode="after")
    def _validate(self):
        if sum(self.vsa_weights.pattern_weights().values()) < self.vsa_weights.activation:
            raise ValueError(
                "vsa_weights.activation exceeds the sum of all pattern weights; "
                "the composite could never fire"
            )
        return self
