"""Score and buy-event models."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


@dataclass(slots=True, frozen=True)
class ScoreResult:
    """Confidence of one bar.

    ``contributions`` maps component name to the weight it added; it is
    None when an absolute override fired.
    """

    confidence: float
    contributions: dict[str, float] | None

    @property
    def is_absolute(self) -> bool:
        return self.contributions is None


class BuyEvent(BaseModel):
    """An accepted buy moment."""

    model_config = ConfigDict(frozen=True)

    timestamp: int  # Unix epoch in milliseconds
    index: int  # row index within the scored range
    confidence: float
    contributions: dict[str, float] | None = None

    @property
    def is_absolute(self) -> bool:
        """True when the event came from an absolute override."""
        return self.contributions is None

    @property
    def active_components(self) -> list[str]:
        """Names of components that contributed a non-zero weight."""
        if self.contributions is None:
            return []
        return [k for k, v in self.contributions.items() if v > 0]
