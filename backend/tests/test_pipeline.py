"""End-to-end tests for the scoring pipeline."""

from dataclasses import fields

import numpy as np
import pytest

from dipscore.errors import ContractViolation
from dipscore.models import ABSOLUTE_CAP, BLENDED_CAP, Bar, PipelineConfig
from dipscore.pipeline import run_pipeline


class TestVDipScenario:
    """Flat market, sharp dip on 10x volume, V-shaped recovery."""

    def test_vsa_fires_on_dip_bars(self, v_dip_bars):
        result = run_pipeline(v_dip_bars)

        assert (result.vsa.score[90:95] > 0).all()
        assert result.vsa.active[90:95].all()

    def test_confidence_crosses_threshold_once(self, v_dip_bars, vsa_only_config):
        result = run_pipeline(v_dip_bars, vsa_only_config)
        above = result.confidence >= 50.0
        crossings = np.flatnonzero(above[1:] & ~above[:-1]) + 1

        assert list(crossings) == [90]
        assert np.allclose(result.confidence[90:95], BLENDED_CAP)
        assert not result.confidence[:90].any()
        assert not result.confidence[95:].any()

    def test_exactly_one_buy_event(self, v_dip_bars, vsa_only_config):
        result = run_pipeline(v_dip_bars, vsa_only_config)

        assert len(result.buy_events) == 1
        event = result.buy_events[0]
        assert event.index == 90
        assert event.timestamp == v_dip_bars[90].timestamp
        assert event.contributions["vsa"] == 1.0


class TestTotality:
    """Every derived series is as long as the input."""

    def test_row_series_lengths(self, v_dip_bars):
        result = run_pipeline(v_dip_bars)
        n = len(v_dip_bars)

        assert len(result.daily.index_map) == n
        for f in fields(result.expanded):
            assert len(getattr(result.expanded, f.name)) == n, f.name
        assert len(result.vsa) == n
        assert len(result.bundle) == n
        assert len(result.confidence) == n
        assert len(result.contributions) == n
        assert len(result.timestamps) == n

    def test_empty_input(self):
        result = run_pipeline([])

        assert len(result.confidence) == 0
        assert result.buy_events == []
        assert result.daily.bars == []

    def test_single_bar(self):
        bar = Bar(timestamp=1704067200000, open=1.0, high=2.0, low=0.5, close=1.5, volume=3.0)
        result = run_pipeline([bar])

        assert len(result.confidence) == 1
        assert result.buy_events == []

    def test_unordered_bars_raise(self, v_dip_bars):
        with pytest.raises(ContractViolation):
            run_pipeline(list(reversed(v_dip_bars)))


class TestWindow:
    """Scoring over a row window keeps full-history indicators."""

    def test_window_matches_full_run_slice(self, v_dip_bars, vsa_only_config):
        full = run_pipeline(v_dip_bars, vsa_only_config)
        part = run_pipeline(v_dip_bars, vsa_only_config, window=(50, 100))

        assert part.start == 50
        assert part.stop == 100
        assert np.array_equal(part.confidence, full.confidence[50:100])
        assert [e.index for e in part.buy_events] == [40]
        assert part.buy_events[0].timestamp == v_dip_bars[90].timestamp

    def test_slice_window(self, v_dip_bars):
        result = run_pipeline(v_dip_bars, window=slice(-10, None))
        assert result.start == 90
        assert len(result.confidence) == 10

    def test_out_of_range_window_raises(self, v_dip_bars):
        with pytest.raises(ContractViolation):
            run_pipeline(v_dip_bars, window=(0, 500))


class TestAbsoluteOverride:
    def test_non_positive_mvrvz_forces_absolute(self, v_dip_bars):
        bars = list(v_dip_bars)
        b = bars[40]
        bars[40] = Bar(
            timestamp=b.timestamp, open=b.open, high=b.high, low=b.low,
            close=b.close, volume=b.volume, mvrvz=-0.5,
        )
        result = run_pipeline(bars)

        assert result.confidence[40] == ABSOLUTE_CAP
        assert result.contributions[40] is None
        assert (result.confidence[:40] < ABSOLUTE_CAP).all()


class TestIdempotence:
    def test_rerun_with_different_config_is_independent(self, v_dip_bars, vsa_only_config):
        first = run_pipeline(v_dip_bars, vsa_only_config)
        run_pipeline(v_dip_bars, PipelineConfig())
        again = run_pipeline(v_dip_bars, vsa_only_config)

        assert np.array_equal(first.confidence, again.confidence)
        assert first.buy_events == again.buy_events
