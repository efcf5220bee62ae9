"""Tests for the bar model and its column view."""

import math

import numpy as np
import pytest

from dipscore.models import Bar, OhlcvColumns, mvrvz_column


def make_bar(open_=100.0, close=105.0, mvrvz=None) -> Bar:
    return Bar(timestamp=1704067200000, open=open_, high=110.0, low=95.0, close=close, volume=3.0, mvrvz=mvrvz)


class TestBar:
    def test_mvrvz_optional(self):
        assert make_bar().mvrvz is None
        assert make_bar(mvrvz=1.5).mvrvz == 1.5

    def test_immutable(self):
        with pytest.raises(AttributeError):
            make_bar().close = 1.0


class TestColumns:
    def test_from_bars(self):
        cols = OhlcvColumns.from_bars([make_bar(), make_bar(close=98.0)])

        assert len(cols) == 2
        assert cols.timestamps.dtype == np.int64
        assert list(cols.close) == [105.0, 98.0]

    def test_empty(self):
        assert len(OhlcvColumns.from_bars([])) == 0

    def test_mvrvz_column(self):
        values = mvrvz_column([make_bar(mvrvz=-0.2), make_bar()])

        assert values[0] == pytest.approx(-0.2)
        assert math.isnan(values[1])
