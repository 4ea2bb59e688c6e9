"""Tests for momentum, oscillator, regression and ADX indicators."""

import math

import numpy as np
import pytest

from barsim.engine import Instrument
from barsim.indicators import (
    adx, cci, lin_regression, log_momentum, log_regression, momentum, rsi,
    simple_momentum, stochastic, tsi, williams_percent_r,
)


class TestMomentumFamily:
    def test_simple_momentum(self, ctx, prices, drive):
        out = drive(ctx, prices, [1.0, 2.0, 4.0], lambda: simple_momentum(ctx, prices, 2)[0])
        assert out == pytest.approx([0.0, 0.0, 3.0])

    def test_log_momentum(self, ctx, prices, drive):
        out = drive(ctx, prices, [1.0, 2.0, 4.0], lambda: log_momentum(ctx, prices, 2)[0])
        assert out[2] == pytest.approx(math.log(4.0))

    def test_momentum_is_per_bar(self, ctx, prices, drive):
        out = drive(ctx, prices, [1.0, 2.0, 4.0], lambda: momentum(ctx, prices, 2)[0])
        assert out[2] == pytest.approx(math.log(4.0) / 2)


# ── Flat-input degeneracy ───────────────────────────────────────────


@pytest.mark.parametrize("name,evaluate,expected", [
    ("cci", lambda c, i: cci(c, i, 20)[0], 0.0),
    ("adx", lambda c, i: adx(c, i, 14)[0], 0.0),
    ("stochastic", lambda c, i: stochastic(c, i, 14).percent_k[0], 0.0),
    ("williams", lambda c, i: williams_percent_r(c, i, 10)[0], 0.0),
    ("rsi", lambda c, i: rsi(c, i.close, 14)[0], 50.0),
])
def test_flat_input_is_neutral(ctx, flat_ohlcv, drive_bars, name, evaluate, expected):
    flat = Instrument("FLAT")
    out = drive_bars(ctx, flat, flat_ohlcv, lambda: evaluate(ctx, flat))
    assert np.all(np.isfinite(out)), name
    np.testing.assert_allclose(out, expected, atol=1e-12, err_msg=name)


def test_flat_percent_d_is_neutral_from_the_first_bar(ctx, flat_ohlcv, drive_bars):
    flat = Instrument("FLAT")
    out = drive_bars(ctx, flat, flat_ohlcv, lambda: stochastic(ctx, flat, 14, 3).percent_d[0])
    np.testing.assert_allclose(out, 0.0, atol=1e-12)


# ── Oscillators on trending input ──────────────────────────────────


class TestOscillators:
    def test_rsi_bounds(self, ctx, prices, drive):
        up = drive(ctx, prices, np.linspace(10, 20, 30), lambda: rsi(ctx, prices, 14)[0])
        assert up[0] == 50.0
        assert up[-1] > 99.0

    def test_williams_and_stochastic_on_series(self, ctx, prices, drive):
        out = drive(ctx, prices, [1.0, 2.0, 3.0],
                    lambda: (williams_percent_r(ctx, prices, 3)[0],
                             stochastic(ctx, prices, 3).percent_k[0]))
        williams, k = out[-1]
        assert williams == pytest.approx(0.0)
        assert k == pytest.approx(100.0)

    def test_instrument_and_series_variants_are_distinct(self, ctx, synthetic_ohlcv, drive_bars):
        inst = Instrument("SYN")
        drive_bars(ctx, inst, synthetic_ohlcv.iloc[:50],
                   lambda: (cci(ctx, inst, 20)[0], cci(ctx, inst.close, 20)[0]))
        assert cci(ctx, inst, 20)[0] != cci(ctx, inst.close, 20)[0]

    def test_tsi_positive_on_uptrend(self, ctx, prices, drive):
        out = drive(ctx, prices, np.linspace(10, 20, 80), lambda: tsi(ctx, prices, 25, 13)[0])
        assert out[-1] > 90.0

    def test_adx_in_range(self, ctx, synthetic_ohlcv, drive_bars):
        inst = Instrument("SYN")
        out = drive_bars(ctx, inst, synthetic_ohlcv, lambda: adx(ctx, inst, 14)[0])
        assert np.all((np.array(out) >= 0.0) & (np.array(out) <= 100.0))


# ── Regression ─────────────────────────────────────────────────────


class TestRegression:
    def test_linear_input(self, ctx, prices, drive):
        out = drive(ctx, prices, [2.0 * t + 1.0 for t in range(10)],
                    lambda: lin_regression(ctx, prices, 5))
        reg = out[-1]
        assert reg.slope[0] == pytest.approx(2.0)
        assert reg.intercept[0] == pytest.approx(19.0)
        assert reg.r2[0] == pytest.approx(1.0)

    def test_single_observation(self, ctx, prices, drive):
        reg = drive(ctx, prices, [3.0], lambda: lin_regression(ctx, prices, 5))[-1]
        assert reg.slope[0] == 0.0
        assert reg.intercept[0] == 3.0
        assert reg.r2[0] == 0.0

    def test_flat_input_has_zero_r2(self, ctx, prices, drive):
        reg = drive(ctx, prices, [4.0] * 8, lambda: lin_regression(ctx, prices, 5))[-1]
        assert reg.slope[0] == pytest.approx(0.0)
        assert reg.r2[0] == 0.0

    def test_log_regression_slope_is_growth_rate(self, ctx, prices, drive):
        reg = drive(ctx, prices, [100.0 * 1.01 ** t for t in range(30)],
                    lambda: log_regression(ctx, prices, 20))[-1]
        assert reg.slope[0] == pytest.approx(math.log(1.01))
        assert reg.r2[0] == pytest.approx(1.0)

    def test_log_regression_exact_while_window_fills(self, ctx, prices, drive):
        out = drive(ctx, prices, [100.0 * 1.01 ** t for t in range(5)],
                    lambda: log_regression(ctx, prices, 20).slope[0])
        assert out[0] == 0.0
        np.testing.assert_allclose(out[1:], math.log(1.01), rtol=1e-9)

    def test_outputs_advance_together(self, ctx, prices, drive):
        reg = drive(ctx, prices, [1.0, 2.0, 3.0, 5.0], lambda: lin_regression(ctx, prices, 3))[-1]
        assert reg.slope.count == reg.intercept.count == reg.r2.count == 4
