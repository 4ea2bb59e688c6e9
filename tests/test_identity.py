"""Tests for call-site identity keys."""

import pytest

from barsim.engine import CacheKey, Instrument, input_series, make_key
from barsim.engine.identity import contribution


class TestKeyDistinctness:
    def test_same_inputs_same_key(self):
        s = input_series("a")
        assert make_key(None, "trend.ema", s, 20) == make_key(None, "trend.ema", s, 20)
        assert hash(make_key(None, "trend.ema", s, 20)) == hash(make_key(None, "trend.ema", s, 20))

    @pytest.mark.parametrize("other", [
        lambda s, t: make_key(None, "trend.ema", s, 21),
        lambda s, t: make_key(None, "trend.sma", s, 20),
        lambda s, t: make_key(None, "trend.ema", t, 20),
        lambda s, t: make_key(make_key(None, "trend.macd", s), "trend.ema", s, 20),
        lambda s, t: make_key(None, "trend.ema", s, 20, tag="second"),
        lambda s, t: make_key(None, "trend.ema", s, 20.0),
    ])
    def test_any_change_gives_a_different_key(self, other):
        s, t = input_series("a"), input_series("b")
        assert make_key(None, "trend.ema", s, 20) != other(s, t)

    def test_argument_order_matters(self):
        s, t = input_series("a"), input_series("b")
        assert make_key(None, "basic.subtract", s, t) != make_key(None, "basic.subtract", t, s)

    def test_parent_chain(self):
        root = make_key(None, "trend.macd", input_series("a"))
        child = root.child("trend.ema", 12)
        assert child.parent is root
        assert child.depth == 1
        assert child.path == "trend.macd/trend.ema"
        assert "trend.macd/trend.ema" in repr(child)


class TestContribution:
    def test_instrument_contributes_its_identity(self):
        spx = Instrument("SPX")
        assert contribution(spx) == spx.identity
        assert contribution(Instrument("SPX")) == spx.identity

    def test_bool_and_int_differ(self):
        assert contribution(True) != contribution(1)

    def test_sequences(self):
        assert contribution((1, 2)) == contribution([1, 2])
        assert contribution((1, 2)) != contribution((2, 1))

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            contribution(object())


def test_invalid_parent_and_site():
    with pytest.raises(TypeError):
        make_key("not-a-key", "trend.ema")
    with pytest.raises(ValueError):
        make_key(None, "")


def test_key_is_immutable():
    key = make_key(None, "basic.const", 1.0)
    with pytest.raises(AttributeError):
        key.site = "other"
    assert isinstance(key, CacheKey)
