"""Tests for structured configuration loading and validate_config()."""

import math

import pytest

from barsim.config import validate_config
from barsim.config_structured import (
    CONFIG_ENV_VAR,
    NumericsConfig,
    SystemConfig,
    config_from_dict,
    get_config,
    load_config,
    reset_config,
    set_config,
)
from barsim.engine import LaggedSeries, SimulationContext
from barsim.errors import ConfigError


class TestStructuredConfig:
    def test_defaults(self):
        cfg = SystemConfig()
        assert cfg.history.min_capacity == 256
        assert cfg.numerics.epsilon == 1e-10
        assert cfg.numerics.nan_fallback == 0.0
        assert cfg.indicators.capm_initial_variance == 0.0025

    def test_round_trip_through_dict(self):
        cfg = SystemConfig()
        assert config_from_dict(cfg.to_dict()).to_dict() == cfg.to_dict()

    def test_unknown_section_rejected(self):
        with pytest.raises(ConfigError):
            config_from_dict({"nonsense": {}})

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigError, match="min_capacty"):
            config_from_dict({"history": {"min_capacty": 10}})

    @pytest.mark.parametrize("section,values", [
        ("history", {"min_capacity": 0}),
        ("numerics", {"epsilon": 0.0}),
        ("numerics", {"nan_fallback": float("nan")}),
        ("logging", {"level": "LOUD"}),
    ])
    def test_invalid_values(self, section, values):
        with pytest.raises(ConfigError):
            config_from_dict({section: values})

    def test_config_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            NumericsConfig(epsilon=-1.0)


class TestLoading:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "barsim.yaml"
        path.write_text("history:\n  min_capacity: 512\nlogging:\n  level: debug\n")
        cfg = load_config(path)
        assert cfg.history.min_capacity == 512
        assert cfg.logging.level == "DEBUG"
        assert cfg.numerics.epsilon == 1e-10

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path).to_dict() == SystemConfig().to_dict()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml")

    def test_unparsable_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("history: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_env_var_names_config_file(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("history:\n  min_capacity: 64\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        reset_config()
        assert get_config().history.min_capacity == 64
        assert LaggedSeries().capacity == 64

    def test_context_uses_given_config(self):
        cfg = config_from_dict({"numerics": {"epsilon": 1e-8}})
        ctx = SimulationContext(config=cfg)
        assert ctx.epsilon == 1e-8


class TestValidateConfig:
    def test_defaults_are_clean(self):
        assert validate_config(SystemConfig()) == []

    def test_coarse_epsilon_warns(self):
        issues = validate_config(config_from_dict({"numerics": {"epsilon": 0.01}}))
        assert [i["level"] for i in issues] == ["WARNING"]
        assert "epsilon" in issues[0]["message"]

    def test_infinite_fallback_is_an_error(self):
        cfg = SystemConfig()
        cfg.numerics.nan_fallback = math.inf
        issues = validate_config(cfg)
        assert any(i["level"] == "ERROR" and "nan_fallback" in i["message"] for i in issues)

    def test_short_retention_warns(self):
        issues = validate_config(config_from_dict({"history": {"min_capacity": 10}}))
        assert any("min_capacity" in i["message"] for i in issues)

    def test_macd_ordering_warns(self):
        cfg = config_from_dict({"indicators": {"macd_fast": 30, "macd_slow": 26}})
        issues = validate_config(cfg)
        assert any("macd_fast" in i["message"] for i in issues)

    def test_reads_the_current_config(self):
        set_config(config_from_dict({"numerics": {"epsilon": 0.01}}))
        assert [i["level"] for i in validate_config()] == ["WARNING"]
