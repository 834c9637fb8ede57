import pytest
from pydantic import ValidationError

from coacheck.config import Settings


def test_defaults():
    cfg = Settings(_env_file=None)
    assert cfg.decarb_factor == 0.877
    assert cfg.formula_tolerance == 0.01
    assert cfg.formula_error_threshold == 0.10
    assert (cfg.moisture_min, cfg.moisture_max) == (5.0, 15.0)
    assert cfg.below_loq_policy == "zero"
    assert cfg.display_places == 2


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("COA_BELOW_LOQ_POLICY", "half-loq")
    monkeypatch.setenv("COA_MOISTURE_MAX", "12.5")
    cfg = Settings(_env_file=None)
    assert cfg.below_loq_policy == "half_loq"
    assert cfg.moisture_max == 12.5


def test_unknown_policy_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, below_loq_policy="average")


def test_threshold_below_tolerance_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, formula_tolerance=0.5, formula_error_threshold=0.1)


def test_inverted_moisture_range_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, moisture_min=20, moisture_max=10)
