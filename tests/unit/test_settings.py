"""Unit tests for settings validation."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from mlm_rewards.config.settings import Settings


class TestSettings:
    """Test pydantic-settings validators."""

    def test_defaults(self):
        settings = Settings(_env_file=None, environment="test")
        assert settings.rebate_max_level == 10
        assert settings.currency_quantum == Decimal("0.01")
        assert settings.genealogy_max_depth == 10
        assert settings.genealogy_page_size == 10
        assert settings.binary_max_level == 6

    @pytest.mark.parametrize("quantum", ["0.01", "1", "0.001"])
    def test_power_of_ten_quantum(self, quantum):
        settings = Settings(_env_file=None, environment="test", currency_quantum=quantum)
        assert settings.currency_quantum == Decimal(quantum)

    @pytest.mark.parametrize("quantum", ["0", "-0.01", "0.05", "0.25"])
    def test_invalid_quantum(self, quantum):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, environment="test", currency_quantum=quantum)

    @pytest.mark.parametrize("field,value", [
        ("rebate_max_level", 0),
        ("rebate_max_level", 51),
        ("genealogy_max_depth", 0),
        ("genealogy_page_size", 0),
        ("binary_max_level", 21),
    ])
    def test_range_limits(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, environment="test", **{field: value})

    def test_log_level_normalized(self):
        settings = Settings(_env_file=None, environment="test", log_level="debug")
        assert settings.log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, environment="test", log_level="LOUD")

    def test_debug_rejected_in_production(self):
        with pytest.raises(ValidationError, match="DEBUG"):
            Settings(_env_file=None, environment="production", debug=True)

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("REBATE_MAX_LEVEL", "4")
        monkeypatch.setenv("CURRENCY_QUANTUM", "0.1")
        settings = Settings(_env_file=None, environment="test")
        assert settings.rebate_max_level == 4
        assert settings.currency_quantum == Decimal("0.1")
