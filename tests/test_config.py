"""
Unit tests for configuration loading
"""

import pytest
from pydantic import ValidationError

from world_service.config import Settings, get_settings, load_yaml_config


class TestSettings:
    """Test Settings validation"""

    def test_defaults(self):
        settings = Settings()
        assert settings.world_event_sweep_interval == 30
        assert settings.market_price_update_interval == 300
        assert settings.world_state_cache_ttl == 300
        assert settings.market_cache_ttl == 3600
        assert settings.territory_strategic_value == 90.0
        assert settings.default_inflation_rate == 0.02

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(log_level="chatty")

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValidationError):
            Settings(world_event_sweep_interval=0)

    def test_price_step_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            Settings(market_price_step=1.5)

    def test_inverted_thresholds_rejected(self):
        with pytest.raises(ValidationError):
            Settings(economic_poor_threshold=80, economic_wealthy_threshold=70)

    def test_environment_variables_are_read(self, monkeypatch):
        monkeypatch.setenv("MARKET_PRICE_UPDATE_INTERVAL", "120")
        assert Settings().market_price_update_interval == 120


class TestYamlConfig:
    """Test YAML config layering"""

    def test_missing_file_returns_empty(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "missing.yaml")) == {}

    def test_yaml_values_override_defaults(self, tmp_path):
        config_file = tmp_path / "world.yaml"
        config_file.write_text("world_event_sweep_interval: 45\nterritory_strategic_value: 80\n")

        settings = get_settings(str(config_file))

        assert settings.world_event_sweep_interval == 45
        assert settings.territory_strategic_value == 80

    def test_malformed_yaml_falls_back_to_defaults(self, tmp_path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("key: [unclosed\n")
        assert load_yaml_config(str(config_file)) == {}
