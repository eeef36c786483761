"""
Tests for YAML configuration loading.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from mobilebook.config import AppConfig, OracleConfig, ProviderConfig
from mobilebook.domain.exceptions import InvalidConfigurationError, InvalidRequestError
from mobilebook.domain.models import TimeOfDay, TransportationMode

CONFIG_YAML = """
timezone: Europe/Berlin
provider:
  home_base_address: "  12 Harbor Road "
  transportation_mode: cycling
  grace_minutes: 10
  earliest_departure: "07:30"
  working_hours:
    monday: {start: "08:00", end: "12:00"}
oracle:
  provider: mock
  mock_data_file: legs.json
fallback_buffers:
  driving: 12
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


class TestAppConfig:
    """Tests for AppConfig."""

    def test_load_from_yaml(self, config_file):
        config = AppConfig.load_from_yaml(config_file)

        assert config.timezone == "Europe/Berlin"
        assert config.provider.home_base_address == "12 Harbor Road"
        assert config.provider.transportation_mode is TransportationMode.CYCLING
        assert config.provider.grace_minutes == 10
        assert config.provider.get_home_departure() == TimeOfDay(450)
        assert config.oracle.provider == "mock"

    def test_relative_mock_data_file_resolves_next_to_config(self, config_file):
        config = AppConfig.load_from_yaml(config_file)

        assert config.oracle.mock_data_file == config_file.parent / "legs.json"

    def test_fallback_buffers_merge_with_defaults(self, config_file):
        config = AppConfig.load_from_yaml(config_file)

        assert config.fallback_buffers[TransportationMode.DRIVING] == 12
        assert config.fallback_buffers[TransportationMode.CYCLING] == 20
        assert config.fallback_buffers[TransportationMode.TRANSIT] == 25
        assert config.fallback_buffers[TransportationMode.WALKING] == 30

    def test_negative_fallback_buffer(self):
        with pytest.raises(ValidationError):
            AppConfig(
                provider={"home_base_address": "Home"},
                fallback_buffers={"walking": -1},
            )

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("provider: [unclosed")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(path)

    def test_root_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(path)

    def test_resolve_day(self, config_file):
        config = AppConfig.load_from_yaml(config_file)

        day = config.resolve_day("2024-11-25")

        assert (day.year, day.month, day.day) == (2024, 11, 25)
        assert day.hour == 0

    def test_resolve_day_rejects_garbage(self, config_file):
        config = AppConfig.load_from_yaml(config_file)

        with pytest.raises(InvalidRequestError):
            config.resolve_day("next tuesday")


class TestProviderConfig:
    """Tests for ProviderConfig."""

    def test_working_hours_for_configured_day(self):
        provider = ProviderConfig(
            home_base_address="Home",
            working_hours={"monday": {"start": "08:00", "end": "12:00"}},
        )

        hours = provider.working_hours_for(date(2024, 11, 25))  # Monday

        assert str(hours) == "08:00 - 12:00"

    def test_default_weekday_hours(self):
        provider = ProviderConfig(home_base_address="Home")

        hours = provider.working_hours_for(date(2024, 11, 26))  # Tuesday

        assert str(hours) == "09:00 - 17:00"

    def test_sunday_off_by_default(self):
        provider = ProviderConfig(home_base_address="Home")

        assert provider.working_hours_for(date(2024, 11, 24)) is None

    def test_hours_must_open_before_close(self):
        with pytest.raises(ValidationError):
            ProviderConfig(
                home_base_address="Home",
                working_hours={"monday": {"start": "17:00", "end": "09:00"}},
            )

    def test_malformed_time(self):
        with pytest.raises(ValidationError):
            ProviderConfig(home_base_address="Home", earliest_departure="7am")

    def test_blank_home_base(self):
        with pytest.raises(ValidationError):
            ProviderConfig(home_base_address="   ")


class TestOracleConfig:
    """Tests for OracleConfig token resolution."""

    def test_token_from_config(self):
        assert OracleConfig(provider="mapbox", access_token="pk.abc").get_access_token() == "pk.abc"

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "google-key")

        assert OracleConfig(provider="google").get_access_token() == "google-key"

    def test_missing_token(self, monkeypatch):
        monkeypatch.delenv("MAPBOX_ACCESS_TOKEN", raising=False)

        with pytest.raises(InvalidConfigurationError, match="MAPBOX_ACCESS_TOKEN"):
            OracleConfig(provider="mapbox").get_access_token()

    def test_mock_needs_no_token(self):
        assert OracleConfig(provider="mock").get_access_token() == ""

    def test_unknown_provider(self):
        with pytest.raises(ValidationError):
            OracleConfig(provider="osrm")
