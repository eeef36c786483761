"""
Configuration management using Pydantic models loaded from YAML.
"""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Dict, Literal, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.buffers import DEFAULT_FALLBACK_BUFFERS, DEFAULT_GRACE_MINUTES
from .domain.exceptions import InvalidConfigurationError, InvalidRequestError
from .domain.models import TimeOfDay, TransportationMode, WorkingHours
from .domain.slot_engine import DEFAULT_GRANULARITY_MINUTES

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

TOKEN_ENV_VARS = {
    "mapbox": "MAPBOX_ACCESS_TOKEN",
    "google": "GOOGLE_MAPS_API_KEY",
}


def _validate_time_string(value: str) -> str:
    try:
        return str(TimeOfDay.parse(value))
    except InvalidRequestError as exc:
        raise ValueError(str(exc)) from exc


class DaySchedule(BaseModel):
    """Working hours for one weekday."""
    start: str = "09:00"
    end: str = "17:00"
    enabled: bool = True

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Normalize to zero-padded HH:MM."""
        return _validate_time_string(v)

    @model_validator(mode="after")
    def validate_window(self) -> "DaySchedule":
        """Ensure an enabled day opens before it closes."""
        if self.enabled and TimeOfDay.parse(self.start) >= TimeOfDay.parse(self.end):
            raise ValueError(f"Working hours {self.start}-{self.end} must open before they close")
        return self

    def to_working_hours(self) -> WorkingHours:
        return WorkingHours.from_strings(self.start, self.end)


class WeeklyHours(BaseModel):
    """Working hours per weekday. Sunday is off unless configured."""
    monday: DaySchedule = Field(default_factory=DaySchedule)
    tuesday: DaySchedule = Field(default_factory=DaySchedule)
    wednesday: DaySchedule = Field(default_factory=DaySchedule)
    thursday: DaySchedule = Field(default_factory=DaySchedule)
    friday: DaySchedule = Field(default_factory=DaySchedule)
    saturday: DaySchedule = Field(default_factory=DaySchedule)
    sunday: DaySchedule = Field(default_factory=lambda: DaySchedule(enabled=False))

    def for_weekday(self, weekday: int) -> DaySchedule:
        """Schedule for a weekday index (0=Monday, 6=Sunday)."""
        return getattr(self, WEEKDAYS[weekday])


class ProviderConfig(BaseModel):
    """The mobile service provider's routine."""
    home_base_address: str
    transportation_mode: TransportationMode = TransportationMode.DRIVING
    grace_minutes: int = DEFAULT_GRACE_MINUTES
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES
    earliest_departure: str = "00:00"  # When the provider can leave home
    working_hours: WeeklyHours = Field(default_factory=WeeklyHours)

    @field_validator("home_base_address")
    @classmethod
    def validate_home_base(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("home_base_address must not be empty")
        return v.strip()

    @field_validator("grace_minutes")
    @classmethod
    def validate_grace(cls, v: int) -> int:
        if v < 0:
            raise ValueError("grace_minutes must not be negative")
        return v

    @field_validator("granularity_minutes")
    @classmethod
    def validate_granularity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("granularity_minutes must be greater than zero")
        return v

    @field_validator("earliest_departure")
    @classmethod
    def validate_departure(cls, v: str) -> str:
        return _validate_time_string(v)

    def get_home_departure(self) -> TimeOfDay:
        return TimeOfDay.parse(self.earliest_departure)

    def working_hours_for(self, day: date) -> Optional[WorkingHours]:
        """
        Working hours on a given date.

        Returns None if the provider does not work that weekday.
        """
        schedule = self.working_hours.for_weekday(day.weekday())
        if not schedule.enabled:
            return None
        return schedule.to_working_hours()


class OracleConfig(BaseModel):
    """Travel-time provider settings."""
    provider: Literal["mapbox", "google", "mock"] = "mapbox"
    access_token: str = ""
    timeout_seconds: float = 10.0
    max_concurrent_requests: int = 4
    mock_data_file: Optional[Path] = None

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return v

    @field_validator("max_concurrent_requests")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_concurrent_requests must be greater than zero")
        return v

    def get_access_token(self) -> str:
        """
        Token from the config file, else from the provider's environment variable.

        Raises:
            InvalidConfigurationError: If a real provider has no token
        """
        if self.provider == "mock":
            return ""

        token = self.access_token or os.environ.get(TOKEN_ENV_VARS[self.provider], "")
        if not token:
            raise InvalidConfigurationError(
                f"No access token for '{self.provider}'. Set oracle.access_token "
                f"or the {TOKEN_ENV_VARS[self.provider]} environment variable."
            )
        return token


class AppConfig(BaseModel):
    """Application configuration."""
    provider: ProviderConfig
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    fallback_buffers: Dict[TransportationMode, int] = Field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_BUFFERS)
    )
    timezone: str = "UTC"

    @field_validator("fallback_buffers")
    @classmethod
    def validate_fallback_buffers(cls, value: Dict[TransportationMode, int]) -> Dict[TransportationMode, int]:
        """Fill unspecified modes with defaults and reject negative buffers."""
        negative = {mode.value: minutes for mode, minutes in value.items() if minutes < 0}
        if negative:
            raise ValueError(f"fallback_buffers must not be negative, got {negative}")
        merged = dict(DEFAULT_FALLBACK_BUFFERS)
        merged.update(value)
        return merged

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        # Relative mock data paths are resolved against the config file
        mock_file = config.oracle.mock_data_file
        if mock_file is not None and not mock_file.is_absolute():
            config.oracle.mock_data_file = config_path.parent / mock_file

        return config

    def resolve_day(self, value: Optional[str] = None) -> pendulum.DateTime:
        """
        Parse a YYYY-MM-DD date in the configured timezone (today if omitted).

        Raises:
            InvalidRequestError: If the date cannot be parsed
        """
        if not value:
            return pendulum.now(self.timezone).start_of("day")
        try:
            return pendulum.from_format(value, "YYYY-MM-DD", tz=self.timezone).start_of("day")
        except ValueError as exc:
            raise InvalidRequestError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
