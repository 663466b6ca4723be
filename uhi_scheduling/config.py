"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Dict, List, Tuple

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .domain.exceptions import ConfigError
from .domain.models import TimeRange
from .domain.state_machine import DEFAULT_TAG_PREFIX, FulfillmentStatus
from .domain.working_hours import WEEKDAY_NAMES, WorkingHours, weekday_index

RangePairs = List[Tuple[str, str]]


def _parse_pairs(pairs: RangePairs) -> List[TimeRange]:
    return [TimeRange.parse(start, end) for start, end in pairs]


class ScheduleConfig(BaseModel):
    """
    Weekly schedule as written in YAML or JSON.

    Example:
        timezone: Europe/Berlin
        regular_hours:
          MON: [["09:00", "12:00"], ["14:00", "18:00"]]
        exceptions:
          "2024-12-24": [["09:00", "12:00"]]
        breaks:
          MON: [["10:30", "10:45"]]
    """
    timezone: str = "UTC"
    regular_hours: Dict[str, RangePairs] = Field(default_factory=dict)
    exceptions: Dict[date, RangePairs] = Field(default_factory=dict)
    breaks: Dict[str, RangePairs] = Field(default_factory=dict)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("regular_hours", "breaks")
    @classmethod
    def validate_weekly(cls, value: Dict[str, RangePairs]) -> Dict[str, RangePairs]:
        """Normalise weekday keys to MON..SUN and check every range."""
        normalised: Dict[str, RangePairs] = {}
        for day, pairs in value.items():
            name = WEEKDAY_NAMES[weekday_index(day)]
            if name in normalised:
                raise ValueError(f"Weekday {name} listed more than once")
            _parse_pairs(pairs)
            normalised[name] = pairs
        return normalised

    @field_validator("exceptions")
    @classmethod
    def validate_exceptions(cls, value: Dict[date, RangePairs]) -> Dict[date, RangePairs]:
        for pairs in value.values():
            _parse_pairs(pairs)
        return value

    def to_working_hours(self) -> WorkingHours:
        return WorkingHours(
            regular_hours={weekday_index(d): _parse_pairs(p) for d, p in self.regular_hours.items()},
            exceptions={d: _parse_pairs(p) for d, p in self.exceptions.items()},
            breaks={weekday_index(d): _parse_pairs(p) for d, p in self.breaks.items()},
            timezone=self.timezone,
        )

    @classmethod
    def from_working_hours(cls, working_hours: WorkingHours) -> "ScheduleConfig":
        def pairs(ranges) -> RangePairs:
            return [(f"{r.start:%H:%M}", f"{r.end:%H:%M}") for r in ranges]

        return cls(
            timezone=working_hours.timezone,
            regular_hours={WEEKDAY_NAMES[d]: pairs(r) for d, r in working_hours.regular_hours.items()},
            exceptions={d: pairs(r) for d, r in working_hours.exceptions.items()},
            breaks={WEEKDAY_NAMES[d]: pairs(r) for d, r in working_hours.breaks.items()},
        )


class LoggingConfig(BaseModel):
    """Log level and handler style."""
    level: str = "INFO"
    format: str = "rich"

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("format")
    @classmethod
    def validate_format(cls, value: str) -> str:
        if value not in ("rich", "plain"):
            raise ValueError(f"Log format must be 'rich' or 'plain', got {value!r}")
        return value


class SchedulingConfig(BaseModel):
    """Engine tunables."""
    default_duration_seconds: int = 3600
    state_tag_prefix: str = DEFAULT_TAG_PREFIX
    strict_status_sync: bool = False
    ignored_states: List[str] = Field(default_factory=list)

    @field_validator("default_duration_seconds")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure the fallback booking length is positive."""
        if value <= 0:
            raise ValueError("default_duration_seconds must be greater than zero")
        return value

    @field_validator("ignored_states")
    @classmethod
    def validate_states(cls, value: List[str]) -> List[str]:
        known = {state.value for state in FulfillmentStatus}
        unknown = [state for state in value if state not in known]
        if unknown:
            raise ValueError(f"ignored_states contains unknown states: {unknown}")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    default_schedule: ScheduleConfig = Field(
        default_factory=lambda: ScheduleConfig.from_working_hours(WorkingHours.default())
    )
    data_file: Path = Path("data.json")

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
            ConfigError: If config is invalid
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
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping at the root level.")

        try:
            config = cls(**data)
        except PydanticValidationError as exc:
            raise ConfigError(f"Invalid configuration in {config_path}:\n{exc}") from exc

        # Relative data files are resolved against the config file's folder
        if not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config


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
