"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.models import DEFAULT_TIMEZONE, BookingMode
from .domain.slot_generator import DEFAULT_STEP_MINUTES


class SchedulerConfig(BaseModel):
    """Salon scheduling configuration."""
    timezone: str = DEFAULT_TIMEZONE
    slot_step_minutes: int = DEFAULT_STEP_MINUTES
    default_duration_minutes: int = 30
    booking_mode: BookingMode = BookingMode.CHOOSE_EMPLOYEE
    data_file: Path = Field(default_factory=lambda: Path("schedule.json"))
    log_level: str = "WARNING"

    @field_validator("slot_step_minutes", "default_duration_minutes")
    @classmethod
    def validate_positive_minutes(cls, value: int) -> int:
        """Ensure minute values are positive."""
        if value <= 0:
            raise ValueError("minute values must be greater than zero")
        return value

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("booking_mode", mode="before")
    @classmethod
    def normalize_booking_mode(cls, value) -> BookingMode:
        """Unknown modes fall back to choose_employee."""
        return BookingMode.parse(value)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = str(value).upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "SchedulerConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            SchedulerConfig instance

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
        if not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config

    @classmethod
    def load_or_default(cls, config_path: Optional[Path]) -> "SchedulerConfig":
        """Load ``config_path`` if given, else the default file if it exists, else defaults."""
        if config_path is not None:
            return cls.load_from_yaml(config_path)

        default_path = get_default_config_path()
        if default_path.exists():
            return cls.load_from_yaml(default_path)
        return cls()


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
