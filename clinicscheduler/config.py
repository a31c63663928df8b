"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import Resource, WorkingHours
from .services.scheduler import DEFAULT_RESOURCES

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class DefaultsConfig(BaseModel):
    """Default settings for slot searches."""
    duration_minutes: int = 30
    start_hour: int = 9
    end_hour: int = 17
    slot_step_minutes: int = 30

    @field_validator("duration_minutes", "slot_step_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations are positive."""
        if value <= 0:
            raise ValueError("duration_minutes and slot_step_minutes must be greater than zero")
        return value

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "DefaultsConfig":
        """Ensure the working day opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self

    def get_start_time(self) -> time:
        """Get start time as time object."""
        return time(hour=self.start_hour, minute=0)

    def get_end_time(self) -> time:
        """Get end time as time object."""
        return time(hour=self.end_hour, minute=0)


class ResourceConfig(BaseModel):
    """A shared resource seeded into every new scheduler."""
    name: str
    type: str
    location: str

    def to_resource(self) -> Resource:
        return Resource(name=self.name, type=self.type, location=self.location)


def _default_resources() -> List[ResourceConfig]:
    return [
        ResourceConfig(name=resource.name, type=resource.type, location=resource.location)
        for resource in DEFAULT_RESOURCES
    ]


class AppConfig(BaseModel):
    """Application configuration."""
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    resources: List[ResourceConfig] = Field(default_factory=_default_resources)
    exclude_days: List[int] = Field(default_factory=list)  # 0=Monday, 6=Sunday
    exclusive_professional_time: bool = False
    enforce_shared_resources: bool = False
    data_file: Path = Path("scheduler_data.json")
    undo_history_limit: int = 20  # undo steps kept in the data file
    log_level: str = "WARNING"

    @field_validator("undo_history_limit")
    @classmethod
    def validate_history_limit(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"undo_history_limit must not be negative, got {value}")
        return value

    @field_validator("exclude_days")
    @classmethod
    def validate_exclude_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"exclude_days must be between 0 and 6, got {invalid_days}")
        # Preserve order while removing duplicates
        seen: set[int] = set()
        deduped: List[int] = []
        for day in value:
            if day not in seen:
                deduped.append(day)
                seen.add(day)
        return deduped

    @field_validator("resources")
    @classmethod
    def validate_resources(cls, value: List[ResourceConfig]) -> List[ResourceConfig]:
        """Ensure seeded resources are unique."""
        seen: set[tuple] = set()
        for resource in value:
            key = (resource.name, resource.type, resource.location)
            if key in seen:
                raise ValueError(f"Duplicate resource detected: {resource.name}")
            seen.add(key)
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value}")
        return level

    def get_working_hours(self) -> WorkingHours:
        """Build the working-hours grid used by slot searches."""
        return WorkingHours(
            start_time=self.defaults.get_start_time(),
            end_time=self.defaults.get_end_time(),
            slot_step_minutes=self.defaults.slot_step_minutes,
            exclude_weekdays=tuple(self.exclude_days),
        )

    def get_seed_resources(self) -> List[Resource]:
        return [resource.to_resource() for resource in self.resources]

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

        return cls(**data)


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
