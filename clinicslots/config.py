"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import (
    CLINIC_SCHEDULE,
    CLINIC_TIMEZONE,
    DAY_NAMES,
    Doctor,
    Duration,
    WeeklySchedule,
)
from .domain.reminders import DEFAULT_REMINDER_LEAD_HOURS
from .domain.slot_generator import resolve_timezone


class DoctorConfig(BaseModel):
    """Doctor directory entry."""
    id: str
    name: str
    email: str
    specialty: str = ""
    bio: str = ""

    def to_doctor(self) -> Doctor:
        return Doctor(
            id=self.id,
            name=self.name,
            email=self.email,
            specialty=self.specialty,
            bio=self.bio,
        )


def _default_doctors() -> List[DoctorConfig]:
    return [
        DoctorConfig(
            id="d1",
            name="Dr. Sarah Bennett",
            email="sarah@vitalcare.com",
            specialty="Cardiologist",
            bio="Preventative cardiology and women's heart health.",
        ),
        DoctorConfig(
            id="d2",
            name="Dr. James Wu",
            email="james@vitalcare.com",
            specialty="Dermatologist",
            bio="Cosmetic and medical dermatology with a focus on holistic skin care.",
        ),
        DoctorConfig(
            id="d3",
            name="Dr. Emily Carter",
            email="emily@vitalcare.com",
            specialty="General Practitioner",
            bio="Family doctor dedicated to long-term patient wellness.",
        ),
    ]


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = CLINIC_TIMEZONE
    schedule: Dict[str, List[Tuple[float, float]]] = Field(
        default_factory=CLINIC_SCHEDULE.to_hours
    )
    default_duration: int = 30
    reminder_lead_hours: float = DEFAULT_REMINDER_LEAD_HOURS
    data_file: Path = Path("clinicslots_data.json")
    doctors: List[DoctorConfig] = Field(default_factory=_default_doctors)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA zone."""
        resolve_timezone(value)
        return value

    @field_validator("schedule")
    @classmethod
    def validate_schedule(
        cls, value: Dict[str, List[Tuple[float, float]]]
    ) -> Dict[str, List[Tuple[float, float]]]:
        """Ensure day names are valid and windows are sorted and disjoint."""
        normalized = {day.lower(): windows for day, windows in value.items()}
        unknown_days = [day for day in normalized if day not in DAY_NAMES]
        if unknown_days:
            raise ValueError(f"Unknown schedule day(s): {', '.join(sorted(unknown_days))}")
        WeeklySchedule.from_hours(
            {DAY_NAMES.index(day): windows for day, windows in normalized.items()}
        )
        return normalized

    @field_validator("default_duration")
    @classmethod
    def validate_default_duration(cls, value: int) -> int:
        """Ensure the default duration is a supported one."""
        return int(Duration.parse(value))

    @field_validator("reminder_lead_hours")
    @classmethod
    def validate_reminder_lead_hours(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("reminder_lead_hours must be greater than zero")
        return value

    @field_validator("doctors")
    @classmethod
    def validate_doctors(cls, value: List[DoctorConfig]) -> List[DoctorConfig]:
        """Ensure doctor ids are unique."""
        seen_ids: set[str] = set()
        for doctor in value:
            if doctor.id in seen_ids:
                raise ValueError(f"Duplicate doctor id detected: {doctor.id}")
            seen_ids.add(doctor.id)
        return value

    @model_validator(mode="after")
    def validate_clinic_open(self) -> "AppConfig":
        """Ensure the clinic opens on at least one day."""
        if not any(self.schedule.values()):
            raise ValueError("schedule must define at least one opening window")
        return self

    def get_schedule(self) -> WeeklySchedule:
        """Build the weekly schedule from the configured table."""
        return WeeklySchedule.from_hours(
            {DAY_NAMES.index(day): windows for day, windows in self.schedule.items()}
        )

    def get_doctors(self) -> List[Doctor]:
        return [doctor.to_doctor() for doctor in self.doctors]

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


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load the configuration, falling back to built-in defaults.

    An explicit path must exist; without one, the default location is used
    when present and the built-in clinic settings otherwise.
    """
    if config_path is not None:
        return AppConfig.load_from_yaml(config_path)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)

    return AppConfig()
