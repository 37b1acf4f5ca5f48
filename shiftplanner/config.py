"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Literal

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.leave_workflow import ACTIVE_STATUSES
from .domain.models import LeaveStatus, Role, coerce_enum
from .domain.permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    Permission,
    RolePermissionTable,
    build_grants,
)

CONFIG_ENV_VAR = "SHIFTPLANNER_CONFIG"


class AggregationConfig(BaseModel):
    """How hour summaries are refreshed after slot writes."""
    mode: Literal["inline", "deferred"] = "inline"
    max_attempts: int = 3
    retry_delay_seconds: float = 0.5

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, value: int) -> int:
        """Ensure at least one attempt is made."""
        if value < 1:
            raise ValueError("max_attempts must be at least 1")
        return value

    @field_validator("retry_delay_seconds")
    @classmethod
    def validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("retry_delay_seconds cannot be negative")
        return value


class LeaveLimitsConfig(BaseModel):
    """Maximum length of a leave request per type."""
    annual_working_days: int = 24
    parental_working_days: int = 90
    max_years: int = 1

    @field_validator("annual_working_days", "parental_working_days", "max_years")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"Leave limits must be greater than zero, got {value}")
        return value


def _default_roles() -> Dict[str, List[str]]:
    return {
        role.value: sorted(p.value for p in permissions)
        for role, permissions in DEFAULT_ROLE_PERMISSIONS.items()
    }


class AppConfig(BaseModel):
    """Application configuration."""
    database_url: str = "sqlite:///shiftplanner.db"
    timezone: str = "Europe/Paris"
    log_level: str = "INFO"
    leave_blocking_statuses: List[LeaveStatus] = Field(
        default_factory=lambda: sorted(ACTIVE_STATUSES, key=lambda s: s.value)
    )
    aggregation: AggregationConfig = Field(default_factory=AggregationConfig)
    leave_limits: LeaveLimitsConfig = Field(default_factory=LeaveLimitsConfig)
    roles: Dict[str, List[str]] = Field(default_factory=_default_roles)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("leave_blocking_statuses", mode="before")
    @classmethod
    def validate_blocking_statuses(cls, value) -> List[LeaveStatus]:
        """Accept status names or values, and only statuses that can still apply."""
        statuses: List[LeaveStatus] = []
        for item in value or []:
            status = coerce_enum(LeaveStatus, item)
            if status not in ACTIVE_STATUSES:
                raise ValueError(
                    f"Only PENDING and APPROVED leave can block scheduling, got {status.name}"
                )
            if status not in statuses:
                statuses.append(status)
        if not statuses:
            raise ValueError("leave_blocking_statuses must contain at least one status")
        return statuses

    @field_validator("roles")
    @classmethod
    def validate_roles(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        """Ensure every role and permission name is known."""
        build_grants(value)
        return value

    def role_table(self) -> RolePermissionTable:
        """Initial role/permission table used until one is stored."""
        return RolePermissionTable(version=1, grants=build_grants(self.roles))

    def permissions_for(self, role: Role) -> List[Permission]:
        return sorted(self.role_table().permissions_for(role), key=lambda p: p.value)

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
    """
    Config file to use when none is given: $SHIFTPLANNER_CONFIG, then
    ./config.yaml, then the config.yaml next to the package.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)

    candidates = [Path.cwd() / "config.yaml", Path(__file__).parent.parent / "config.yaml"]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Load the config file if there is one, otherwise fall back to defaults.

    An explicit path, or one named by $SHIFTPLANNER_CONFIG, must exist.
    """
    explicit = config_path is not None or bool(os.environ.get(CONFIG_ENV_VAR))
    path = config_path or get_default_config_path()
    if not explicit and not path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(path)
