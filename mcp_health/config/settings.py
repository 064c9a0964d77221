"""Configuration management for MCP health checks."""

import copy
import json
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from ..core.deadline import LONG_TIMEOUT, SHORT_TIMEOUT


@dataclass
class CheckerConfig:
    """Configuration for a specific checker."""

    enabled: bool = True
    timeout: float | None = None
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthProfile:
    """A health-check profile: checker settings plus batch and recording limits."""

    name: str
    description: str
    checkers: dict[str, CheckerConfig] = field(default_factory=dict)
    timeout_margin: float = 0.5
    close_grace: float = 5.0
    connection_batch_size: int = 10
    compliance_batch_size: int = 5
    score_batch_size: int = 20
    score_change_threshold: int = 5
    error_max_length: int = 1000
    detail_max_length: int = 200
    inflight_max_age: float = 120.0

    def batch_size(self, operation: str) -> int:
        return {
            "connection": self.connection_batch_size,
            "compliance": self.compliance_batch_size,
            "score": self.score_batch_size,
        }[operation]

    def checker_settings(self, checker_name: str) -> dict[str, Any]:
        """Flat config dict handed to a checker instance."""
        checker_config = self.checkers.get(checker_name, CheckerConfig())
        settings = {
            "enabled": checker_config.enabled,
            "timeout_margin": self.timeout_margin,
            "close_grace": self.close_grace,
            "error_max_length": self.error_max_length,
            "detail_max_length": self.detail_max_length,
        }
        if checker_config.timeout is not None:
            settings["timeout"] = checker_config.timeout
        settings.update(checker_config.parameters)
        return settings

    def is_enabled(self, checker_name: str) -> bool:
        checker_config = self.checkers.get(checker_name)
        return checker_config is not None and checker_config.enabled

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form; the name is the key it is stored under."""
        data = {key: getattr(self, key) for key in _scalar_fields()}
        data["description"] = self.description
        data["checkers"] = {name: asdict(config) for name, config in self.checkers.items()}
        return data

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "HealthProfile":
        checkers = {
            checker_name: CheckerConfig(**checker_data)
            for checker_name, checker_data in data.get("checkers", {}).items()
        }
        scalars = {key: data[key] for key in _scalar_fields() if key in data}
        return cls(name=name, description=data.get("description", ""), checkers=checkers, **scalars)


def _scalar_fields() -> list[str]:
    # Limits and sizes round-trip through JSON as-is
    return [f.name for f in fields(HealthProfile) if f.name not in ("name", "description", "checkers")]


CONFIG_LOCATIONS = [
    ".mcp-health.json",
    os.path.expanduser("~/.mcp-health.json"),
    "/etc/mcp-health.json",
]


class ConfigurationManager:
    """Built-in and file-defined health profiles, one of them active."""

    DEFAULT_PROFILES = {
        "default": HealthProfile(
            name="default",
            description="Connection checks every run, compliance battery on the long timeout",
            checkers={
                "connection": CheckerConfig(enabled=True, timeout=SHORT_TIMEOUT),
                "compliance": CheckerConfig(enabled=True, timeout=LONG_TIMEOUT),
            },
        ),
        "conservative": HealthProfile(
            name="conservative",
            description="Smaller batches and longer timeouts for slow or fragile fleets",
            checkers={
                "connection": CheckerConfig(enabled=True, timeout=20.0),
                "compliance": CheckerConfig(enabled=True, timeout=40.0),
            },
            timeout_margin=1.0,
            close_grace=10.0,
            connection_batch_size=5,
            compliance_batch_size=2,
            score_batch_size=10,
        ),
        "quick": HealthProfile(
            name="quick",
            description="Connection checks only, with short timeouts",
            checkers={
                "connection": CheckerConfig(enabled=True, timeout=5.0),
                "compliance": CheckerConfig(enabled=False, timeout=LONG_TIMEOUT),
            },
            timeout_margin=0.25,
            close_grace=2.0,
            connection_batch_size=20,
        ),
    }

    def __init__(self, config_file: str | None = None):
        self.config_file = config_file
        self.profiles: dict[str, HealthProfile] = copy.deepcopy(self.DEFAULT_PROFILES)
        self.active_profile: str = "default"

        if config_file and os.path.exists(config_file):
            self.load_config(config_file)

    def load_config(self, config_file: str) -> None:
        """Merge custom profiles from a JSON file; ValueError if it cannot be used."""
        try:
            with open(config_file) as f:
                data = json.load(f)
            for name, profile_data in data.get("profiles", {}).items():
                self.profiles[name] = HealthProfile.from_dict(name, profile_data)
            if "active_profile" in data:
                self.set_active_profile(data["active_profile"])
        except Exception as e:
            raise ValueError(f"Failed to load configuration from {config_file}: {e}") from e

    def save_config(self, config_file: str) -> None:
        """Write custom profiles and the active profile name as JSON."""
        custom = {
            name: profile.to_dict()
            for name, profile in self.profiles.items()
            if name not in self.DEFAULT_PROFILES
        }
        with open(config_file, "w") as f:
            json.dump({"active_profile": self.active_profile, "profiles": custom}, f, indent=2)

    def get_active_profile(self) -> HealthProfile:
        return self.profiles[self.active_profile]

    def set_active_profile(self, profile_name: str) -> None:
        if profile_name not in self.profiles:
            raise ValueError(f"Profile '{profile_name}' not found")
        self.active_profile = profile_name

    def list_profiles(self) -> list[str]:
        return list(self.profiles)

    def create_profile(self, profile: HealthProfile) -> None:
        """Add a profile, replacing any with the same name."""
        self.profiles[profile.name] = profile

    def get_checker_config(self, checker_name: str) -> CheckerConfig | None:
        """Checker settings from the active profile."""
        return self.get_active_profile().checkers.get(checker_name)


def load_config_from_env() -> ConfigurationManager:
    """Build a ConfigurationManager from MCP_HEALTH_CONFIG (or the first existing
    standard location) and select MCP_HEALTH_PROFILE when it names a known profile."""
    config_file = os.environ.get("MCP_HEALTH_CONFIG")
    if not config_file:
        config_file = next((path for path in CONFIG_LOCATIONS if os.path.exists(path)), None)

    config_manager = ConfigurationManager(config_file)

    profile_name = os.environ.get("MCP_HEALTH_PROFILE")
    if profile_name in config_manager.profiles:
        config_manager.set_active_profile(profile_name)

    return config_manager
