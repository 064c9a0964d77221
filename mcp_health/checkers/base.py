"""Base checker interface for MCP health checks."""

from abc import ABC, abstractmethod
from typing import Any

from ..core.client import ProtocolClient
from ..core.deadline import SHORT_TIMEOUT


class BaseChecker(ABC):
    """Base class for all checkers that talk to a remote MCP server."""

    default_timeout: float = SHORT_TIMEOUT

    def __init__(self, config: dict[str, Any] = None, client: ProtocolClient | None = None):
        self.config = config or {}
        self.client = client or ProtocolClient()
        self.enabled = self.config.get("enabled", True)
        self.timeout = float(self.config.get("timeout", self.default_timeout))

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this checker."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this checker measures."""
        pass

    @abstractmethod
    async def check(self, endpoint: str, transport_kind: str) -> Any:
        """Run the check against one endpoint. Never raises for remote failures."""
        pass

    def configure(self, config: dict[str, Any]) -> None:
        """Update checker configuration."""
        self.config.update(config)
        self.enabled = self.config.get("enabled", True)
        self.timeout = float(self.config.get("timeout", self.default_timeout))


class CheckerRegistry:
    """Registry for available checkers."""

    def __init__(self):
        self._checkers: dict[str, type[BaseChecker]] = {}

    def register(self, checker_class: type[BaseChecker]) -> None:
        """Register a checker class."""
        # Create temporary instance to get name
        temp_instance = checker_class()
        self._checkers[temp_instance.name] = checker_class

    def get_checker(self, name: str) -> type[BaseChecker] | None:
        """Get checker class by name."""
        return self._checkers.get(name)

    def list_checkers(self) -> list[str]:
        """List all registered checker names."""
        return list(self._checkers.keys())

    def create_checker(
        self, name: str, config: dict[str, Any] = None, **kwargs: Any
    ) -> BaseChecker | None:
        """Create checker instance with configuration."""
        checker_class = self.get_checker(name)
        if checker_class:
            return checker_class(config, **kwargs)
        return None


def build_default_registry() -> CheckerRegistry:
    """Registry holding the built-in connection and compliance checkers."""
    from .compliance import ComplianceChecker
    from .connection import ConnectionChecker

    registry = CheckerRegistry()
    registry.register(ConnectionChecker)
    registry.register(ComplianceChecker)
    return registry
