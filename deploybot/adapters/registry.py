"""
Deployer registry — maps a project's deploy type to a deployer.

The registry holds factories, not instances: a deployer is built the
first time its type is resolved and cached after that. Registering a
type again replaces the factory and drops the cached instance, so
later resolves see the new behavior while callers already holding
the old instance keep it.

One registry is created per process (or per test) and injected into
the orchestrator. It is safe to share between request threads.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable
from typing import Any

from deploybot.adapters.base import Deployer

logger = logging.getLogger(__name__)

DeployerFactory = Callable[[], Deployer]

_KEY_RE = re.compile(r"^[a-z][a-z0-9_.-]*$")


class UnknownDeployType(LookupError):
    """Raised when no deployer is registered for a deploy type."""

    def __init__(self, deploy_type: str):
        self.deploy_type = deploy_type
        super().__init__(f"No deployer registered for deploy type '{deploy_type}'")


def normalize_key(deploy_type: str) -> str:
    """Canonical form of a deploy type key."""
    return deploy_type.strip().lower()


class DeployerRegistry:
    """Thread-safe registry of deployer factories.

    Features:
        - Register/unregister factories by deploy type
        - Lazy instantiation, one cached instance per type
        - Query availability of every registered deployer
    """

    def __init__(self) -> None:
        self._factories: dict[str, DeployerFactory] = {}
        self._instances: dict[str, Deployer] = {}
        self._lock = threading.RLock()

    def register(self, deploy_type: str, factory: DeployerFactory) -> None:
        """Register a factory for a deploy type, replacing any previous one.

        Args:
            deploy_type: The key projects use in ``deploy_type``.
            factory: Zero-argument callable returning a Deployer
                (a Deployer subclass works as its own factory).

        Raises:
            ValueError: If the key is not a valid deploy type name.
        """
        key = normalize_key(deploy_type)
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid deploy type name: {deploy_type!r}")

        with self._lock:
            if key in self._factories:
                logger.warning("Overwriting existing deployer: %s", key)
            self._factories[key] = factory
            self._instances.pop(key, None)
        logger.debug("Registered deployer: %s", key)

    def unregister(self, deploy_type: str) -> None:
        """Remove a deploy type from the registry."""
        key = normalize_key(deploy_type)
        with self._lock:
            self._factories.pop(key, None)
            self._instances.pop(key, None)

    def resolve(self, deploy_type: str) -> Deployer:
        """Return the deployer for a deploy type, building it on first use.

        Raises:
            UnknownDeployType: If nothing is registered under the key.
        """
        key = normalize_key(deploy_type)
        with self._lock:
            instance = self._instances.get(key)
            if instance is not None:
                return instance

            factory = self._factories.get(key)
            if factory is None:
                raise UnknownDeployType(deploy_type)

            instance = factory()
            if not isinstance(instance, Deployer):
                raise TypeError(
                    f"Factory for '{key}' returned {type(instance).__name__}, not a Deployer"
                )
            self._instances[key] = instance
            logger.debug("Instantiated deployer %r for '%s'", instance, key)
            return instance

    def __contains__(self, deploy_type: str) -> bool:
        with self._lock:
            return normalize_key(deploy_type) in self._factories

    def list_types(self) -> list[str]:
        """List all registered deploy types, sorted."""
        with self._lock:
            return sorted(self._factories)

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered deployers."""
        status = {}
        for key in self.list_types():
            try:
                deployer = self.resolve(key)
                available = deployer.is_available()
                kind = deployer.__class__.__name__
            except Exception as e:
                logger.warning("Deployer '%s' could not be checked: %s", key, e)
                available = False
                kind = "unknown"
            status[key] = {
                "name": key,
                "available": available,
                "type": kind,
            }
        return status
