"""Adapters — deployers, their registry, and the git commit resolver.

Public re-exports for convenient access.
"""

from deploybot.adapters.base import Deployer
from deploybot.adapters.mock import MockDeployer
from deploybot.adapters.registry import DeployerRegistry, UnknownDeployType

__all__ = [
    "Deployer",
    "DeployerRegistry",
    "MockDeployer",
    "UnknownDeployType",
]
