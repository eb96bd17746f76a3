"""
Deployer base — the contract between the orchestrator and deploy mechanisms.

The orchestrator only talks to deployers through this interface, never
to scripts, CI servers or cloud APIs directly. A deployer can be as
complex as it likes internally; the orchestrator sees two booleans.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from deploybot.core.models.deploy import Deploy, DeployParameters
from deploybot.core.models.project import Project


class Deployer(ABC):
    """Abstract base class for all deployers.

    ``Deployer`` itself cannot be instantiated: concrete classes must
    implement ``name`` and ``execute``. ``setup`` defaults to a no-op
    success.

    To create a new deployer:
        1. Subclass Deployer
        2. Implement name and execute (and setup if the target needs preparing)
        3. Register a factory for it in the DeployerRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The deploy type this deployer handles (e.g., 'shell', 'webhook')."""

    def is_available(self) -> bool:
        """Whether the underlying tool or service can be used at all.

        Should be fast and never raise.
        """
        return True

    def setup(self, project: Project, config: DeployParameters) -> bool:
        """Prepare the deploy target.

        Must be idempotent: calling it again with the same inputs has
        no further observable effect.
        """
        return True

    @abstractmethod
    def execute(self, deploy: Deploy, config: DeployParameters) -> bool:
        """Ship ``deploy.commit`` and return True on success."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
