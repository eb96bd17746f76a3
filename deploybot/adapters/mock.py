"""
Mock deployer — test double for the deployer contract.

Deploys nothing. Records every call so tests (and dry runs through the
``mock`` deploy type) can see exactly what the orchestrator asked for.
"""

from __future__ import annotations

import logging
import threading

from deploybot.adapters.base import Deployer
from deploybot.core.models.deploy import Deploy, DeployParameters
from deploybot.core.models.project import Project

logger = logging.getLogger(__name__)


class MockDeployer(Deployer):
    """Mock deployer for testing.

    By default, setup and execute both succeed. Either can be
    configured to fail, or to raise, to exercise the error paths.
    """

    def __init__(
        self,
        deployer_name: str = "mock",
        available: bool = True,
        setup_result: bool = True,
        execute_result: bool = True,
    ):
        self._name = deployer_name
        self._available = available
        self.setup_result = setup_result
        self.execute_result = execute_result
        self.setup_error: Exception | None = None
        self.execute_error: Exception | None = None
        self._prepared: set[str] = set()
        self._setup_log: list[tuple[Project, DeployParameters]] = []
        self._call_log: list[tuple[Deploy, DeployParameters]] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[tuple[Deploy, DeployParameters]]:
        """Every (deploy, config) pair execute has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    @property
    def setup_log(self) -> list[tuple[Project, DeployParameters]]:
        return self._setup_log

    @property
    def prepared(self) -> set[str]:
        """Names of projects whose target has been prepared."""
        return self._prepared

    def is_available(self) -> bool:
        return self._available

    def setup(self, project: Project, config: DeployParameters) -> bool:
        with self._lock:
            self._setup_log.append((project, config))
            if self.setup_error is not None:
                raise self.setup_error
            if not self.setup_result:
                return False
            if project.name not in self._prepared:
                logger.debug("[mock] preparing %s", project.name)
                self._prepared.add(project.name)
            return True

    def execute(self, deploy: Deploy, config: DeployParameters) -> bool:
        with self._lock:
            self._call_log.append((deploy, config))
        if self.execute_error is not None:
            raise self.execute_error
        logger.info(
            "[mock] deploy %s/%s/%s", deploy.project.name, deploy.branch, deploy.commit
        )
        return self.execute_result

    def reset(self) -> None:
        """Clear call logs and prepared targets."""
        with self._lock:
            self._call_log.clear()
            self._setup_log.clear()
            self._prepared.clear()
