"""
Deploy use case — deploy a catalog project by name and record it.

This is the caller side of the orchestrator: it loads the catalog,
wires the default deployers, runs the deploy, and writes the outcome
to the deploy ledger. Any host (CLI, web hook, chat bot) goes through
here.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any
from dataclasses import dataclass
from pathlib import Path

from deploybot.adapters.registry import DeployerRegistry
from deploybot.adapters.vcs.git import GitCommitResolver
from deploybot.core.config.loader import (
    ConfigError,
    Settings,
    config_root,
    find_config_file,
    load_config,
)
from deploybot.core.engine.orchestrator import DeployOrchestrator
from deploybot.core.models.outcome import DeployOutcome
from deploybot.core.models.project import Project
from deploybot.core.persistence.deploy_log import DeployLedger, DeployRecord

logger = logging.getLogger(__name__)


@dataclass
class DeployResult:
    """Result of deploying a project by name."""

    outcome: DeployOutcome | None = None
    project: Project | None = None
    recorded: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.outcome is not None and self.outcome.ok

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        result: dict = {"recorded": self.recorded}
        if self.outcome is not None:
            result.update(self.outcome.to_dict())
        return result


def default_registry(settings: Settings) -> DeployerRegistry:
    """Registry with the built-in deployers installed."""
    from deploybot.adapters.ci.webhook import WebhookDeployer
    from deploybot.adapters.mock import MockDeployer
    from deploybot.adapters.shell.script import ShellScriptDeployer

    registry = DeployerRegistry()
    registry.register("mock", MockDeployer)
    registry.register(
        "shell",
        lambda: ShellScriptDeployer(work_dir=settings.work_dir, git_timeout=settings.git_timeout),
    )
    registry.register("webhook", WebhookDeployer)
    return registry


def default_resolver(settings: Settings) -> GitCommitResolver:
    return GitCommitResolver(cache_dir=settings.cache_dir, timeout=settings.git_timeout)


def split_actions(actions: str | Sequence[str] | None) -> list[str] | None:
    """Accept ``"migrate,restart"`` as well as a list of actions."""
    if actions is None:
        return None
    if isinstance(actions, str):
        actions = actions.split(",")
    cleaned = [a.strip() for a in actions if a.strip()]
    return cleaned or None


def run_deploy(
    app: str,
    branch: str | None = None,
    actions: str | Sequence[str] | None = None,
    environment: str | None = None,
    box: str | None = None,
    variables: Mapping[str, Any] | None = None,
    via: str = "cli",
    config_path: Path | None = None,
    registry: DeployerRegistry | None = None,
    resolver: GitCommitResolver | None = None,
    ledger: DeployLedger | None = None,
) -> DeployResult:
    """Deploy the project called ``app``.

    Args:
        app: Project name in the catalog.
        branch: Branch to deploy (default: master).
        actions: Deploy actions, as a list or comma-separated string.
        environment: Target environment.
        box: Target box within the environment.
        variables: Free-form variables passed through to the deployer.
        via: Where the request came from (recorded in the ledger).
        config_path: Optional explicit path to deploybot.yml.
        registry: Optional pre-configured deployer registry.
        resolver: Optional pre-configured commit resolver.
        ledger: Optional deploy ledger (default: settings.ledger_path).

    Returns:
        DeployResult with the orchestration outcome.
    """
    result = DeployResult()

    # ── Load config ──────────────────────────────────────────────
    try:
        if config_path is None:
            config_path = find_config_file()
        config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    assert config_path is not None
    settings = config.settings.resolved(config_root(config_path))
    project = config.get_project(app)
    result.project = project

    # ── Wire ─────────────────────────────────────────────────────
    orchestrator = DeployOrchestrator(
        registry=registry if registry is not None else default_registry(settings),
        resolver=resolver if resolver is not None else default_resolver(settings),
    )

    # ── Deploy ───────────────────────────────────────────────────
    start = time.monotonic()
    outcome = orchestrator.deploy(
        project,
        branch=branch,
        actions=split_actions(actions),
        environment=environment,
        box=box,
        variables=variables,
        via=via,
    )
    elapsed_ms = int((time.monotonic() - start) * 1000)
    result.outcome = outcome

    if outcome.ok:
        logger.info("%s (%dms)", outcome.summary, elapsed_ms)
    else:
        logger.warning("Deploy of %s failed: %s", app, outcome.failure_reason)

    # ── Record ───────────────────────────────────────────────────
    # Nothing to record against a project that doesn't exist
    if project is not None:
        if ledger is None:
            ledger = DeployLedger(Path(settings.ledger_path))
        record = DeployRecord.from_outcome(
            project=project.name,
            branch=branch or "master",
            outcome=outcome,
            duration_ms=elapsed_ms,
        )
        result.recorded = ledger.write(record)

    return result
