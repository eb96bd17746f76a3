"""
Deploy orchestrator — the central deploy pipeline.

Takes a deploy request, pins it to a commit, builds the parameter set,
picks the project's deployer, and runs setup then execute. Each step
fails fast; the first failure becomes the outcome and nothing after it
runs. The orchestrator never raises at its caller and keeps no state
between calls.

Flow:
    validate → resolve commit → build parameters → select deployer
             → setup → execute → report
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from deploybot.adapters.registry import DeployerRegistry, UnknownDeployType
from deploybot.adapters.vcs.git import GitCommitResolver, RepositoryInaccessible
from deploybot.core.models.deploy import (
    DEFAULT_BRANCH,
    Deploy,
    DeployParameters,
    DeployRequest,
    ResolvedCommit,
)
from deploybot.core.models.outcome import DeployOutcome, FailureReason
from deploybot.core.models.project import Project

logger = logging.getLogger(__name__)


def build_parameters(request: DeployRequest) -> DeployParameters:
    """Canonical deployer parameters for a request.

    ``actions`` only when there are some; ``box`` only alongside ``env``.
    """
    metadata = {"via": request.via} if request.via else {}
    return DeployParameters(
        branch=request.branch,
        actions=request.actions,
        env=request.environment,
        box=request.box if request.environment else None,
        metadata=metadata,
    )


def describe_deploy(app: str, commit: ResolvedCommit, parameters: DeployParameters) -> str:
    """One-line description of what is being deployed.

    e.g. ``executing deploy/migrate/restart demo/master/1a2b3c to staging/web1``
    """
    summary = "executing deploy"
    for action in parameters.actions or []:
        summary += f"/{action}"

    summary += f" {app}/{commit.branch}/{commit.hash}"

    if parameters.env:
        summary += f" to {parameters.env}"
        if parameters.box:
            summary += f"/{parameters.box}"

    return summary


class DeployOrchestrator:
    """Runs deploys through the commit resolver and deployer registry.

    Args:
        registry: Deployer lookup by deploy type.
        resolver: Commit lookup for project repositories.
    """

    def __init__(self, registry: DeployerRegistry, resolver: GitCommitResolver):
        self.registry = registry
        self.resolver = resolver

    def deploy(
        self,
        project: Project | None,
        branch: str | None = DEFAULT_BRANCH,
        actions: Sequence[str] | None = None,
        environment: str | None = None,
        box: str | None = None,
        variables: Mapping[str, Any] | None = None,
        via: str | None = None,
    ) -> DeployOutcome:
        """Deploy the latest commit of ``branch``.

        Returns:
            DeployOutcome — success with a summary, or the failure kind
            of the first step that failed.
        """
        request = DeployRequest(
            project=project,
            branch=branch,
            actions=list(actions) if actions is not None else None,
            environment=environment,
            box=box,
            variables=dict(variables) if variables is not None else None,
            via=via,
        )
        return self.run(request)

    def run(self, request: DeployRequest) -> DeployOutcome:
        """Run the pipeline for an already-built request."""
        # ── 1. Validate ─────────────────────────────────────────
        project = request.project
        if project is None:
            return DeployOutcome.failure(
                FailureReason.PROJECT_NOT_FOUND,
                "Hmm, that project doesn't appear to exist. Have you set it up?",
            )

        # ── 2. Resolve commit ───────────────────────────────────
        try:
            hashes = self.resolver.resolve(project, request.branch)
        except RepositoryInaccessible as e:
            logger.warning("%s", e)
            return DeployOutcome.failure(
                FailureReason.REPOSITORY_INACCESSIBLE,
                f"Can't access the repository for {project.name}: {e.reason}",
            )

        if not hashes:
            logger.warning("Branch %s not found in %s", request.branch, project.name)
            return DeployOutcome.failure(
                FailureReason.BRANCH_NOT_FOUND,
                f"Branch '{request.branch}' doesn't appear to exist. Have you pushed it?",
            )

        # Most recent first: index 0 is the tip of the branch
        commit = ResolvedCommit(branch=request.branch, hash=hashes[0])

        # ── 3. Build parameters ─────────────────────────────────
        parameters = build_parameters(request)
        deploy = Deploy(
            project=project,
            branch=commit.branch,
            commit=commit.hash,
            environment=parameters.env,
            box=parameters.box,
            actions=parameters.actions,
            variables=request.variables,
            via=request.via,
        )
        summary = describe_deploy(project.name, commit, parameters)
        context = {
            "summary": summary,
            "commit": commit.hash,
            "parameters": parameters,
            "deploy": deploy,
        }

        # ── 4. Select deployer ──────────────────────────────────
        try:
            deployer = self.registry.resolve(project.deploy_type)
        except UnknownDeployType as e:
            logger.warning("%s (project %s)", e, project.name)
            return DeployOutcome.failure(FailureReason.UNKNOWN_DEPLOY_TYPE, str(e), **context)
        except Exception as e:
            logger.error("Deployer for %s could not be created: %s", project.deploy_type, e)
            return DeployOutcome.failure(
                FailureReason.UNKNOWN_DEPLOY_TYPE,
                f"Deployer for '{project.deploy_type}' could not be created: {e}",
                **context,
            )

        # ── 5. Setup ────────────────────────────────────────────
        try:
            ready = deployer.setup(project, parameters)
        except Exception as e:
            logger.error("Deployer %s raised during setup of %s: %s", deployer.name, project.name, e)
            return DeployOutcome.failure(
                FailureReason.SETUP_FAILED, f"Setup error: {e}", **context
            )
        if not ready:
            logger.warning("Setup of %s with %s failed", project.name, deployer.name)
            return DeployOutcome.failure(
                FailureReason.SETUP_FAILED,
                f"Deployer '{deployer.name}' could not prepare {project.name}",
                **context,
            )

        # ── 6. Execute ──────────────────────────────────────────
        logger.info("%s (via %s)", summary, deployer.name)
        try:
            shipped = deployer.execute(deploy, parameters)
        except Exception as e:
            logger.error("Deployer %s raised during deploy of %s: %s", deployer.name, project.name, e)
            return DeployOutcome.failure(
                FailureReason.EXECUTE_FAILED, f"Deploy error: {e}", **context
            )
        if not shipped:
            logger.warning("Deploy of %s with %s failed", project.name, deployer.name)
            return DeployOutcome.failure(
                FailureReason.EXECUTE_FAILED,
                f"Deployer '{deployer.name}' reported failure",
                **context,
            )

        # ── 7. Report ───────────────────────────────────────────
        logger.info("✓ %s/%s@%s deployed", project.name, commit.branch, commit.short)
        return DeployOutcome.succeeded(**context)
