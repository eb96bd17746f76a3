"""
Setup use case — add a project to the catalog.

A project is only saved once its repository has been cloned into the
commit cache, so a catalog entry always points at a reachable repo
at the time it was added.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from deploybot.adapters.registry import DeployerRegistry
from deploybot.adapters.vcs.git import GitCommitResolver
from deploybot.core.config.loader import (
    CONFIG_FILE,
    ConfigError,
    config_root,
    find_config_file,
    load_config,
)
from deploybot.core.models.project import Project
from deploybot.core.persistence.project_store import DuplicateProject, add_project
from deploybot.core.use_cases.deploy import default_registry, default_resolver

logger = logging.getLogger(__name__)


@dataclass
class SetupResult:
    """Result of setting up a project."""

    project: Project | None = None
    config_path: Path | None = None
    message: str = ""
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "project": self.project.model_dump(mode="json") if self.project else None,
            "config_path": str(self.config_path),
            "message": self.message,
            "warnings": self.warnings,
        }


def setup_project(
    app: str,
    repo_url: str | None,
    deploy_type: str | None,
    options: dict[str, Any] | None = None,
    description: str = "",
    config_path: Path | None = None,
    registry: DeployerRegistry | None = None,
    resolver: GitCommitResolver | None = None,
) -> SetupResult:
    """Validate, clone, and save a new project.

    Args:
        app: Project name (unique in the catalog).
        repo_url: Repository to deploy from.
        deploy_type: Deployer key for this project.
        options: Deployer-specific options.
        description: Free text.
        config_path: Catalog file; searched upward, else ./deploybot.yml.
        registry: Registry used to warn about unknown deploy types.
        resolver: Commit resolver used to clone the repository.

    Returns:
        SetupResult with a human-readable message or an error.
    """
    result = SetupResult()

    if not app or not repo_url or not deploy_type:
        result.error = (
            "Sorry, but I need a project name, repo url, and deploy type. "
            "No exceptions, despite how nicely you ask."
        )
        return result

    try:
        project = Project(
            name=app,
            repo_url=repo_url,
            deploy_type=deploy_type,
            description=description,
            options=options or {},
        )
    except ValidationError as e:
        result.error = f"Invalid project: {e}"
        return result

    if config_path is None:
        config_path = find_config_file() or Path.cwd() / CONFIG_FILE
    result.config_path = config_path

    try:
        config = load_config(config_path, allow_missing=True)
    except ConfigError as e:
        result.error = str(e)
        return result

    if config.get_project(project.name) is not None:
        result.error = f"A project called '{project.name}' already exists."
        return result

    settings = config.settings.resolved(config_root(config_path))
    if registry is None:
        registry = default_registry(settings)
    if project.deploy_type not in registry:
        result.warnings.append(
            f"No deployer is registered for '{project.deploy_type}' yet; "
            f"deploys will fail until one is. Known: {', '.join(registry.list_types())}"
        )

    if resolver is None:
        resolver = default_resolver(settings)
    if not resolver.setup(project):
        result.error = (
            "Woah - I can't seem to access that repo. "
            "Are you sure the URL is correct and that I have access to it?"
        )
        return result

    try:
        add_project(project, config_path)
    except (DuplicateProject, ConfigError) as e:
        result.error = str(e)
        return result
    except OSError as e:
        result.error = f"Could not save {config_path}: {e}"
        return result

    result.project = project
    result.message = (
        f"Set up new project called {project.name} which deploys with "
        f"{project.deploy_type} and pulls from {project.repo_url}."
    )
    return result
