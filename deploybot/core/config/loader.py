"""
Configuration loader — reads deploybot.yml into domain models.

The file holds the project catalog and the runtime settings:

    settings:
      cache_dir: .deploybot/repos
      work_dir: .deploybot/work
      ledger_path: .deploybot/deploys.ndjson
    projects:
      - name: demo
        repo_url: git@github.com:acme/demo.git
        deploy_type: shell
        options:
          script: script/deploy

Relative paths in ``settings`` are relative to the file's directory.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

from deploybot.core.models.project import Project

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "deploybot.yml"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


class Settings(BaseModel):
    """Runtime settings."""

    cache_dir: str = ".deploybot/repos"
    work_dir: str = ".deploybot/work"
    ledger_path: str = ".deploybot/deploys.ndjson"
    git_timeout: int = 120

    def resolved(self, root: Path) -> Settings:
        """Copy with every path made absolute against ``root``."""
        return self.model_copy(
            update={
                key: str((root / getattr(self, key)).resolve())
                for key in ("cache_dir", "work_dir", "ledger_path")
            }
        )


class DeploybotConfig(BaseModel):
    """The whole configuration file."""

    settings: Settings = Field(default_factory=Settings)
    projects: list[Project] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> DeploybotConfig:
        seen: set[str] = set()
        for project in self.projects:
            if project.name in seen:
                raise ValueError(f"Duplicate project name: {project.name}")
            seen.add(project.name)
        return self

    def get_project(self, name: str) -> Project | None:
        """Look up a project by name."""
        for project in self.projects:
            if project.name == name:
                return project
        return None


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for deploybot.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to deploybot.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None, allow_missing: bool = False) -> DeploybotConfig:
    """Load and validate the configuration.

    Args:
        path: Explicit path to deploybot.yml. If None, searches upward.
        allow_missing: Return an empty configuration instead of failing
            when the file does not exist.

    Returns:
        Validated DeploybotConfig model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None or not path.is_file():
        if allow_missing:
            return DeploybotConfig()
        if path is None:
            raise ConfigError(
                f"No {CONFIG_FILE} found. "
                "Run 'deploybot setup' to create one, or specify --config."
            )
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = DeploybotConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    logger.info("Loaded %d projects from %s", len(config.projects), path)
    return config


def config_root(config_path: Path) -> Path:
    """Get the directory relative paths are resolved against."""
    return config_path.parent.resolve()
