"""
Project catalog persistence — atomic write of deploybot.yml.

Writes go to a temp file in the same directory and are renamed into
place, so a crash mid-write never leaves a truncated catalog.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path

import yaml

from deploybot.core.config.loader import DeploybotConfig, load_config
from deploybot.core.models.project import Project

logger = logging.getLogger(__name__)

_write_lock = threading.Lock()


class DuplicateProject(ValueError):
    """Raised when a project name is already in the catalog."""


def save_config(config: DeploybotConfig, path: Path) -> None:
    """Save the configuration to a YAML file (atomic write).

    Args:
        config: The configuration to save.
        path: Target path for deploybot.yml.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json")
    content = yaml.safe_dump(data, sort_keys=False, default_flow_style=False)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".deploybot_", suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
        logger.debug("Config saved to %s", path)
    except Exception:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save config to %s", path)
        raise


def add_project(project: Project, path: Path) -> DeploybotConfig:
    """Append a project to the catalog at ``path``, creating the file if needed.

    Raises:
        DuplicateProject: If a project with the same name exists.
        ConfigError: If the existing file is invalid.
    """
    with _write_lock:
        config = load_config(path, allow_missing=True)
        if config.get_project(project.name) is not None:
            raise DuplicateProject(f"A project called '{project.name}' already exists")
        config.projects.append(project)
        save_config(config, path)
    logger.info("Added project %s to %s", project.name, path)
    return config
