"""
Project model — a deployable repository and the mechanism that ships it.

Projects live in the catalog (deploybot.yml). The orchestrator only
borrows them for the length of one deploy; it never mutates them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class Project(BaseModel):
    """A project that can be deployed.

    ``deploy_type`` is the key used to pick a deployer out of the
    registry. ``options`` is free-form and only read by the deployer
    (script path, webhook URL, timeouts...).
    """

    name: str
    repo_url: str
    deploy_type: str
    description: str = ""
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name", "repo_url", "deploy_type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    def option(self, key: str, default: Any = None) -> Any:
        """Look up a deployer option."""
        return self.options.get(key, default)
