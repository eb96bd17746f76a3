"""
Deploy models — requests, resolved commits, parameters, and records.

Flow through the orchestrator:

    DeployRequest → ResolvedCommit → DeployParameters → Deploy → deployer

A request is built once per inbound call and never changes. The
parameters are the canonical set handed to a deployer; they are the
only place the "box requires env" rule has to be trusted.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from deploybot.core.models.project import Project

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "master"


def _clean(value: Any) -> Any:
    """Turn blank strings into None, strip the rest."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _clean_actions(value: Any) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    actions = [a.strip() for a in value if a and a.strip()]
    return actions or None


class DeployRequest(BaseModel):
    """One inbound request to deploy a project.

    ``project`` is None when the caller could not find the project;
    the orchestrator reports that as ``project_not_found``.
    """

    model_config = ConfigDict(frozen=True)

    project: Project | None
    branch: str = DEFAULT_BRANCH
    actions: list[str] | None = None
    environment: str | None = None
    box: str | None = None
    variables: dict[str, Any] | None = None
    via: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["branch"] = _clean(data.get("branch")) or DEFAULT_BRANCH
        data["actions"] = _clean_actions(data.get("actions"))
        data["variables"] = data.get("variables") or None
        for key in ("environment", "box", "via"):
            data[key] = _clean(data.get(key))
        if data["box"] and not data["environment"]:
            logger.warning(
                "Ignoring box '%s': a box only applies within an environment",
                data["box"],
            )
            data["box"] = None
        return data


class ResolvedCommit(BaseModel):
    """The exact revision a deploy is pinned to."""

    model_config = ConfigDict(frozen=True)

    branch: str
    hash: str

    @property
    def short(self) -> str:
        return self.hash[:7]


class DeployParameters(BaseModel):
    """Canonical parameter set passed to a deployer.

    ``actions`` is None rather than empty, and ``box`` can only be
    set together with ``env``. ``metadata`` carries caller-supplied
    record fields such as ``via``.
    """

    model_config = ConfigDict(frozen=True)

    branch: str
    actions: list[str] | None = None
    env: str | None = None
    box: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("actions", mode="before")
    @classmethod
    def _empty_actions(cls, value: Any) -> list[str] | None:
        return _clean_actions(value)

    @model_validator(mode="after")
    def _box_needs_env(self) -> DeployParameters:
        if self.box and not self.env:
            raise ValueError("box requires env")
        return self

    def to_dict(self) -> dict[str, Any]:
        """The parameter mapping, with absent optional keys omitted."""
        data: dict[str, Any] = {"branch": self.branch}
        if self.actions:
            data["actions"] = list(self.actions)
        if self.env:
            data["env"] = self.env
            if self.box:
                data["box"] = self.box
        for key, value in self.metadata.items():
            data.setdefault(key, value)
        return data


class Deploy(BaseModel):
    """A deploy record — what a deployer is asked to ship.

    Owned by whoever persists deploys; the core fills it in and reads
    it, and reports the outcome separately.
    """

    project: Project
    branch: str
    commit: str
    environment: str | None = None
    box: str | None = None
    actions: list[str] | None = None
    variables: dict[str, Any] | None = None
    via: str | None = None
