"""
Deploy outcome — the tagged result of one orchestration.

The orchestrator never raises at its caller: every failure is one of
the FailureReason kinds, plus an optional message for humans.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from deploybot.core.models.deploy import Deploy, DeployParameters


class FailureReason(StrEnum):
    """Why a deploy did not succeed."""

    PROJECT_NOT_FOUND = "project_not_found"
    REPOSITORY_INACCESSIBLE = "repository_inaccessible"
    BRANCH_NOT_FOUND = "branch_not_found"
    UNKNOWN_DEPLOY_TYPE = "unknown_deploy_type"
    SETUP_FAILED = "setup_failed"
    EXECUTE_FAILED = "execute_failed"


class DeployOutcome(BaseModel):
    """Result of ``DeployOrchestrator.deploy``."""

    success: bool
    summary: str = ""
    failure_reason: FailureReason | None = None
    message: str | None = None
    commit: str | None = None
    parameters: DeployParameters | None = None
    deploy: Deploy | None = None

    @property
    def ok(self) -> bool:
        return self.success

    @property
    def failed(self) -> bool:
        return not self.success

    @classmethod
    def succeeded(cls, summary: str, **kwargs: Any) -> DeployOutcome:
        """Create a success outcome."""
        return cls(success=True, summary=summary, **kwargs)

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        message: str | None = None,
        **kwargs: Any,
    ) -> DeployOutcome:
        """Create a failed outcome."""
        return cls(success=False, failure_reason=reason, message=message, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "summary": self.summary,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "message": self.message,
            "commit": self.commit,
        }
        if self.parameters is not None:
            data["parameters"] = self.parameters.to_dict()
        if self.deploy is not None:
            data["project"] = self.deploy.project.name
        return data
