"""
Domain models — Pydantic types for deploybot.

All models are re-exported here for convenient access:

    from deploybot.core.models import Project, DeployRequest, DeployOutcome
"""

from deploybot.core.models.deploy import (
    DEFAULT_BRANCH,
    Deploy,
    DeployParameters,
    DeployRequest,
    ResolvedCommit,
)
from deploybot.core.models.outcome import DeployOutcome, FailureReason
from deploybot.core.models.project import Project

__all__ = [
    "DEFAULT_BRANCH",
    # deploy.py
    "Deploy",
    # outcome.py
    "DeployOutcome",
    "DeployParameters",
    "DeployRequest",
    "FailureReason",
    # project.py
    "Project",
    "ResolvedCommit",
]
