"""
Deploy ledger — append-only history of deploys.

Every deploy the CLI (or any other caller) runs is written as one line
of NDJSON. The orchestrator itself records nothing; recording the
outcome is the caller's job.

The ledger is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from deploybot.core.models.outcome import DeployOutcome

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_PATH = ".deploybot/deploys.ndjson"


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class DeployRecord(BaseModel):
    """A single deploy as recorded in the ledger."""

    timestamp: str = Field(default_factory=_now_iso)
    project: str
    branch: str
    commit: str | None = None
    environment: str | None = None
    box: str | None = None
    actions: list[str] | None = None
    variables: dict[str, Any] | None = None
    via: str | None = None

    # Results
    status: str = ""               # ok, failed
    failure_reason: str | None = None
    message: str | None = None
    summary: str = ""
    duration_ms: int = 0

    @classmethod
    def from_outcome(
        cls,
        project: str,
        branch: str,
        outcome: DeployOutcome,
        duration_ms: int = 0,
    ) -> DeployRecord:
        """Build a record from an orchestration outcome.

        ``project`` and ``branch`` are what was requested; the rest comes
        from the deploy the orchestrator built, when it got that far.
        """
        deploy = outcome.deploy
        return cls(
            project=project,
            branch=deploy.branch if deploy else branch,
            commit=outcome.commit,
            environment=deploy.environment if deploy else None,
            box=deploy.box if deploy else None,
            actions=deploy.actions if deploy else None,
            variables=deploy.variables if deploy else None,
            via=deploy.via if deploy else None,
            status="ok" if outcome.ok else "failed",
            failure_reason=outcome.failure_reason.value if outcome.failure_reason else None,
            message=outcome.message,
            summary=outcome.summary,
            duration_ms=duration_ms,
        )


class DeployLedger:
    """Append-only deploy ledger.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None):
        self._path = path if path is not None else Path(DEFAULT_LEDGER_PATH)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, record: DeployRecord) -> bool:
        """Append a record to the ledger.

        Returns:
            False if the record could not be written. The failure is
            logged; a deploy that already ran is not undone.
        """
        try:
            # Variables are opaque; one that cannot be serialized fails the write
            line = json.dumps(record.model_dump(mode="json"), ensure_ascii=False) + "\n"
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock, self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to record deploy of %s: %s", record.project, e)
            return False

        logger.debug("Deploy recorded: %s/%s %s", record.project, record.branch, record.status)
        return True

    def read_all(self) -> list[DeployRecord]:
        """Read all records from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        records = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        records.append(DeployRecord.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read deploy ledger: %s", e)

        return records

    def read_recent(self, n: int = 20, project: str | None = None) -> list[DeployRecord]:
        """Read the most recent N records, optionally for one project.

        Not the most efficient for large files, but simple and correct.
        """
        records = self.read_all()
        if project is not None:
            records = [r for r in records if r.project == project]
        return records[-n:] if n > 0 else []
