"""
Git commit resolver — pins a deploy to an exact revision.

Keeps one bare mirror per project under the cache directory and asks
it for the commit log of a branch. Uses the git CLI — never a git
library.

Concurrency: cloning and fetching a project's mirror is serialized
with a per-project lock. Log queries run outside the lock; a bare
mirror is safe to read while another thread waits to fetch it.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import threading
from pathlib import Path

from deploybot.core.models.project import Project

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = ".deploybot/repos"
DEFAULT_MAX_COUNT = 20


class RepositoryInaccessible(Exception):
    """Raised when a project's repository cannot be cloned or fetched."""

    def __init__(self, project: str, reason: str):
        self.project = project
        self.reason = reason
        super().__init__(f"Repository for '{project}' is inaccessible: {reason}")


class _GitFailed(Exception):
    pass


# ── Thread safety ───────────────────────────────────────────────
# One lock per project mirror: two requests for the same project must
# not clone or fetch at the same time. The guard protects the table.
# Entries are never removed; the table grows with the project catalog.
_mirror_locks: dict[str, threading.Lock] = {}
_mirror_locks_guard = threading.Lock()


def _get_mirror_lock(key: str) -> threading.Lock:
    """Get or create the lock for a project mirror."""
    with _mirror_locks_guard:
        if key not in _mirror_locks:
            _mirror_locks[key] = threading.Lock()
        return _mirror_locks[key]


def _cache_key(project: Project) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "_", project.name)


class GitCommitResolver:
    """Resolves branches of a project's repository to commit hashes.

    Args:
        cache_dir: Where project mirrors are kept.
        timeout: Seconds allowed for any single git command.
        max_count: Most hashes returned by ``resolve``.
    """

    def __init__(
        self,
        cache_dir: Path | str = DEFAULT_CACHE_DIR,
        timeout: int = 120,
        max_count: int = DEFAULT_MAX_COUNT,
    ):
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self.max_count = max_count

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def mirror_path(self, project: Project) -> Path:
        """Local mirror location for a project."""
        return self.cache_dir / f"{_cache_key(project)}.git"

    def setup(self, project: Project) -> bool:
        """Clone the project's mirror if it isn't there yet.

        Returns:
            True if the mirror exists afterwards, False if the
            repository could not be cloned.
        """
        try:
            self._ensure_mirror(project, fetch=False)
        except RepositoryInaccessible as e:
            logger.warning("%s", e)
            return False
        return True

    def resolve(self, project: Project, branch: str) -> list[str]:
        """Commit hashes on ``branch``, most recent first.

        Returns:
            Up to ``max_count`` hashes, or an empty list when the
            branch does not exist.

        Raises:
            RepositoryInaccessible: If the repository cannot be
                cloned or fetched.
        """
        mirror = self._ensure_mirror(project, fetch=True)

        ref = f"refs/heads/{branch}"
        try:
            self._git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], mirror)
        except _GitFailed:
            logger.info("Branch '%s' not found in %s", branch, project.name)
            return []

        try:
            output = self._git(
                ["log", "--format=%H", f"--max-count={self.max_count}", ref, "--"],
                mirror,
            )
        except _GitFailed as e:
            raise RepositoryInaccessible(project.name, str(e)) from e

        hashes = [line.strip() for line in output.splitlines() if line.strip()]
        logger.debug("Resolved %s/%s to %d commits", project.name, branch, len(hashes))
        return hashes

    def branches(self, project: Project) -> list[str]:
        """Names of all branches in the project's repository."""
        mirror = self._ensure_mirror(project, fetch=True)
        try:
            output = self._git(
                ["for-each-ref", "--format=%(refname:short)", "refs/heads/"],
                mirror,
            )
        except _GitFailed as e:
            raise RepositoryInaccessible(project.name, str(e)) from e
        return sorted(b.strip() for b in output.splitlines() if b.strip())

    # ── Helpers ─────────────────────────────────────────────────

    def _ensure_mirror(self, project: Project, fetch: bool) -> Path:
        mirror = self.mirror_path(project)
        with _get_mirror_lock(str(mirror.resolve())):
            if (mirror / "HEAD").is_file():
                if fetch:
                    try:
                        self._git(["fetch", "--prune", "--quiet"], mirror)
                    except _GitFailed as e:
                        raise RepositoryInaccessible(project.name, str(e)) from e
                return mirror

            logger.info("Cloning %s into %s", project.repo_url, mirror)
            mirror.parent.mkdir(parents=True, exist_ok=True)
            try:
                self._git(
                    ["clone", "--mirror", "--quiet", project.repo_url, str(mirror)],
                    None,
                )
            except _GitFailed as e:
                if mirror.exists():
                    shutil.rmtree(mirror, ignore_errors=True)
                raise RepositoryInaccessible(project.name, str(e)) from e
            return mirror

    def _git(self, args: list[str], cwd: Path | None) -> str:
        """Run a git command and return stdout."""
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise _GitFailed(f"git {args[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            raise _GitFailed(f"cannot run git: {e}") from e
        if result.returncode != 0:
            raise _GitFailed(result.stderr.strip() or f"git {args[0]} failed")
        return result.stdout
