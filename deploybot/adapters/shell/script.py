"""
Shell script deployer — run the project's own deploy script.

The project repository carries its deploy logic (``script/deploy`` by
default). This deployer keeps a working clone per project, checks out
the exact commit being deployed, and runs the script from there. Deploys of one project take turns on
its checkout.

Project options:
    script (str): Script path inside the repository (default: script/deploy).
    timeout (int): Seconds before the script is killed (default: 600).

The script receives the actions as positional arguments and the rest
of the deploy through the environment:

    DEPLOY_PROJECT, DEPLOY_BRANCH, DEPLOY_COMMIT, DEPLOY_ENV, DEPLOY_BOX,
    DEPLOY_ACTIONS (comma-separated), DEPLOY_VIA, DEPLOY_VAR_<NAME>
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import threading
import time
from pathlib import Path

from deploybot.adapters.base import Deployer
from deploybot.core.models.deploy import Deploy, DeployParameters
from deploybot.core.models.project import Project

logger = logging.getLogger(__name__)

DEFAULT_WORK_DIR = ".deploybot/work"
DEFAULT_SCRIPT = "script/deploy"
DEFAULT_TIMEOUT = 600

# ── Thread safety ───────────────────────────────────────────────
# One lock per working checkout: a deploy holds it from fetch through the
# end of its script so no other deploy can move the checkout under it.
# Entries are never removed; the table grows with the project catalog.
_checkout_locks: dict[str, threading.Lock] = {}
_checkout_locks_guard = threading.Lock()


def _get_checkout_lock(checkout: Path) -> threading.Lock:
    """Get or create the lock for a working checkout."""
    key = str(checkout.resolve())
    with _checkout_locks_guard:
        if key not in _checkout_locks:
            _checkout_locks[key] = threading.Lock()
        return _checkout_locks[key]


def script_environment(deploy: Deploy, config: DeployParameters) -> dict[str, str]:
    """DEPLOY_* variables describing a deploy to a script."""
    env = {
        "DEPLOY_PROJECT": deploy.project.name,
        "DEPLOY_BRANCH": config.branch,
        "DEPLOY_COMMIT": deploy.commit,
    }
    if config.env:
        env["DEPLOY_ENV"] = config.env
    if config.box:
        env["DEPLOY_BOX"] = config.box
    if config.actions:
        env["DEPLOY_ACTIONS"] = ",".join(config.actions)
    if deploy.via:
        env["DEPLOY_VIA"] = deploy.via
    for key, value in (deploy.variables or {}).items():
        name = re.sub(r"[^A-Za-z0-9_]", "_", key).upper()
        env[f"DEPLOY_VAR_{name}"] = str(value)
    return env


class ShellScriptDeployer(Deployer):
    """Deploy by running a script from a checkout of the commit."""

    def __init__(self, work_dir: Path | str = DEFAULT_WORK_DIR, git_timeout: int = 120):
        self.work_dir = Path(work_dir)
        self.git_timeout = git_timeout

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("git") is not None and shutil.which("sh") is not None

    def checkout_path(self, project: Project) -> Path:
        return self.work_dir / re.sub(r"[^A-Za-z0-9._-]", "_", project.name)

    def setup(self, project: Project, config: DeployParameters) -> bool:
        checkout = self.checkout_path(project)
        checkout.parent.mkdir(parents=True, exist_ok=True)

        with _get_checkout_lock(checkout):
            if (checkout / ".git").is_dir():
                return True

            logger.info("Cloning %s into %s", project.repo_url, checkout)
            existed = checkout.exists()
            ok, output = self._run(
                ["git", "clone", "--quiet", project.repo_url, str(checkout)],
                cwd=None,
                timeout=self.git_timeout,
            )
            if not ok:
                logger.error("Clone of %s failed: %s", project.name, output)
                if not existed:
                    shutil.rmtree(checkout, ignore_errors=True)
            return ok

    def execute(self, deploy: Deploy, config: DeployParameters) -> bool:
        project = deploy.project
        checkout = self.checkout_path(project)
        if not (checkout / ".git").is_dir():
            logger.error("No checkout for %s; setup has not run", project.name)
            return False

        lock = _get_checkout_lock(checkout)
        if not lock.acquire(blocking=False):
            logger.info("Waiting for another deploy of %s to finish", project.name)
            lock.acquire()
        try:
            return self._deploy_from_checkout(deploy, config, checkout)
        finally:
            lock.release()

    # ── Helpers ─────────────────────────────────────────────────

    def _deploy_from_checkout(
        self, deploy: Deploy, config: DeployParameters, checkout: Path
    ) -> bool:
        """Pin the checkout to the deploy's commit and run the script.

        Caller holds the checkout lock.
        """
        project = deploy.project
        for args in (
            ["git", "fetch", "--prune", "--quiet", "origin"],
            ["git", "checkout", "--quiet", "--force", "--detach", deploy.commit],
        ):
            ok, output = self._run(args, cwd=checkout, timeout=self.git_timeout)
            if not ok:
                logger.error("%s failed for %s: %s", " ".join(args[:2]), project.name, output)
                return False

        script = checkout / project.option("script", DEFAULT_SCRIPT)
        if not script.is_file():
            logger.error("Deploy script not found: %s", script)
            return False

        command = [str(script), *(config.actions or [])]
        if not os.access(script, os.X_OK):
            command.insert(0, "sh")

        timeout = int(project.option("timeout", DEFAULT_TIMEOUT))
        env = {**os.environ, **script_environment(deploy, config)}

        logger.info("Running %s for %s@%s", script.name, project.name, deploy.commit[:7])
        start = time.monotonic()
        ok, output = self._run(command, cwd=checkout, timeout=timeout, env=env)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        if ok:
            logger.info("Deploy script for %s finished in %dms", project.name, elapsed_ms)
            logger.debug("Script output:\n%s", output)
        else:
            logger.error("Deploy script for %s failed after %dms: %s", project.name, elapsed_ms, output)
        return ok

    def _run(
        self,
        args: list[str],
        cwd: Path | None,
        timeout: int,
        env: dict[str, str] | None = None,
    ) -> tuple[bool, str]:
        """Run a command; return (succeeded, output or error)."""
        try:
            result = subprocess.run(
                args,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            return False, f"timed out after {timeout}s"
        except OSError as e:
            return False, f"cannot run {args[0]}: {e}"

        if result.returncode == 0:
            return True, result.stdout.strip()
        return False, result.stderr.strip() or f"exit code {result.returncode}"
