"""
Shared test fixtures and configuration.
"""

import os
import subprocess
from pathlib import Path

import pytest

from deploybot.core.models.project import Project

_GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
    "HOME": "/tmp",
}


def git(repo: Path, *args: str) -> str:
    """Run git in ``repo`` and return stripped stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
        env={**os.environ, **_GIT_ENV},
    )
    return result.stdout.strip()


def commit_file(repo: Path, name: str, content: str, message: str) -> str:
    """Write a file, commit it, and return the new commit hash."""
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "--quiet", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A repository with two commits on master and one more on topic.

    The master tip carries an executable ``script/deploy`` that writes
    its arguments and DEPLOY_* environment to ``deploy.log`` next to
    the checkout.
    """
    repo = tmp_path / "origin"
    repo.mkdir()
    git(repo, "init", "--quiet")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/master")

    commit_file(repo, "README.md", "demo\n", "initial")
    script = (
        "#!/bin/sh\n"
        'echo "args=$*" > ../deploy.log\n'
        'env | grep ^DEPLOY_ | sort >> ../deploy.log\n'
    )
    deploy_script = repo / "script" / "deploy"
    deploy_script.parent.mkdir()
    deploy_script.write_text(script)
    deploy_script.chmod(0o755)
    git(repo, "add", "script/deploy")
    git(repo, "commit", "--quiet", "-m", "add deploy script")

    git(repo, "checkout", "--quiet", "-b", "topic")
    commit_file(repo, "topic.txt", "topic\n", "topic work")
    git(repo, "checkout", "--quiet", "master")
    return repo


@pytest.fixture
def master_hashes(git_repo: Path) -> list[str]:
    """Commit hashes on master, most recent first."""
    return git(git_repo, "log", "--format=%H", "master").splitlines()


@pytest.fixture
def topic_head(git_repo: Path) -> str:
    return git(git_repo, "rev-parse", "topic")


@pytest.fixture
def demo_project(git_repo: Path) -> Project:
    return Project(name="demo", repo_url=str(git_repo), deploy_type="mock")


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for repository mirrors."""
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def add_commit(git_repo: Path):
    """Commit a new file to master of ``git_repo``; returns the hash."""

    def _add(name: str, content: str = "change\n", message: str = "change") -> str:
        return commit_file(git_repo, name, content, message)

    return _add
