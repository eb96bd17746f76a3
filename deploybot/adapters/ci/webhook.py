"""
Webhook deployer — hand the deploy to a CI server.

POSTs a JSON description of the deploy to the project's trigger URL
and lets the CI system do the rest. Success means the trigger was
accepted (2xx), not that the pipeline it started has finished.

Project options:
    webhook_url (str): Trigger endpoint (http or https).
    token_env (str): Name of an environment variable holding a bearer token.
    timeout (int): Request timeout in seconds (default: 15).
"""

from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.request
from typing import Any
from urllib.parse import urlparse

from deploybot import __version__
from deploybot.adapters.base import Deployer
from deploybot.core.models.deploy import Deploy, DeployParameters
from deploybot.core.models.project import Project

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15


def build_payload(deploy: Deploy, config: DeployParameters) -> dict[str, Any]:
    """JSON body sent to the trigger endpoint."""
    return {
        "project": deploy.project.name,
        "repository": deploy.project.repo_url,
        "commit": deploy.commit,
        "parameters": config.to_dict(),
        "variables": deploy.variables or {},
    }


class WebhookDeployer(Deployer):
    """Trigger a CI pipeline over HTTP."""

    @property
    def name(self) -> str:
        return "webhook"

    def setup(self, project: Project, config: DeployParameters) -> bool:
        url = project.option("webhook_url", "")
        if not url:
            logger.error("Project %s has no webhook_url option", project.name)
            return False
        if urlparse(url).scheme not in ("http", "https"):
            logger.error("Project %s webhook_url must be http(s): %s", project.name, url)
            return False
        token_env = project.option("token_env")
        if token_env and not os.environ.get(token_env):
            logger.error("Token variable %s is not set for %s", token_env, project.name)
            return False
        return True

    def execute(self, deploy: Deploy, config: DeployParameters) -> bool:
        project = deploy.project
        url = project.option("webhook_url", "")
        body = json.dumps(build_payload(deploy, config)).encode("utf-8")

        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"deploybot/{__version__}",
        }
        token_env = project.option("token_env")
        if token_env and os.environ.get(token_env):
            headers["Authorization"] = f"Bearer {os.environ[token_env]}"

        req = urllib.request.Request(url, data=body, headers=headers, method="POST")
        timeout = int(project.option("timeout", DEFAULT_TIMEOUT))

        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                status = resp.status
        except urllib.error.HTTPError as e:
            logger.error("CI trigger for %s rejected: HTTP %s", project.name, e.code)
            return False
        except (urllib.error.URLError, OSError) as e:
            logger.error("CI trigger for %s failed: %s", project.name, e)
            return False

        logger.info("CI trigger for %s accepted (HTTP %s)", project.name, status)
        return 200 <= status < 300
