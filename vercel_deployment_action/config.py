import json
import os
from typing import Mapping, Optional

from loguru import logger
from pydantic import BaseModel

from vercel_deployment_action.errors import ConfigError

DEFAULT_BASE_URL = "https://vercel-integrations.dev"
OIDC_AUDIENCE = "vercel-integrations"

BASE_URL_ENV = "VERCEL_INTEGRATIONS_BASE_URL"
TOKEN_REQUEST_URL_ENV = "ACTIONS_ID_TOKEN_REQUEST_URL"
TOKEN_REQUEST_TOKEN_ENV = "ACTIONS_ID_TOKEN_REQUEST_TOKEN"


class ActionEnvironment(BaseModel):
    """Values the actions read from the GitHub Actions runner environment."""

    sha: str
    job_name: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    output_file: Optional[str] = None
    env_file: Optional[str] = None

    @classmethod
    def from_environ(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "ActionEnvironment":
        environ = os.environ if environ is None else environ

        sha = environ.get("GITHUB_SHA")
        if not sha:
            raise ConfigError("GITHUB_SHA is not set")

        return cls(
            sha=resolve_commit_sha(sha, environ.get("GITHUB_EVENT_PATH")),
            job_name=environ.get("GITHUB_JOB") or None,
            base_url=(environ.get(BASE_URL_ENV) or DEFAULT_BASE_URL).rstrip("/"),
            output_file=environ.get("GITHUB_OUTPUT") or None,
            env_file=environ.get("GITHUB_ENV") or None,
        )

    def require_job_name(self) -> str:
        if not self.job_name:
            raise ConfigError("GITHUB_JOB is not set")
        return self.job_name


def resolve_commit_sha(default_sha: str, event_path: Optional[str]) -> str:
    """Prefer the pull request head commit over the merge commit GitHub checks out"""
    if not event_path:
        return default_sha

    try:
        with open(event_path, encoding="utf-8") as event_file:
            event = json.load(event_file)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read event payload at {event_path}: {e}")
        return default_sha

    pull_request = event.get("pull_request") if isinstance(event, dict) else None
    if not isinstance(pull_request, dict):
        return default_sha

    head = pull_request.get("head")
    head_sha = head.get("sha") if isinstance(head, dict) else None
    if isinstance(head_sha, str) and head_sha:
        logger.debug(f"Using pull request head commit {head_sha}")
        return head_sha
    return default_sha
