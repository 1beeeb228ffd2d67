import json

import pytest
from vercel_deployment_action.config import (
    DEFAULT_BASE_URL,
    ActionEnvironment,
    resolve_commit_sha,
)
from vercel_deployment_action.errors import ConfigError


def write_event(tmp_path, event) -> str:
    path = tmp_path / "event.json"
    path.write_text(event if isinstance(event, str) else json.dumps(event))
    return str(path)


def test_environment_defaults():
    environment = ActionEnvironment.from_environ({"GITHUB_SHA": "abc123", "GITHUB_JOB": "deploy"})

    assert environment.sha == "abc123"
    assert environment.require_job_name() == "deploy"
    assert environment.base_url == DEFAULT_BASE_URL
    assert environment.output_file is None


def test_base_url_override_is_normalized():
    environment = ActionEnvironment.from_environ(
        {"GITHUB_SHA": "abc123", "VERCEL_INTEGRATIONS_BASE_URL": "http://localhost:3000/"}
    )

    assert environment.base_url == "http://localhost:3000"


def test_missing_sha_is_a_config_error():
    with pytest.raises(ConfigError, match="GITHUB_SHA"):
        ActionEnvironment.from_environ({"GITHUB_JOB": "deploy"})


def test_missing_job_is_a_config_error():
    environment = ActionEnvironment.from_environ({"GITHUB_SHA": "abc123"})

    with pytest.raises(ConfigError, match="GITHUB_JOB"):
        environment.require_job_name()


def test_pull_request_head_commit_wins(tmp_path):
    event_path = write_event(tmp_path, {"pull_request": {"head": {"sha": "headsha"}}})

    environment = ActionEnvironment.from_environ(
        {"GITHUB_SHA": "mergesha", "GITHUB_EVENT_PATH": event_path}
    )

    assert environment.sha == "headsha"


@pytest.mark.parametrize(
    "event",
    [
        {"ref": "refs/heads/main"},
        {"pull_request": {"head": {}}},
        {"pull_request": "unexpected"},
        ["not", "an", "object"],
        "{truncated",
    ],
)
def test_other_events_keep_default_commit(tmp_path, event):
    assert resolve_commit_sha("mergesha", write_event(tmp_path, event)) == "mergesha"


def test_missing_event_file_keeps_default_commit(tmp_path):
    assert resolve_commit_sha("mergesha", str(tmp_path / "missing.json")) == "mergesha"
