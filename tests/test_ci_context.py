"""Tests for GitHub Actions context detection."""

from __future__ import annotations

import json
import os
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from covdelta.utils.ci_context import (
    GitHubContext,
    build_diff_options,
    detect_github_context,
    resolve_commit_sha,
)

if TYPE_CHECKING:
    from pathlib import Path

_PR_PAYLOAD = {
    "repository": {"full_name": "octo/widgets"},
    "pull_request": {
        "head": {"sha": "headsha", "ref": "feature/x"},
        "base": {"ref": "main"},
    },
}

_PUSH_PAYLOAD = {
    "repository": {"full_name": "octo/widgets"},
    "after": "pushedsha",
}


class TestResolveCommitSha:
    def test_workflow_run_uses_triggering_head_commit(self) -> None:
        payload = {"workflow_run": {"head_commit": {"id": "triggersha"}}}
        assert resolve_commit_sha("workflow_run", payload, "runsha") == "triggersha"

    def test_workflow_run_without_field_raises(self) -> None:
        with pytest.raises(ValueError, match="workflow_run"):
            resolve_commit_sha("workflow_run", {}, "runsha")

    def test_pull_request_uses_head_sha(self) -> None:
        assert resolve_commit_sha("pull_request", _PR_PAYLOAD, "mergesha") == "headsha"

    def test_pull_request_target_uses_head_sha(self) -> None:
        assert resolve_commit_sha("pull_request_target", _PR_PAYLOAD, "x") == "headsha"

    def test_push_uses_default(self) -> None:
        assert resolve_commit_sha("push", _PUSH_PAYLOAD, "runsha") == "runsha"


class TestBuildDiffOptions:
    def test_pull_request(self) -> None:
        options = build_diff_options("pull_request", _PR_PAYLOAD, workspace="/home/runner/work")
        assert options.repository == "octo/widgets"
        assert options.commit == "headsha"
        assert options.head == "feature/x"
        assert options.base == "main"
        assert options.prefix == "/home/runner/work/"

    def test_push(self) -> None:
        options = build_diff_options(
            "push", _PUSH_PAYLOAD, workspace="/ws", ref="refs/heads/main"
        )
        assert options.commit == "pushedsha"
        assert options.head == "refs/heads/main"
        assert options.base == ""

    def test_other_event_keeps_identity_only(self) -> None:
        options = build_diff_options("schedule", {}, workspace="", repository="o/r")
        assert options.repository == "o/r"
        assert options.commit == ""
        assert options.prefix == ""


class TestDetectGitHubContext:
    def test_reads_environment_and_payload(self, tmp_path: Path) -> None:
        event_file = tmp_path / "event.json"
        event_file.write_text(json.dumps(_PR_PAYLOAD), encoding="utf-8")
        env = {
            "GITHUB_EVENT_NAME": "pull_request",
            "GITHUB_EVENT_PATH": str(event_file),
            "GITHUB_SHA": "mergesha",
            "GITHUB_REF": "refs/pull/7/merge",
            "GITHUB_WORKSPACE": "/ws",
            "GITHUB_REPOSITORY": "octo/widgets",
        }
        with patch.dict(os.environ, env, clear=True):
            context = detect_github_context()

        assert context.event_name == "pull_request"
        assert context.sha == "mergesha"
        assert context.payload["pull_request"]["head"]["sha"] == "headsha"
        assert context.owner == "octo"
        assert context.repo == "widgets"

    def test_missing_payload_file(self, tmp_path: Path) -> None:
        env = {"GITHUB_EVENT_PATH": str(tmp_path / "missing.json")}
        with patch.dict(os.environ, env, clear=True):
            context = detect_github_context()
        assert context.payload == {}
        assert context.owner == ""

    def test_owner_falls_back_to_payload(self) -> None:
        context = GitHubContext(
            event_name="push", sha="", ref="", workspace="", repository="", payload=_PUSH_PAYLOAD
        )
        assert (context.owner, context.repo) == ("octo", "widgets")
