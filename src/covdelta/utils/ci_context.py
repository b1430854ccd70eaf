"""GitHub Actions context detection.

Resolves which commit a check run belongs to and which repository,
branches and workspace prefix to thread into the coverage report.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from covdelta.analyzers.delta import DiffOptions

logger = logging.getLogger(__name__)

# Expected number of parts when splitting "owner/repo"
_OWNER_REPO_PARTS = 2

_EVENT_WORKFLOW_RUN = "workflow_run"
_EVENT_PULL_REQUEST = "pull_request"
_EVENT_PUSH = "push"


@dataclass
class GitHubContext:
    """Detected GitHub Actions execution context."""

    event_name: str
    """Name of the triggering event (``push``, ``pull_request``, ...)."""

    sha: str
    """``GITHUB_SHA`` of the run."""

    ref: str
    """``GITHUB_REF`` of the run."""

    workspace: str
    """``GITHUB_WORKSPACE`` checkout directory."""

    repository: str
    """``GITHUB_REPOSITORY`` in ``owner/repo`` form."""

    payload: dict[str, Any] = field(default_factory=dict)
    """Parsed event payload from ``GITHUB_EVENT_PATH``."""

    @property
    def owner(self) -> str:
        """Repository owner."""
        return self._split_repository()[0]

    @property
    def repo(self) -> str:
        """Repository name."""
        return self._split_repository()[1]

    def _split_repository(self) -> tuple[str, str]:
        full_name = self.repository or _nested(self.payload, "repository", "full_name") or ""
        parts = full_name.split("/")
        if len(parts) != _OWNER_REPO_PARTS:
            return "", ""
        return parts[0], parts[1]


def _nested(payload: dict[str, Any], *keys: str) -> Any:
    """Walk ``keys`` into nested dicts, returning None on any miss."""
    node: Any = payload
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _load_event_payload(event_path: str | None) -> dict[str, Any]:
    if not event_path:
        return {}
    try:
        parsed = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read event payload from %s: %s", event_path, exc)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def detect_github_context() -> GitHubContext:
    """Build a GitHubContext from the GitHub Actions environment variables."""
    return GitHubContext(
        event_name=os.getenv("GITHUB_EVENT_NAME", ""),
        sha=os.getenv("GITHUB_SHA", ""),
        ref=os.getenv("GITHUB_REF", ""),
        workspace=os.getenv("GITHUB_WORKSPACE", ""),
        repository=os.getenv("GITHUB_REPOSITORY", ""),
        payload=_load_event_payload(os.getenv("GITHUB_EVENT_PATH")),
    )


def resolve_commit_sha(event_name: str, payload: dict[str, Any], default_sha: str) -> str:
    """Return the SHA a check run should be attached to.

    For ``workflow_run`` events this is the head commit of the triggering
    workflow; for pull requests it is the head of the source branch;
    otherwise the run's own SHA.

    Raises:
        ValueError: If a ``workflow_run`` payload lacks its ``workflow_run`` field.
    """
    if event_name == _EVENT_WORKFLOW_RUN:
        logger.info("Triggered by workflow_run: using SHA from triggering workflow")
        workflow_run = payload.get("workflow_run")
        if not workflow_run:
            raise ValueError('Event of type "workflow_run" is missing "workflow_run" field')
        return str(_nested(workflow_run, "head_commit", "id") or "")

    if payload.get("pull_request"):
        logger.info("Triggered by %s: using SHA from head of source branch", event_name)
        return str(_nested(payload, "pull_request", "head", "sha") or "")

    return default_sha


def build_diff_options(
    event_name: str,
    payload: dict[str, Any],
    *,
    workspace: str,
    ref: str = "",
    repository: str = "",
) -> DiffOptions:
    """Derive DiffOptions for a run from its event payload.

    Args:
        event_name: Triggering event name.
        payload: Parsed event payload.
        workspace: Checkout directory; ``workspace + "/"`` becomes the prefix.
        ref: ``GITHUB_REF``, used as the head branch for push events.
        repository: Fallback repository name when the payload has none.

    Returns:
        DiffOptions with repository, commit, branches and prefix filled in
        as far as the event provides them.
    """
    full_name = _nested(payload, "repository", "full_name") or repository
    prefix = f"{workspace}/" if workspace else ""

    commit = head = base = ""
    if event_name == _EVENT_PULL_REQUEST:
        commit = str(_nested(payload, "pull_request", "head", "sha") or "")
        head = str(_nested(payload, "pull_request", "head", "ref") or "")
        base = str(_nested(payload, "pull_request", "base", "ref") or "")
    elif event_name == _EVENT_PUSH:
        commit = str(payload.get("after") or "")
        head = ref

    return DiffOptions(
        repository=str(full_name or ""),
        commit=commit,
        head=head,
        base=base,
        prefix=prefix,
    )
