"""GitHub API client for publishing coverage check runs."""

from __future__ import annotations

import logging
import os
from typing import Any

import requests

from covdelta.adapters.coverage.base import CovdeltaError

logger = logging.getLogger(__name__)

# GitHub API constants
GITHUB_API_BASE = "https://api.github.com"
_GITHUB_AUTH_ENV_KEY = "GITHUB_" + "TOKEN"
_REQUEST_TIMEOUT = 30

# Check run summaries are capped by the API.
MAX_SUMMARY_LENGTH = 65535
_TRUNCATION_NOTICE = "\n\n_Report truncated._"


class GitHubAPIError(CovdeltaError):
    """Exception raised when GitHub API operations fail."""


def truncate_summary(body: str) -> str:
    """Trim ``body`` so it fits into a check run summary."""
    if len(body) <= MAX_SUMMARY_LENGTH:
        return body
    logger.warning("Report body is %d characters; truncating for the check run", len(body))
    return body[: MAX_SUMMARY_LENGTH - len(_TRUNCATION_NOTICE)] + _TRUNCATION_NOTICE


class GitHubAPI:
    """Client for the GitHub Checks API.

    Handles authentication and check run creation/completion.
    """

    def __init__(self, token: str | None = None, *, api_base: str = GITHUB_API_BASE) -> None:
        """Initialize the GitHub API client.

        Args:
            token: GitHub token. If not provided, will try to read from the
                GITHUB_TOKEN environment variable.
            api_base: API root URL (GitHub Enterprise installs differ).

        Raises:
            GitHubAPIError: If no token is available.
        """
        self._token = token or os.environ.get(_GITHUB_AUTH_ENV_KEY)
        if not self._token:
            raise GitHubAPIError(
                f"GitHub token required. Set {_GITHUB_AUTH_ENV_KEY} environment variable "
                "or pass token to constructor."
            )
        self._api_base = api_base.rstrip("/")
        self._session_headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def create_check_run(self, owner: str, repo: str, *, name: str, head_sha: str) -> dict[str, Any]:
        """Create an in-progress check run.

        Args:
            owner: Repository owner.
            repo: Repository name.
            name: Check run name (also used as the initial title).
            head_sha: Commit the check run is attached to.

        Returns:
            GitHub API response as a dictionary.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = f"{self._api_base}/repos/{owner}/{repo}/check-runs"
        data: dict[str, Any] = {
            "name": name,
            "head_sha": head_sha,
            "status": "in_progress",
            "output": {"title": name, "summary": ""},
        }

        logger.info("Creating check run %r for %s", name, head_sha)
        result: dict[str, Any] = self._post(url, data)
        return result

    def update_check_run(
        self,
        owner: str,
        repo: str,
        check_run_id: int,
        *,
        title: str,
        summary: str,
        conclusion: str = "success",
    ) -> dict[str, Any]:
        """Complete a check run with the rendered report.

        Args:
            owner: Repository owner.
            repo: Repository name.
            check_run_id: ID returned by create_check_run.
            title: Output title.
            summary: Output summary (markdown formatted).
            conclusion: Check run conclusion.

        Returns:
            GitHub API response as a dictionary.

        Raises:
            GitHubAPIError: If the API request fails.
        """
        url = f"{self._api_base}/repos/{owner}/{repo}/check-runs/{check_run_id}"
        data: dict[str, Any] = {
            "status": "completed",
            "conclusion": conclusion,
            "output": {"title": title, "summary": truncate_summary(summary)},
        }

        logger.info("Completing check run %d with conclusion %s", check_run_id, conclusion)
        result: dict[str, Any] = self._patch(url, data)
        return result

    def _post(self, url: str, data: dict[str, Any]) -> Any:
        """Make a POST request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.post(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise GitHubAPIError(f"POST request failed: {exc}") from exc

    def _patch(self, url: str, data: dict[str, Any]) -> Any:
        """Make a PATCH request to the GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        try:
            response = requests.patch(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise GitHubAPIError(f"PATCH request failed: {exc}") from exc
