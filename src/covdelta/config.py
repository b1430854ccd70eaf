"""Configuration parsing from ``.covdelta.yml``."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".covdelta.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

VALID_FORMATS = ("markdown", "terminal", "json")


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


@dataclass
class ReportConfig:
    """Which reports to read and how to render them."""

    lcov_file: str = "coverage/lcov.info"
    """Path to the current LCOV report."""

    lcov_base: str = ""
    """Path to the base LCOV report (empty = no comparison)."""

    prefix: str = ""
    """Path prefix to strip from file paths (empty = workspace from CI)."""

    format: str = "markdown"
    """Output format: markdown, terminal, or json."""


@dataclass
class CheckConfig:
    """GitHub check run settings."""

    name: str = "Coverage"
    """Check run name."""


@dataclass
class GitHubConfig:
    """GitHub API settings."""

    token: str = ""
    """API token (supports ${ENV_VAR} expansion)."""

    api_url: str = "https://api.github.com"
    """API root URL."""


@dataclass
class CovdeltaConfig:
    """Complete covdelta configuration from ``.covdelta.yml``."""

    report: ReportConfig = field(default_factory=ReportConfig)
    """Report input/output configuration."""

    check: CheckConfig = field(default_factory=CheckConfig)
    """Check run configuration."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    """GitHub API configuration."""

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""


def load_config(root: str | Path) -> CovdeltaConfig:
    """Load and parse ``.covdelta.yml`` under ``root``.

    Falls back to defaults and environment variables when the file is
    missing or incomplete.
    """
    root_path = Path(root).resolve()
    config_path = root_path / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_path.is_file():
        parsed = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        logger.debug("Loaded configuration from %s", config_path)

    report_raw = _section(raw, "report")
    report = ReportConfig(
        lcov_file=str(report_raw.get("lcov_file", "coverage/lcov.info")),
        lcov_base=str(report_raw.get("lcov_base", "") or ""),
        prefix=str(report_raw.get("prefix", "") or ""),
        format=str(report_raw.get("format", "markdown")),
    )

    check_raw = _section(raw, "check")
    check = CheckConfig(name=str(check_raw.get("name", "Coverage")))

    github_raw = _section(raw, "github")
    github = GitHubConfig(
        token=str(github_raw.get("token", os.environ.get("GITHUB_TOKEN", "")) or ""),
        api_url=str(github_raw.get("api_url", "https://api.github.com")),
    )

    return CovdeltaConfig(report=report, check=check, github=github, raw=raw)


def validate_config(config: CovdeltaConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.report.lcov_file:
        errors.append("report.lcov_file must not be empty")

    if config.report.format not in VALID_FORMATS:
        errors.append(
            f"report.format must be one of {', '.join(VALID_FORMATS)} "
            f"(got: {config.report.format})"
        )

    if not config.check.name.strip():
        errors.append("check.name must not be empty")

    if not config.github.api_url.startswith(("http://", "https://")):
        errors.append(f"github.api_url must be an http(s) URL (got: {config.github.api_url})")

    return errors
