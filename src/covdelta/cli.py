"""covdelta CLI — top-level command group."""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from covdelta import __version__
from covdelta.adapters.coverage.base import CoverageReport, MalformedReportError
from covdelta.adapters.coverage.lcov import parse
from covdelta.analyzers.delta import DiffOptions, DiffResult, compute_diff
from covdelta.config import (
    CONFIG_FILE_NAME,
    VALID_FORMATS,
    CovdeltaConfig,
    load_config,
    validate_config,
)
from covdelta.reporters.json_reporter import JSONReporter
from covdelta.reporters.markdown import render_markdown, summary_line
from covdelta.reporters.terminal import reporter
from covdelta.utils.ci_context import build_diff_options, detect_github_context, resolve_commit_sha
from covdelta.utils.github import GitHubAPI, GitHubAPIError

logger = logging.getLogger(__name__)
console = Console()

# Masking thresholds
_MIN_MASKED_VALUE_LENGTH = 8


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _mask_sensitive_values(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask tokens in a configuration dict for display."""
    result: dict[str, Any] = {}
    for key, value in config_dict.items():
        if isinstance(value, dict):
            result[key] = _mask_sensitive_values(value)
        elif key == "token" and isinstance(value, str) and value:
            if len(value) > _MIN_MASKED_VALUE_LENGTH:
                result[key] = f"{value[:4]}...{value[-4:]}"
            else:
                result[key] = "***"
        else:
            result[key] = value
    return result


def _load_config_or_abort(root: str | Path) -> CovdeltaConfig:
    try:
        return load_config(root)
    except (OSError, yaml.YAMLError) as e:
        reporter.print_error(f"Failed to load configuration: {escape(str(e))}")
        raise click.Abort from e


def _resolve_input(root: Path, file_name: str) -> Path:
    path = Path(file_name)
    return path if path.is_absolute() else root / path


def _read_report(path: Path) -> str | None:
    """Return the report text, or None when it is missing, unreadable or empty."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.debug("Could not read %s: %s", path, exc)
        return None
    return text or None


def _load_reports(
    lcov_path: Path, base_path: Path | None
) -> tuple[CoverageReport, CoverageReport | None] | None:
    """Read and parse the current and (optional) base reports.

    Returns None when there is no current report to work with.

    Raises:
        click.Abort: If either report is malformed.
    """
    raw = _read_report(lcov_path)
    if raw is None:
        reporter.print_info(
            f'No coverage report found at "{escape(str(lcov_path))}", exiting...'
        )
        return None

    base_raw = _read_report(base_path) if base_path is not None else None
    if base_path is not None and base_raw is None:
        reporter.print_warning(
            f'No coverage report found at "{escape(str(base_path))}", ignoring...'
        )

    current = _parse_report(raw, lcov_path)
    base = _parse_report(base_raw, base_path) if base_raw and base_path else None
    return current, base


def _parse_report(raw: str, source: Path) -> CoverageReport:
    try:
        return parse(raw)
    except MalformedReportError as exc:
        reporter.print_error(
            f"Malformed coverage report {escape(str(source))}: {escape(str(exc))}"
        )
        raise click.Abort from exc


def _emit(result: DiffResult, output_format: str, output: str | None) -> None:
    if output_format == "terminal":
        reporter.print_delta(result)
        return

    if output_format == "json":
        json_reporter = JSONReporter()
        if output:
            json_reporter.generate(Path(output), result)
            reporter.print_success(f"JSON report written to {escape(output)}")
        else:
            click.echo(json_reporter.generate_string(result))
        return

    body = render_markdown(result)
    if output:
        out_path = Path(output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(body, encoding="utf-8")
        reporter.print_success(f"Markdown report written to {escape(output)}")
    else:
        click.echo(body)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="covdelta")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool) -> None:
    """covdelta — LCOV coverage deltas for pull requests and check runs."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose=verbose)


@cli.command()
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory (report paths are relative to it).",
)
@click.option("--lcov-file", default=None, help="Current LCOV report.")
@click.option("--lcov-base", default=None, help="Base LCOV report to compare against.")
@click.option("--prefix", default=None, help="Path prefix to strip from file paths.")
@click.option("--repository", default="", help="Repository name shown in the report.")
@click.option("--commit", default="", help="Commit SHA shown in the report.")
@click.option("--head", default="", help="Head branch shown in the report.")
@click.option("--base-branch", default="", help="Base branch shown in the report.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(VALID_FORMATS),
    default=None,
    help="Output format (default from .covdelta.yml, else markdown).",
)
@click.option("--output", "-o", default=None, help="Write the report to this file.")
def report(
    path: str,
    lcov_file: str | None,
    lcov_base: str | None,
    prefix: str | None,
    repository: str,
    commit: str,
    head: str,
    base_branch: str,
    output_format: str | None,
    output: str | None,
) -> None:
    """Compare LCOV reports and print the coverage delta.

    Example:
      covdelta report --lcov-file coverage/lcov.info --lcov-base base/lcov.info
    """
    root = Path(path)
    config = _load_config_or_abort(root)
    output_format = output_format or config.report.format
    if output_format not in VALID_FORMATS:
        reporter.print_error(
            f"Unknown report format {escape(repr(output_format))} in {CONFIG_FILE_NAME}; "
            f"expected one of: {', '.join(VALID_FORMATS)}"
        )
        raise click.Abort

    lcov_path = _resolve_input(root, lcov_file or config.report.lcov_file)
    base_name = lcov_base if lcov_base is not None else config.report.lcov_base
    base_path = _resolve_input(root, base_name) if base_name else None

    loaded = _load_reports(lcov_path, base_path)
    if loaded is None:
        return
    current, base = loaded

    options = DiffOptions(
        repository=repository,
        commit=commit,
        head=head,
        base=base_branch,
        prefix=prefix if prefix is not None else config.report.prefix,
    )
    result = compute_diff(current, base, options)
    _emit(result, output_format, output)


@cli.command()
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory (report paths are relative to it).",
)
@click.option("--name", default=None, help="Check run name.")
@click.option("--lcov-file", default=None, help="Current LCOV report.")
@click.option("--lcov-base", default=None, help="Base LCOV report to compare against.")
@click.option("--token", envvar="GITHUB_TOKEN", default=None, help="GitHub token.")
def check(
    path: str,
    name: str | None,
    lcov_file: str | None,
    lcov_base: str | None,
    token: str | None,
) -> None:
    """Publish the coverage delta as a GitHub check run.

    Intended to run inside GitHub Actions; repository, commit and branch
    details are taken from the workflow environment.
    """
    root = Path(path)
    config = _load_config_or_abort(root)
    check_name = name or config.check.name

    lcov_path = _resolve_input(root, lcov_file or config.report.lcov_file)
    base_name = lcov_base if lcov_base is not None else config.report.lcov_base
    base_path = _resolve_input(root, base_name) if base_name else None

    loaded = _load_reports(lcov_path, base_path)
    if loaded is None:
        return
    current, base = loaded

    context = detect_github_context()
    options = build_diff_options(
        context.event_name,
        context.payload,
        workspace=context.workspace,
        ref=context.ref,
        repository=context.repository,
    )
    if config.report.prefix:
        options = dataclasses.replace(options, prefix=config.report.prefix)

    result = compute_diff(current, base, options)
    body = render_markdown(result)

    if not context.owner or not context.repo:
        reporter.print_error("Repository unknown: run this command inside GitHub Actions.")
        raise click.Abort

    try:
        head_sha = resolve_commit_sha(context.event_name, context.payload, context.sha)
        api = GitHubAPI(token=token or config.github.token or None, api_base=config.github.api_url)
        created = api.create_check_run(
            context.owner, context.repo, name=check_name, head_sha=head_sha
        )
        updated = api.update_check_run(
            context.owner,
            context.repo,
            int(created["id"]),
            title=f"{check_name}: {summary_line(result)}",
            summary=body,
        )
    except (GitHubAPIError, ValueError, KeyError) as exc:
        reporter.print_error(f"Failed to publish check run: {escape(str(exc))}")
        raise click.Abort from exc

    logger.info("Check run URL: %s", updated.get("url", ""))
    reporter.print_success(f"Check run published: {escape(str(updated.get('html_url', '')))}")


@cli.group("config")
def config_group() -> None:
    """Inspect `.covdelta.yml` configuration."""


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option("--json-output", "as_json", is_flag=True, help="Output as JSON instead of YAML.")
@click.option("--no-mask", is_flag=True, help="Show the token unmasked (use with caution).")
def config_show(path: str, *, as_json: bool, no_mask: bool) -> None:
    """Display resolved configuration with the token masked."""
    config = _load_config_or_abort(path)
    config_dict = dataclasses.asdict(config)
    config_dict.pop("raw", None)
    if not no_mask:
        config_dict = _mask_sensitive_values(config_dict)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Validate `.covdelta.yml` configuration."""
    errors = validate_config(_load_config_or_abort(path))

    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()
    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{escape(error)}[/red]")
    raise click.Abort


def main() -> None:
    """Console script entry point."""
    cli(obj={})
