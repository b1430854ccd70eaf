"""Markdown reporter for coverage deltas.

Renders a DiffResult into the markdown body posted as a check run summary
(or a PR comment): a headline with the overall percentage and delta, a
per-file table ordered worst-covered first, function and branch totals,
and the repository/commit/branch identifiers the report belongs to.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from covdelta.analyzers.delta import DiffOptions, compute_diff

if TYPE_CHECKING:
    from covdelta.adapters.coverage.base import CoverageReport
    from covdelta.analyzers.delta import CoverageTotals, DiffResult, FileDelta

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No coverage data was found in the current report."

_HEADER = "## Coverage Report"
_UP = "▲"
_DOWN = "▼"
_SAME = "●"


def format_pct(value: float) -> str:
    """Format a percentage with one decimal place."""
    return f"{value:.1f}%"


def format_delta(delta: float) -> str:
    """Format a signed delta; zero is rendered as ``±0.0%``."""
    if delta > 0:
        return f"+{delta:.1f}%"
    if delta < 0:
        return f"{delta:.1f}%"
    return "±0.0%"


def _delta_cell(row: FileDelta) -> str:
    if row.delta is None:
        return "new file"
    if row.delta > 0:
        return f"{format_delta(row.delta)} {_UP}"
    if row.delta < 0:
        return f"{format_delta(row.delta)} {_DOWN}"
    return f"{format_delta(row.delta)} {_SAME}"


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|")


def summary_line(result: DiffResult) -> str:
    """Return the one-line overall summary, e.g. ``Coverage: 81.2% (+0.4% vs base)``."""
    if not result.has_data:
        return "Coverage: no coverage data"
    line = f"Coverage: {format_pct(result.current.percentage)}"
    if result.delta is not None:
        line += f" ({format_delta(result.delta)} vs base)"
    return line


def _format_table(rows: tuple[FileDelta, ...]) -> list[str]:
    lines = [
        "| File | Coverage | Base | Delta |",
        "| --- | ---: | ---: | --- |",
    ]
    for row in rows:
        base_cell = "new" if row.base_pct is None else format_pct(row.base_pct)
        lines.append(
            f"| `{_escape_cell(row.path)}` | {format_pct(row.current_pct)} | "
            f"{base_cell} | {_delta_cell(row)} |"
        )
    return lines


def _format_totals(totals: CoverageTotals) -> str:
    return (
        f"Lines: {totals.lines_hit}/{totals.lines_found} · "
        f"Functions: {totals.functions_hit}/{totals.functions_found} "
        f"({format_pct(totals.function_percentage)}) · "
        f"Branches: {totals.branches_hit}/{totals.branches_found} "
        f"({format_pct(totals.branch_percentage)})"
    )


def _format_context(options: DiffOptions) -> str | None:
    parts: list[str] = []
    if options.repository:
        parts.append(f"Repository: `{options.repository}`")
    if options.commit:
        parts.append(f"Commit: `{options.commit}`")
    if options.head and options.base:
        parts.append(f"Branch: `{options.head}` → `{options.base}`")
    elif options.head:
        parts.append(f"Branch: `{options.head}`")
    elif options.base:
        parts.append(f"Base branch: `{options.base}`")
    return " · ".join(parts) if parts else None


def render_markdown(result: DiffResult) -> str:
    """Render a DiffResult as a markdown report body."""
    sections: list[str] = [_HEADER, ""]

    if not result.has_data:
        sections.append(NO_DATA_MESSAGE)
        sections.append("")
    else:
        sections.append(f"**{summary_line(result)}**")
        sections.append("")
        if result.base is None:
            sections.append("_No base report available for comparison._")
            sections.append("")
        sections.extend(_format_table(result.files))
        sections.append("")
        sections.append(_format_totals(result.current))
        sections.append("")
        if result.removed:
            removed = ", ".join(f"`{path}`" for path in result.removed)
            sections.append(f"Removed since base ({len(result.removed)}): {removed}")
            sections.append("")
        if result.collisions:
            hidden = ", ".join(f"`{path}`" for path in result.collisions)
            sections.append(
                f"Not listed, path collides with another file after prefix stripping "
                f"({len(result.collisions)}, still counted in totals): {hidden}"
            )
            sections.append("")

    context = _format_context(result.options)
    if context:
        sections.append("---")
        sections.append(context)
        sections.append("")

    return "\n".join(sections)


def diff(
    current: CoverageReport,
    base: CoverageReport | None,
    options: DiffOptions | None = None,
) -> str:
    """Compare two coverage reports and return the rendered markdown body."""
    result = compute_diff(current, base, options or DiffOptions())
    logger.debug("Rendering markdown for %d file row(s)", len(result.files))
    return render_markdown(result)
