"""Coverage delta analyzer.

Compares a current coverage report against an optional base report and
produces a structured DiffResult: aggregate totals for both sides, the
overall delta, and one row per current file ordered worst-covered first.

The analysis is a pure function of its inputs; rendering the result is
left to the reporters in ``covdelta.reporters``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from covdelta.adapters.coverage.base import percentage

if TYPE_CHECKING:
    from covdelta.adapters.coverage.base import CoverageReport, FileCoverage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffOptions:
    """Context threaded through to the rendered report.

    Every field is an opaque string. Only ``prefix`` is interpreted, and
    only as a literal prefix to strip from file paths.
    """

    repository: str = ""
    """Repository full name (``owner/repo``)."""

    commit: str = ""
    """Commit SHA the coverage was collected for."""

    head: str = ""
    """Head (source) branch name."""

    base: str = ""
    """Base (target) branch name."""

    prefix: str = ""
    """Workspace path prefix to strip from absolute file paths."""


@dataclass(frozen=True)
class CoverageTotals:
    """Aggregate counters for one report."""

    files: int
    lines_found: int
    lines_hit: int
    functions_found: int
    functions_hit: int
    branches_found: int
    branches_hit: int

    @property
    def percentage(self) -> float:
        """Return aggregate line coverage percentage."""
        return percentage(self.lines_hit, self.lines_found)

    @property
    def function_percentage(self) -> float:
        """Return aggregate function coverage percentage."""
        return percentage(self.functions_hit, self.functions_found)

    @property
    def branch_percentage(self) -> float:
        """Return aggregate branch coverage percentage."""
        return percentage(self.branches_hit, self.branches_found)


@dataclass(frozen=True)
class FileDelta:
    """One per-file row of the delta table."""

    path: str
    """Path with the workspace prefix stripped."""

    current_pct: float
    """Current line coverage percentage."""

    base_pct: float | None
    """Base line coverage percentage, or None for a new file."""

    delta: float | None
    """Signed ``current_pct - base_pct``, or None for a new file."""

    lines_found: int = 0
    lines_hit: int = 0

    @property
    def is_new(self) -> bool:
        """Return True when the file has no counterpart in the base report."""
        return self.base_pct is None


@dataclass(frozen=True)
class DiffResult:
    """Structured outcome of comparing two coverage reports."""

    current: CoverageTotals
    """Totals for the current report."""

    base: CoverageTotals | None
    """Totals for the base report, or None when no base was supplied."""

    delta: float | None
    """Overall percentage delta, or None when no base was supplied."""

    files: tuple[FileDelta, ...]
    """Per-file rows sorted by ascending current coverage, then path."""

    removed: tuple[str, ...]
    """Paths present only in the base report."""

    options: DiffOptions
    """Context the result was computed with."""

    collisions: tuple[str, ...] = ()
    """Current-report paths not shown as rows because another path normalized
    to the same key. Their counters are still part of ``current``."""

    @property
    def has_data(self) -> bool:
        """Return False when the current report contained no files."""
        return self.current.files > 0


def normalize_path(path: str, prefix: str) -> str:
    """Strip ``prefix`` from ``path`` when it is a literal prefix of it."""
    if prefix and path.startswith(prefix):
        return path[len(prefix) :]
    return path


def percentage_delta(current_pct: float, base_pct: float) -> float:
    """Return the signed difference of two one-decimal percentages."""
    exact = Decimal(str(current_pct)) - Decimal(str(base_pct))
    # + 0.0 folds a negative zero into 0.0.
    return float(exact) + 0.0


def compute_totals(report: CoverageReport) -> CoverageTotals:
    """Sum the stated counters of every file in ``report``."""
    files = list(report.files.values())
    return CoverageTotals(
        files=len(files),
        lines_found=sum(f.lines.found for f in files),
        lines_hit=sum(f.lines.hit for f in files),
        functions_found=sum(f.functions.found for f in files),
        functions_hit=sum(f.functions.hit for f in files),
        branches_found=sum(f.branches.found for f in files),
        branches_hit=sum(f.branches.hit for f in files),
    )


def _index_by_path(
    report: CoverageReport, prefix: str
) -> tuple[dict[str, FileCoverage], list[str]]:
    indexed: dict[str, FileCoverage] = {}
    skipped: list[str] = []
    for path, file_cov in report.files.items():
        normalized = normalize_path(path, prefix)
        if normalized in indexed:
            logger.warning(
                "Paths %s and %s both normalize to %s; keeping the first",
                indexed[normalized].path,
                path,
                normalized,
            )
            skipped.append(path)
            continue
        indexed[normalized] = file_cov
    return indexed, skipped


def compute_diff(
    current: CoverageReport,
    base: CoverageReport | None,
    options: DiffOptions | None = None,
) -> DiffResult:
    """Compare ``current`` against ``base`` and return the structured result.

    Args:
        current: Coverage report for the commit under review.
        base: Coverage report for the comparison target. None, or a report
            without any files, means no comparison is available.
        options: Repository context and path prefix.

    Returns:
        A DiffResult; this never raises for valid reports.
    """
    options = options or DiffOptions()
    if base is not None and base.is_empty:
        logger.info("Base report contains no files; rendering without comparison")
        base = None

    current_files, collisions = _index_by_path(current, options.prefix)
    base_files = _index_by_path(base, options.prefix)[0] if base is not None else {}

    rows: list[FileDelta] = []
    for path, file_cov in current_files.items():
        current_pct = file_cov.line_coverage_percentage
        base_cov = base_files.get(path)
        base_pct = base_cov.line_coverage_percentage if base_cov is not None else None
        rows.append(
            FileDelta(
                path=path,
                current_pct=current_pct,
                base_pct=base_pct,
                delta=percentage_delta(current_pct, base_pct) if base_pct is not None else None,
                lines_found=file_cov.lines.found,
                lines_hit=file_cov.lines.hit,
            )
        )
    rows.sort(key=lambda row: (row.current_pct, row.path))

    current_totals = compute_totals(current)
    base_totals = compute_totals(base) if base is not None else None
    overall_delta = (
        percentage_delta(current_totals.percentage, base_totals.percentage)
        if base_totals is not None
        else None
    )
    removed = tuple(sorted(path for path in base_files if path not in current_files))

    logger.debug(
        "Compared %d current file(s) against %d base file(s); %d removed",
        len(current_files),
        len(base_files),
        len(removed),
    )

    return DiffResult(
        current=current_totals,
        base=base_totals,
        delta=overall_delta,
        files=tuple(rows),
        removed=removed,
        options=options,
        collisions=tuple(sorted(collisions)),
    )
