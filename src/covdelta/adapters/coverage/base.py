"""Base data models for parsed coverage reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

_ONE_DECIMAL = Decimal("0.1")
_FULL_COVERAGE = 100.0


def percentage(hit: int, found: int) -> float:
    """Return ``hit / found`` as a percentage rounded half-up to one decimal.

    A zero denominator means there is nothing to cover, which counts as
    fully covered (100.0) rather than an error.
    """
    if found == 0:
        return _FULL_COVERAGE
    exact = Decimal(hit) * 100 / Decimal(found)
    return float(exact.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


class CovdeltaError(Exception):
    """Base class for errors raised by covdelta."""


class MalformedReportError(CovdeltaError):
    """Raised when a coverage report is structurally invalid.

    Carries the 1-based line number and raw text of the offending line so
    callers can point users at the exact spot in the report.
    """

    def __init__(self, detail: str, *, line_number: int | None = None, line: str = "") -> None:
        self.detail = detail
        self.line_number = line_number
        self.line = line
        if line_number is None:
            message = detail
        else:
            message = f"line {line_number}: {detail} (got {line!r})"
        super().__init__(message)


@dataclass(frozen=True)
class LineCoverage:
    """Coverage data for a single line of code."""

    line_number: int
    execution_count: int

    @property
    def is_covered(self) -> bool:
        """Return True if this line was executed at least once."""
        return self.execution_count > 0


@dataclass(frozen=True)
class FunctionCoverage:
    """Coverage data for a single function."""

    name: str
    line_number: int
    execution_count: int

    @property
    def is_covered(self) -> bool:
        """Return True if this function was executed at least once."""
        return self.execution_count > 0


@dataclass(frozen=True)
class LineTotals:
    """Stated line totals (``LF``/``LH``) plus per-line detail (``DA``)."""

    found: int = 0
    hit: int = 0
    detail: tuple[LineCoverage, ...] = ()


@dataclass(frozen=True)
class FunctionTotals:
    """Stated function totals (``FNF``/``FNH``) plus per-function detail."""

    found: int = 0
    hit: int = 0
    detail: tuple[FunctionCoverage, ...] = ()


@dataclass(frozen=True)
class BranchTotals:
    """Stated branch totals (``BRF``/``BRH``)."""

    found: int = 0
    hit: int = 0


@dataclass(frozen=True)
class FileCoverage:
    """Coverage data for a single source file.

    Totals are kept exactly as the report states them; they are never
    recomputed from the detail entries.
    """

    path: str
    lines: LineTotals = field(default_factory=LineTotals)
    functions: FunctionTotals = field(default_factory=FunctionTotals)
    branches: BranchTotals = field(default_factory=BranchTotals)

    @property
    def line_coverage_percentage(self) -> float:
        """Return line coverage percentage (0.0-100.0)."""
        return percentage(self.lines.hit, self.lines.found)


@dataclass(frozen=True)
class CoverageReport:
    """Parsed coverage report, keyed by file path in first-seen order."""

    files: Mapping[str, FileCoverage] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Read-only view over a private copy.
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self) -> Iterator[FileCoverage]:
        return iter(self.files.values())

    @property
    def is_empty(self) -> bool:
        """Return True when the report contains no file records at all."""
        return not self.files

    @property
    def overall_line_coverage(self) -> float:
        """Return overall line coverage percentage across all files."""
        found = sum(file.lines.found for file in self.files.values())
        hit = sum(file.lines.hit for file in self.files.values())
        return percentage(hit, found)
