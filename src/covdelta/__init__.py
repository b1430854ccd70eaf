"""covdelta — LCOV coverage deltas for CI check runs."""

from __future__ import annotations

from covdelta.adapters.coverage.base import CoverageReport, MalformedReportError
from covdelta.adapters.coverage.lcov import parse
from covdelta.analyzers.delta import DiffOptions, DiffResult, compute_diff
from covdelta.reporters.markdown import diff

__version__ = "0.1.0"

__all__ = [
    "CoverageReport",
    "DiffOptions",
    "DiffResult",
    "MalformedReportError",
    "__version__",
    "compute_diff",
    "diff",
    "parse",
]
