"""Analyzers that derive results from parsed coverage reports."""

from covdelta.analyzers.delta import (
    CoverageTotals,
    DiffOptions,
    DiffResult,
    FileDelta,
    compute_diff,
    compute_totals,
    normalize_path,
    percentage_delta,
)

__all__ = [
    "CoverageTotals",
    "DiffOptions",
    "DiffResult",
    "FileDelta",
    "compute_diff",
    "compute_totals",
    "normalize_path",
    "percentage_delta",
]
