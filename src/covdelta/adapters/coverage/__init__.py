"""Coverage adapters for unified coverage reporting."""

from covdelta.adapters.coverage.base import (
    BranchTotals,
    CoverageReport,
    CovdeltaError,
    FileCoverage,
    FunctionCoverage,
    FunctionTotals,
    LineCoverage,
    LineTotals,
    MalformedReportError,
)
from covdelta.adapters.coverage.lcov import LcovParser, parse, parse_coverage_file

__all__ = [
    "BranchTotals",
    "CovdeltaError",
    "CoverageReport",
    "FileCoverage",
    "FunctionCoverage",
    "FunctionTotals",
    "LcovParser",
    "LineCoverage",
    "LineTotals",
    "MalformedReportError",
    "parse",
    "parse_coverage_file",
]
