"""Reporters for rendering coverage deltas."""

from __future__ import annotations

from covdelta.reporters.json_reporter import JSONReporter
from covdelta.reporters.markdown import diff, render_markdown, summary_line
from covdelta.reporters.terminal import reporter

__all__ = [
    "JSONReporter",
    "diff",
    "render_markdown",
    "reporter",
    "summary_line",
]
