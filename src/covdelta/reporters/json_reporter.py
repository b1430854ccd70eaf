"""JSON reporter — machine-readable coverage delta output.

Serializes a DiffResult for downstream tooling. The document contains no
timestamps, so identical inputs produce identical output.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from covdelta.analyzers.delta import CoverageTotals, DiffResult

logger = logging.getLogger(__name__)


class JSONReporter:
    """Generate structured JSON reports from a DiffResult."""

    def generate(self, output_path: Path, result: DiffResult) -> Path:
        """Write a JSON report file.

        Args:
            output_path: Path to write the JSON file.
            result: Coverage comparison to serialize.

        Returns:
            The path to the generated JSON file.
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.generate_string(result), encoding="utf-8")
        logger.info("JSON report written to %s", output_path)
        return output_path

    def generate_string(self, result: DiffResult) -> str:
        """Return the JSON report as a string."""
        return json.dumps(build_report(result), indent=2, ensure_ascii=False)


def build_report(result: DiffResult) -> dict[str, Any]:
    """Build the JSON report structure."""
    options = result.options
    return {
        "tool": "covdelta",
        "repository": options.repository,
        "commit": options.commit,
        "head": options.head,
        "base": options.base,
        "has_data": result.has_data,
        "current": _serialize_totals(result.current),
        "base_totals": _serialize_totals(result.base) if result.base is not None else None,
        "delta": result.delta,
        "files": [
            {
                "path": row.path,
                "current": row.current_pct,
                "base": row.base_pct,
                "delta": row.delta,
                "new": row.is_new,
                "lines_found": row.lines_found,
                "lines_hit": row.lines_hit,
            }
            for row in result.files
        ],
        "removed": list(result.removed),
        "collisions": list(result.collisions),
    }


def _serialize_totals(totals: CoverageTotals) -> dict[str, Any]:
    """Serialize aggregate totals into a JSON-compatible dict."""
    return {
        "files": totals.files,
        "percentage": totals.percentage,
        "lines": {"found": totals.lines_found, "hit": totals.lines_hit},
        "functions": {"found": totals.functions_found, "hit": totals.functions_hit},
        "branches": {"found": totals.branches_found, "hit": totals.branches_hit},
    }
