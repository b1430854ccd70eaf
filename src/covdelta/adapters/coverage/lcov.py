"""LCOV tracefile parser.

Reads the line-oriented LCOV ``.info`` format (as produced by lcov, c8,
nyc, istanbul, cargo-tarpaulin and friends) into the unified
CoverageReport. Each source file is one record delimited by ``SF:<path>``
and ``end_of_record``; unrecognized directives are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, NoReturn

from covdelta.adapters.coverage.base import (
    BranchTotals,
    CoverageReport,
    FileCoverage,
    FunctionCoverage,
    FunctionTotals,
    LineCoverage,
    LineTotals,
    MalformedReportError,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

# LCOV record keys
_LCOV_SF = "SF"
_LCOV_DA = "DA"
_LCOV_LF = "LF"
_LCOV_LH = "LH"
_LCOV_FN = "FN"
_LCOV_FNDA = "FNDA"
_LCOV_FNF = "FNF"
_LCOV_FNH = "FNH"
_LCOV_BRF = "BRF"
_LCOV_BRH = "BRH"
_LCOV_END = "end_of_record"
_LCOV_DA_PARTS = 2

_DATA_KEYS = frozenset(
    {
        _LCOV_DA,
        _LCOV_LF,
        _LCOV_LH,
        _LCOV_FN,
        _LCOV_FNDA,
        _LCOV_FNF,
        _LCOV_FNH,
        _LCOV_BRF,
        _LCOV_BRH,
    }
)

# Functions reported by FNDA without a matching FN get this line number.
_UNDECLARED_FUNCTION_LINE = 0


class _ParserState(Enum):
    IDLE = "idle"
    IN_RECORD = "in_record"


@dataclass
class _LcovRecord:
    """File record under construction."""

    path: str
    lines_found: int = 0
    lines_hit: int = 0
    functions_found: int = 0
    functions_hit: int = 0
    branches_found: int = 0
    branches_hit: int = 0
    da: dict[int, int] = field(default_factory=dict)
    fns: list[tuple[str, int]] = field(default_factory=list)
    fnda: dict[str, int] = field(default_factory=dict)

    def build(self) -> FileCoverage:
        declared = {name for name, _ in self.fns}
        functions = [
            FunctionCoverage(name=name, line_number=line, execution_count=self.fnda.get(name, 0))
            for name, line in self.fns
        ]
        functions.extend(
            FunctionCoverage(name=name, line_number=_UNDECLARED_FUNCTION_LINE, execution_count=hits)
            for name, hits in self.fnda.items()
            if name not in declared
        )
        return FileCoverage(
            path=self.path,
            lines=LineTotals(
                found=self.lines_found,
                hit=self.lines_hit,
                detail=tuple(LineCoverage(ln, cnt) for ln, cnt in self.da.items()),
            ),
            functions=FunctionTotals(
                found=self.functions_found,
                hit=self.functions_hit,
                detail=tuple(functions),
            ),
            branches=BranchTotals(found=self.branches_found, hit=self.branches_hit),
        )


def _is_plain_digits(text: str) -> bool:
    # int() would also accept "+5", "1_000" and non-ASCII digits
    return text.isascii() and text.isdigit()


# ── Parser ───────────────────────────────────────────────────────


class LcovParser:
    """Single-pass LCOV parser.

    Duplicate detail entries within one record (``DA`` for the same line,
    ``FN`` for the same name and line, ``FNDA`` for the same name) are
    rejected with MalformedReportError rather than silently overwritten.
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._files: dict[str, FileCoverage] = {}
        self._state = _ParserState.IDLE
        self._record: _LcovRecord | None = None
        self._line_number = 0
        self._line = ""

    def parse(self, content: str) -> CoverageReport:
        """Parse LCOV text into a CoverageReport.

        Raises:
            MalformedReportError: On structurally invalid input. No partial
                report is returned.
        """
        self._reset()

        for number, raw_line in enumerate(content.split("\n"), start=1):
            self._line_number = number
            self._line = raw_line.rstrip("\r")
            line = raw_line.strip()
            if not line:
                continue
            if line == _LCOV_END:
                self._end_record()
                continue
            key, sep, value = line.partition(":")
            if not sep:
                continue
            if key == _LCOV_SF:
                self._start_record(value.strip())
            elif key in _DATA_KEYS:
                self._apply_key(key, value.strip())

        if self._state is _ParserState.IN_RECORD and self._record is not None:
            logger.warning(
                "Report ends without end_of_record for %s; closing it implicitly",
                self._record.path,
            )
            self._commit()

        logger.debug("Parsed %d file record(s) from LCOV report", len(self._files))
        return CoverageReport(files=self._files)

    # ── State transitions ────────────────────────────────────────

    def _start_record(self, path: str) -> None:
        if self._state is _ParserState.IN_RECORD and self._record is not None:
            self._fail(f"SF for {path!r} while record for {self._record.path!r} is still open")
        if not path:
            self._fail("SF without a file path")
        if path in self._files:
            self._fail(f"duplicate record for {path!r}")
        self._record = _LcovRecord(path=path)
        self._state = _ParserState.IN_RECORD

    def _end_record(self) -> None:
        if self._state is _ParserState.IDLE:
            self._fail("end_of_record without an open SF record")
        self._commit()

    def _commit(self) -> None:
        if self._record is not None:
            self._files[self._record.path] = self._record.build()
        self._record = None
        self._state = _ParserState.IDLE

    # ── Record data ──────────────────────────────────────────────

    def _apply_key(self, key: str, value: str) -> None:
        record = self._record
        if self._state is _ParserState.IDLE or record is None:
            self._fail(f"{key} outside of an SF record")

        if key == _LCOV_DA:
            self._apply_da(record, value)
        elif key == _LCOV_FN:
            self._apply_fn(record, value)
        elif key == _LCOV_FNDA:
            self._apply_fnda(record, value)
        elif key == _LCOV_LF:
            record.lines_found = self._count(key, value)
        elif key == _LCOV_LH:
            record.lines_hit = self._count(key, value)
        elif key == _LCOV_FNF:
            record.functions_found = self._count(key, value)
        elif key == _LCOV_FNH:
            record.functions_hit = self._count(key, value)
        elif key == _LCOV_BRF:
            record.branches_found = self._count(key, value)
        elif key == _LCOV_BRH:
            record.branches_hit = self._count(key, value)

    def _apply_da(self, record: _LcovRecord, value: str) -> None:
        # DA:<line>,<hits>[,<checksum>]
        parts = value.split(",")
        if len(parts) < _LCOV_DA_PARTS:
            self._fail("DA expects <line>,<hits>")
        line_no = self._count("DA line number", parts[0])
        hits = self._count("DA hit count", parts[1])
        if line_no in record.da:
            self._fail(f"duplicate DA entry for line {line_no}")
        record.da[line_no] = hits

    def _apply_fn(self, record: _LcovRecord, value: str) -> None:
        # FN:<line>,<name>; the name may itself contain commas.
        line_s, sep, name = value.partition(",")
        name = name.strip()
        if not sep or not name:
            self._fail("FN expects <line>,<name>")
        line_no = self._count("FN line number", line_s)
        if (name, line_no) in record.fns:
            self._fail(f"duplicate FN entry for {name!r} at line {line_no}")
        record.fns.append((name, line_no))

    def _apply_fnda(self, record: _LcovRecord, value: str) -> None:
        # FNDA:<hits>,<name>
        hits_s, sep, name = value.partition(",")
        name = name.strip()
        if not sep or not name:
            self._fail("FNDA expects <hits>,<name>")
        hits = self._count("FNDA hit count", hits_s)
        if name in record.fnda:
            self._fail(f"duplicate FNDA entry for {name!r}")
        record.fnda[name] = hits

    def _count(self, field_name: str, raw: str) -> int:
        text = raw.strip()
        if text.startswith("-") and _is_plain_digits(text[1:]):
            self._fail(f"{field_name} must not be negative: {text!r}")
        if not _is_plain_digits(text):
            self._fail(f"{field_name} is not an integer: {text!r}")
        return int(text)

    def _fail(self, detail: str) -> NoReturn:
        raise MalformedReportError(detail, line_number=self._line_number, line=self._line)


def parse(raw_text: str) -> CoverageReport:
    """Parse LCOV text into a CoverageReport.

    Raises:
        MalformedReportError: If the text is not a valid LCOV tracefile.
    """
    return LcovParser().parse(raw_text)


def parse_coverage_file(coverage_file: Path) -> CoverageReport:
    """Read and parse an LCOV ``.info`` file.

    Raises:
        OSError: If the file cannot be read.
        MalformedReportError: If its content is not valid LCOV.
    """
    text = coverage_file.read_text(encoding="utf-8")
    logger.debug("Read %d bytes from %s", len(text), coverage_file)
    return parse(text)
