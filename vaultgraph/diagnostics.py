"""
Diagnostics channel for vaultgraph.

Soft failures never abort a run. They are collected here, in order, and
returned alongside the finished graph. Each one is also logged.
"""

from collections import Counter
from enum import Enum
from typing import Literal

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class DiagnosticCode(str, Enum):
    """Kinds of soft failure."""

    UNRESOLVED_REFERENCE = "unresolved-reference"
    MALFORMED_METADATA = "malformed-metadata"
    UNPARSEABLE_DATE = "unparseable-date"
    IDENTIFIER_COLLISION = "identifier-collision"
    UNREADABLE_FILE = "unreadable-file"
    MALFORMED_COLLECTION = "malformed-collection"
    MALFORMED_FILTER = "malformed-filter"
    MALFORMED_SORT = "malformed-sort"
    MALFORMED_VIEW = "malformed-view"
    FORMULA_ERROR = "formula-error"
    CYCLE_DETECTED = "cycle-detected"
    EMBED_DEPTH_EXCEEDED = "embed-depth-exceeded"
    BROKEN_EMBED = "broken-embed"
    HEADING_UNSUPPORTED = "heading-unsupported"
    UNKNOWN_VIEW = "unknown-view"


class Diagnostic(BaseModel):
    """A single soft warning."""

    level: Literal["warning", "info"]
    code: DiagnosticCode
    message: str
    document_id: str | None = None
    target: str | None = None

    def __str__(self) -> str:
        loc = self.document_id or self.target or "-"
        return f"{self.level.upper()}: [{self.code.value}] {loc} - {self.message}"


class DiagnosticLog:
    """Ordered, append-only list of diagnostics."""

    def __init__(self):
        self._items: list[Diagnostic] = []

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def _add(
        self,
        level: Literal["warning", "info"],
        code: DiagnosticCode,
        message: str,
        document_id: str | None = None,
        target: str | None = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            level=level,
            code=code,
            message=message,
            document_id=document_id,
            target=target,
        )
        self._items.append(diagnostic)
        log = logger.warning if level == "warning" else logger.debug
        log(code.value, message=message, document_id=document_id, target=target)
        return diagnostic

    def warn(
        self,
        code: DiagnosticCode,
        message: str,
        document_id: str | None = None,
        target: str | None = None,
    ) -> Diagnostic:
        return self._add("warning", code, message, document_id, target)

    def info(
        self,
        code: DiagnosticCode,
        message: str,
        document_id: str | None = None,
        target: str | None = None,
    ) -> Diagnostic:
        return self._add("info", code, message, document_id, target)

    def by_code(self, code: DiagnosticCode) -> list[Diagnostic]:
        return [d for d in self._items if d.code is code]

    def for_document(self, document_id: str) -> list[Diagnostic]:
        return [d for d in self._items if d.document_id == document_id]

    def counts(self) -> dict[str, int]:
        """Number of diagnostics per code."""
        return dict(Counter(d.code.value for d in self._items))

    def to_list(self) -> list[Diagnostic]:
        return list(self._items)
