"""Structured diagnostics extracted from tool output."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

type Severity = Literal["error", "warning", "note", "help", "failure-note"]


@dataclass(frozen=True, kw_only=True)
class Span:
    """Source location cited by a diagnostic.

    ``line`` and ``column`` are ``None`` when the output carries the ``LL:COL``
    placeholders instead of coordinates.
    """

    file: str
    line: int | None = None
    column: int | None = None
    end_line: int | None = None
    end_column: int | None = None
    label: str | None = None
    primary: bool = True


@dataclass(frozen=True, kw_only=True)
class SuggestedEdit:
    """Replacement text proposed by a help message."""

    replacement: str
    span: Span


@dataclass(frozen=True, kw_only=True)
class StructuredDiagnostic:
    """A diagnostic whose header was recognized."""

    severity: Severity
    message: str
    code: str | None = None
    spans: Sequence[Span] = field(default_factory=tuple)
    children: Sequence["StructuredDiagnostic"] = field(default_factory=tuple)
    suggestions: Sequence[SuggestedEdit] = field(default_factory=tuple)


@dataclass(frozen=True, kw_only=True)
class RawLine:
    """Output line kept verbatim because no structure was recognized."""

    text: str
    severity: Literal["unknown"] = "unknown"


type Diagnostic = StructuredDiagnostic | RawLine
