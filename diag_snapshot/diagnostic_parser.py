"""Parse normalized tool output into a sequence of diagnostics.

The parser is tolerant: anything it does not recognize is kept as a
``RawLine`` so that comparisons can fall back to plain text. Diagnostics are
returned in emission order.
"""

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import get_args

from pydantic import BaseModel

from diag_snapshot.models.diagnostic import (
    Diagnostic,
    RawLine,
    Severity,
    Span,
    StructuredDiagnostic,
    SuggestedEdit,
)

SEVERITIES: frozenset[str] = frozenset(get_args(Severity.__value__))

HEADER = re.compile(
    r"^(?P<severity>error|warning|note|help|failure-note)"
    r"(?:\[(?P<code>[A-Za-z0-9_]+)\])?: (?P<message>.*)$"
)
CHILD = re.compile(r"^\s+= (?P<severity>note|help): (?P<message>.*)$")
LOCATION = re.compile(
    r"^\s*(?P<arrow>-->|:::) (?P<file>.+?):(?P<line>\d+|LL):(?P<column>\d+|COL)$"
)
SOURCE = re.compile(r"^\s*(?P<line>\d+|LL) \|(?: (?P<code>.*))?$")
ANNOTATION = re.compile(r"^\s*\|(?P<pad>\s*)(?P<marks>[\^\-~+]+)(?:\s+(?P<label>.*))?$")
GUTTER = re.compile(r"^\s*\|\s*$")


def _coordinate(value: str) -> int | None:
    return int(value) if value.isdigit() else None


@dataclass(kw_only=True)
class _Builder:
    """Mutable accumulator for one diagnostic while its lines are read."""

    severity: Severity
    message: str
    code: str | None = None
    spans: list[Span] = field(default_factory=list)
    children: list["_Builder"] = field(default_factory=list)
    suggestions: list[SuggestedEdit] = field(default_factory=list)
    source_line: tuple[int | None, str] | None = None

    def build(self) -> StructuredDiagnostic:
        return StructuredDiagnostic(
            severity=self.severity,
            message=self.message,
            code=self.code,
            spans=tuple(self.spans),
            children=tuple(child.build() for child in self.children),
            suggestions=tuple(self.suggestions),
        )


class _HumanParser:
    """State machine over rustc-style human readable output."""

    def __init__(self) -> None:
        self.diagnostics: list[Diagnostic] = []
        self.current: _Builder | None = None
        self.target: _Builder | None = None

    def close(self) -> None:
        if self.current is not None:
            self.diagnostics.append(self.current.build())
        self.current = None
        self.target = None

    def feed(self, line: str) -> None:
        if not line.strip():
            self.close()
            return

        if match := HEADER.match(line):
            builder = _Builder(
                severity=match.group("severity"),  # type: ignore[arg-type]
                message=match.group("message"),
                code=match.group("code"),
            )
            opens_block = match.group("severity") in {"error", "warning"}
            if self.current is None or opens_block:
                self.close()
                self.current = builder
            else:
                self.current.children.append(builder)
            self.target = builder
            return

        if self.current is None or self.target is None:
            self.diagnostics.append(RawLine(text=line))
            return

        if match := CHILD.match(line):
            child = _Builder(
                severity=match.group("severity"),  # type: ignore[arg-type]
                message=match.group("message"),
            )
            self.current.children.append(child)
            return

        if match := LOCATION.match(line):
            self.target.spans.append(
                Span(
                    file=match.group("file"),
                    line=_coordinate(match.group("line")),
                    column=_coordinate(match.group("column")),
                    primary=match.group("arrow") == "-->",
                )
            )
            return

        if match := SOURCE.match(line):
            self.target.source_line = (
                _coordinate(match.group("line")),
                match.group("code") or "",
            )
            return

        if match := ANNOTATION.match(line):
            self._annotate(match)
            return

        if GUTTER.match(line) or line[:1].isspace():
            # Rendering detail or a wrapped message line: kept only as text.
            return

        self.close()
        self.diagnostics.append(RawLine(text=line))

    def _annotate(self, match: re.Match[str]) -> None:
        assert self.target is not None and self.current is not None
        marks = match.group("marks")
        label = match.group("label")
        column = len(match.group("pad"))

        if marks[0] in "+~" and self.target.source_line is not None:
            line_number, code = self.target.source_line
            file = self._cited_file()
            self.target.suggestions.append(
                SuggestedEdit(
                    replacement=code,
                    span=Span(
                        file=file,
                        line=line_number,
                        column=column,
                        end_column=column + len(marks) - 1,
                        label=label,
                    ),
                )
            )
            return

        if not self.target.spans or label is None:
            return
        primary = marks[0] == "^"
        for index in range(len(self.target.spans) - 1, -1, -1):
            span = self.target.spans[index]
            if span.label is None and span.primary == primary:
                self.target.spans[index] = replace(span, label=label)
                return

    def _cited_file(self) -> str:
        assert self.current is not None
        for builder in (self.target, self.current):
            if builder is not None and builder.spans:
                return builder.spans[0].file
        return ""


class JsonSpan(BaseModel):
    """Span object of a JSON diagnostic."""

    file_name: str
    line_start: int
    line_end: int
    column_start: int
    column_end: int
    is_primary: bool = True
    label: str | None = None
    suggested_replacement: str | None = None


class JsonCode(BaseModel):
    """Error code object of a JSON diagnostic."""

    code: str
    explanation: str | None = None


class JsonDiagnostic(BaseModel):
    """One diagnostic emitted in the JSON error format."""

    message: str
    level: str
    code: JsonCode | None = None
    spans: Sequence[JsonSpan] = ()
    children: Sequence["JsonDiagnostic"] = ()
    rendered: str | None = None


JsonDiagnostic.model_rebuild()


def _from_json(diagnostic: JsonDiagnostic) -> StructuredDiagnostic | None:
    if diagnostic.level not in SEVERITIES:
        return None
    spans: list[Span] = []
    suggestions: list[SuggestedEdit] = []
    for json_span in diagnostic.spans:
        span = Span(
            file=json_span.file_name,
            line=json_span.line_start,
            column=json_span.column_start,
            end_line=json_span.line_end,
            end_column=json_span.column_end,
            label=json_span.label,
            primary=json_span.is_primary,
        )
        spans.append(span)
        if json_span.suggested_replacement is not None:
            suggestions.append(
                SuggestedEdit(replacement=json_span.suggested_replacement, span=span)
            )
    children = [
        child
        for child in (_from_json(c) for c in diagnostic.children)
        if child is not None
    ]
    return StructuredDiagnostic(
        severity=diagnostic.level,  # type: ignore[arg-type]
        message=diagnostic.message,
        code=diagnostic.code.code if diagnostic.code else None,
        spans=tuple(spans),
        children=tuple(children),
        suggestions=tuple(suggestions),
    )


def parse_json_line(line: str) -> Diagnostic:
    """Parse one JSON diagnostic, falling back to a raw line."""
    try:
        data = json.loads(line)
        diagnostic = JsonDiagnostic.model_validate(data)
    # JSONDecodeError and pydantic's ValidationError are both ValueErrors.
    except (ValueError, RecursionError):
        return RawLine(text=line)
    return _from_json(diagnostic) or RawLine(text=line)


def parse(normalized_text: str) -> Sequence[Diagnostic]:
    """Turn normalized output into diagnostics, in emission order."""
    parser = _HumanParser()
    for line in normalized_text.splitlines():
        if line.startswith("{"):
            parser.close()
            parser.diagnostics.append(parse_json_line(line))
            continue
        parser.feed(line)
    parser.close()
    return parser.diagnostics


def error_codes(diagnostics: Sequence[Diagnostic]) -> Sequence[str]:
    """Return the distinct error codes of the diagnostics, first seen first."""
    codes: list[str] = []
    for diagnostic in diagnostics:
        if isinstance(diagnostic, StructuredDiagnostic) and diagnostic.code:
            if diagnostic.code not in codes:
                codes.append(diagnostic.code)
    return codes
