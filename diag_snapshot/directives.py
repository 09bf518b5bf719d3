"""Read per-test directives from the header comments of a source file.

Directives are comment lines starting with the directive prefix (``//@`` by
default) before the first line of code::

    //@ revisions: a b
    //@ check-pass
    //@[b] check-fail
    //@ compile-flags: --edition 2021
    //@[a] compile-flags: -Zverbose
    //@ aux-build: helper.rs
    //@ failure-status: 101
    //@ normalize-stderr-test: "\\d+ bytes" -> "N bytes"
    //@ ignore-test
"""

import re
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import Any, get_args

from pydantic import ValidationError

from diag_snapshot.models.test_case import Directives, Expect

DEFAULT_PREFIX = "//@"

DIRECTIVE = re.compile(
    r"^(?:\[(?P<revisions>[^\]]+)\])?\s*(?P<key>[a-z0-9-]+)(?::\s*(?P<value>.*))?$"
)
NORMALIZE = re.compile(
    r'^"(?P<pattern>(?:[^"\\]|\\.)*)"\s*->\s*"(?P<replacement>(?:[^"\\]|\\.)*)"$'
)
OUTCOMES: frozenset[str] = frozenset(get_args(Expect.__value__))
SCOPABLE = OUTCOMES | {"compile-flags"}


class DirectiveError(ValueError):
    """Raised when a directive is unknown or malformed."""


def _unquote(value: str) -> str:
    return value.replace('\\"', '"')


def _parse_normalize(value: str | None, line_no: int) -> Mapping[str, str]:
    if value is None or not (match := NORMALIZE.match(value.strip())):
        raise DirectiveError(
            f'line {line_no}: expected "PATTERN" -> "REPLACEMENT", got {value!r}'
        )
    return {
        "pattern": _unquote(match.group("pattern")),
        "replacement": _unquote(match.group("replacement")),
    }


def _split(value: str | None, key: str, line_no: int) -> list[str]:
    if not value:
        raise DirectiveError(f"line {line_no}: '{key}' needs a value")
    try:
        return shlex.split(value)
    except ValueError as e:
        raise DirectiveError(f"line {line_no}: cannot split '{key}' value: {e}") from e


def parse_directives(text: str, prefix: str = DEFAULT_PREFIX) -> Directives:
    """Parse the directive header of a test source.

    Raises:
        DirectiveError: If a directive is unknown, malformed, or inconsistent

    """
    comment = prefix.rstrip("@") or prefix
    data: dict[str, Any] = {
        "compile_flags": [],
        "revision_flags": {},
        "revision_expect": {},
        "aux_files": [],
        "normalize_stderr": [],
        "normalize_stdout": [],
    }

    for line_no, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith(comment):
            break
        if not stripped.startswith(prefix):
            continue

        body = stripped[len(prefix) :].strip()
        if not (match := DIRECTIVE.match(body)):
            raise DirectiveError(f"line {line_no}: malformed directive {body!r}")

        key = match.group("key")
        value = match.group("value")
        scope = match.group("revisions")
        revisions = [r.strip() for r in scope.split(",")] if scope else []

        if revisions and key not in SCOPABLE:
            raise DirectiveError(f"line {line_no}: '{key}' cannot be revision-scoped")

        if key in OUTCOMES:
            if revisions:
                for revision in revisions:
                    data["revision_expect"][revision] = key
            elif "expect" in data:
                raise DirectiveError(
                    f"line {line_no}: conflicting outcomes "
                    f"'{data['expect']}' and '{key}'"
                )
            else:
                data["expect"] = key
        elif key == "revisions":
            data["revisions"] = _split(value, key, line_no)
        elif key == "compile-flags":
            flags = _split(value, key, line_no)
            if revisions:
                for revision in revisions:
                    data["revision_flags"].setdefault(revision, []).extend(flags)
            else:
                data["compile_flags"].extend(flags)
        elif key == "aux-build":
            data["aux_files"].extend(_split(value, key, line_no))
        elif key == "failure-status":
            if value is None or not value.strip().lstrip("-").isdigit():
                raise DirectiveError(
                    f"line {line_no}: failure-status must be an integer, got {value!r}"
                )
            data["failure_status"] = int(value)
        elif key == "normalize-stderr-test":
            data["normalize_stderr"].append(_parse_normalize(value, line_no))
        elif key == "normalize-stdout-test":
            data["normalize_stdout"].append(_parse_normalize(value, line_no))
        elif key == "ignore-test":
            data["ignore"] = True
        else:
            raise DirectiveError(f"line {line_no}: unknown directive '{key}'")

    try:
        return Directives.model_validate(data)
    except ValidationError as e:
        raise DirectiveError(f"Invalid directives: {e}") from e


def read_directives(path: Path, prefix: str = DEFAULT_PREFIX) -> Directives:
    """Read and parse the directives of a test source file.

    Raises:
        DirectiveError: If the file cannot be decoded or a directive is invalid

    """
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise DirectiveError(f"{path} is not valid UTF-8: {e}") from e

    try:
        return parse_directives(text, prefix)
    except DirectiveError as e:
        raise DirectiveError(f"{path}: {e}") from e
