"""Rewrite raw tool output into a canonical, comparable form.

Rules run in a fixed order, later rules relying on the substitutions of
earlier ones:

1. the test's own directory becomes ``$DIR`` and the corpus root ``$ROOT``
2. paths under external (vendored) source roots become ``$SRC_DIR`` and their
   coordinates ``LL:COL``
3. ``\\r\\n`` and lone ``\\r`` become ``\\n``
4. trailing whitespace is stripped from every line
5. trailing blank lines are collapsed, non-empty output ends with one newline
6. machine addresses become ``$HEX`` (optional)

Per-test rules are applied after the built-in ones.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

type Replacement = str | Callable[[re.Match[str]], str]

DIR_TOKEN = "$DIR"
ROOT_TOKEN = "$ROOT"
SRC_DIR_TOKEN = "$SRC_DIR"
HEX_TOKEN = "$HEX"

# A replaced path must end at a path boundary: "/corpus" never matches "/corpus2".
_PATH_END = r"(?![\w.\-])"
_PATH_TAIL = r"[\w.\-/\\]*"
_COORDS = r":(?:\d+|LL):(?:\d+|COL)(?:: (?:\d+|LL):(?:\d+|COL))?"


@dataclass(frozen=True, kw_only=True)
class NormalizationRule:
    """An ordered pattern to replacement transformation."""

    name: str
    pattern: re.Pattern[str]
    replacement: Replacement

    def apply(self, text: str) -> str:
        """Apply the rule; a pattern without matches leaves the text unchanged."""
        return self.pattern.sub(self.replacement, text)


@dataclass(frozen=True, kw_only=True)
class NormalizationContext:
    """Machine-specific facts the normalizer must erase."""

    root_path: str
    platform: str
    test_dir: str | None = None
    external_roots: Sequence[str] = field(default_factory=tuple)
    normalize_addresses: bool = True

    @property
    def is_windows(self) -> bool:
        """Whether paths may use backslash separators."""
        return self.platform.startswith(("win", "cygwin"))


def _path_variants(path: str, windows: bool) -> Sequence[str]:
    trimmed = path.rstrip("/\\")
    if not trimmed:
        return []
    if not windows:
        return [trimmed]
    return sorted({trimmed, trimmed.replace("\\", "/"), trimmed.replace("/", "\\")})


def _path_pattern(path: str, windows: bool) -> str | None:
    variants = _path_variants(path, windows)
    if not variants:
        return None
    # Longest first so that a variant never shadows a longer one.
    ordered = sorted(variants, key=len, reverse=True)
    alternatives = "|".join(re.escape(v) for v in ordered)
    flags = "(?i)" if windows else ""
    return f"{flags}(?:{alternatives}){_PATH_END}"


def _prefix_rule(
    name: str, path: str | None, token: str, windows: bool
) -> NormalizationRule | None:
    if not path:
        return None
    pattern = _path_pattern(path, windows)
    if pattern is None:
        return None
    if not windows:
        return NormalizationRule(
            name=name, pattern=re.compile(pattern), replacement=token
        )

    def _forward_slashes(match: re.Match[str]) -> str:
        return token + match.group("tail").replace("\\", "/")

    return NormalizationRule(
        name=name,
        pattern=re.compile(f"{pattern}(?P<tail>{_PATH_TAIL})"),
        replacement=_forward_slashes,
    )


def _external_rule(root: str, windows: bool) -> NormalizationRule | None:
    pattern = _path_pattern(root, windows)
    if pattern is None:
        return None

    def _erase_coordinates(match: re.Match[str]) -> str:
        tail = match.group("tail")
        if windows:
            tail = tail.replace("\\", "/")
        return f"{SRC_DIR_TOKEN}{tail}:LL:COL"

    return NormalizationRule(
        name="external-source",
        pattern=re.compile(f"{pattern}(?P<tail>{_PATH_TAIL}){_COORDS}"),
        replacement=_erase_coordinates,
    )


def _external_bare_rule(root: str, windows: bool) -> NormalizationRule | None:
    # External paths cited without coordinates still lose their machine prefix.
    return _prefix_rule("external-source-path", root, SRC_DIR_TOKEN, windows)


LINE_ENDINGS = NormalizationRule(
    name="line-endings", pattern=re.compile(r"\r\n?"), replacement="\n"
)
TRAILING_WHITESPACE = NormalizationRule(
    name="trailing-whitespace",
    pattern=re.compile(r"[ \t\f\v]+$", re.MULTILINE),
    replacement="",
)
TRAILING_BLANK_LINES = NormalizationRule(
    name="trailing-blank-lines",
    pattern=re.compile(r"(?<!\n)\Z|\n+\Z"),
    replacement="\n",
)
ADDRESSES = NormalizationRule(
    name="addresses",
    pattern=re.compile(r"\b0x[0-9a-fA-F]{8,16}\b"),
    replacement=HEX_TOKEN,
)


def build_rules(context: NormalizationContext) -> Sequence[NormalizationRule]:
    """Return the built-in rules for a context, in application order."""
    windows = context.is_windows
    rules: list[NormalizationRule | None] = [
        _prefix_rule("test-dir", context.test_dir, DIR_TOKEN, windows),
        _prefix_rule("corpus-root", context.root_path, ROOT_TOKEN, windows),
    ]
    for root in context.external_roots:
        rules.append(_external_rule(root, windows))
        rules.append(_external_bare_rule(root, windows))
    rules.extend([LINE_ENDINGS, TRAILING_WHITESPACE, TRAILING_BLANK_LINES])
    if context.normalize_addresses:
        rules.append(ADDRESSES)
    return [rule for rule in rules if rule is not None]


def custom_rules(pairs: Sequence[tuple[str, str]]) -> Sequence[NormalizationRule]:
    """Compile per-test ``(pattern, replacement)`` pairs into rules."""
    return [
        NormalizationRule(
            name=f"custom-{index}", pattern=re.compile(pattern), replacement=replacement
        )
        for index, (pattern, replacement) in enumerate(pairs)
    ]


def normalize(
    raw: str,
    context: NormalizationContext,
    extra_rules: Sequence[NormalizationRule] = (),
) -> str:
    """Return the canonical form of ``raw`` under ``context``.

    Pure and deterministic. Built-in rules are idempotent, so normalizing twice
    gives the same text as normalizing once.
    """
    text = raw
    for rule in build_rules(context):
        text = rule.apply(text)
    for rule in extra_rules:
        text = rule.apply(text)
    if not text.strip():
        return ""
    return text
