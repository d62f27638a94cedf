"""Compile listener patterns into anchored regular expressions.

A listener pattern is either a human-authored command string such as
``"deploy :branch([a-z]+) to :env([a-z]+)"`` or a raw ``re.Pattern``.
Named groups ``:name(subexpr)`` become plain capturing groups; their names
are kept separately, in order, so a request can map captures back to names.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .util import strip_emoji

REACTION_KIND = "reaction_added"

NAMED_GROUP_RE = re.compile(r":([a-zA-Z]+)\(([^)]*)\)")

Pattern = str | re.Pattern[str]


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """Result of compiling a listener pattern.

    ``value`` is the pattern as stored on the listener: emoji patterns are
    stored stripped and escaped, everything else unchanged.
    """

    matcher: re.Pattern[str] | None
    param_names: tuple[str, ...]
    value: Pattern | None


def escape_reaction(emoji: str) -> str:
    return strip_emoji(emoji).replace("+", "\\+")


def compile_pattern(kind: str, pattern: Pattern | None) -> CompiledPattern:
    if pattern is None:
        return CompiledPattern(matcher=None, param_names=(), value=None)

    if isinstance(pattern, re.Pattern):
        return CompiledPattern(matcher=pattern, param_names=(), value=pattern)

    value = escape_reaction(pattern) if kind == REACTION_KIND else pattern
    names = tuple(m.group(1) for m in NAMED_GROUP_RE.finditer(value))
    expression = NAMED_GROUP_RE.sub(r"(\2)", value)
    return CompiledPattern(
        matcher=re.compile(f"^{expression}$"),
        param_names=names,
        value=value,
    )


def command_info(pattern: Pattern | None) -> str:
    """Human-readable form of a pattern for help text.

    ``"deploy :branch([a-z]+)"`` becomes ``"deploy :branch"``.
    """
    if pattern is None:
        return ""
    if isinstance(pattern, re.Pattern):
        return f"/{pattern.pattern}/"
    return NAMED_GROUP_RE.sub(r":\1", pattern)
