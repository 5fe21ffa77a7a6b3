"""Wildcard name matching for blob search.

Two modes:

- terms without ``*`` or ``?`` match anywhere in the name (substring search);
- terms with wildcards must match the whole name, where ``*`` is any run of
  characters (possibly empty) and ``?`` is exactly one character.

Both modes ignore case. Callers wanting "contains" behaviour with wildcards
anchor the term themselves, e.g. ``*invoice*.pdf``.
"""
import fnmatch
import re
from dataclasses import dataclass
from typing import Optional, Pattern

WILDCARDS = frozenset("*?")


@dataclass(frozen=True)
class Matcher:
    """Compiled search term. Immutable, so one instance can serve many threads."""

    pattern: str
    needle: str
    regex: Optional[Pattern[str]] = None

    @property
    def is_wildcard(self) -> bool:
        return self.regex is not None

    def matches(self, candidate: str) -> bool:
        name = candidate.lower()
        if self.regex is None:
            return self.needle in name
        return self.regex.match(name) is not None


def _translate(pattern: str) -> str:
    # brackets are literal in blob names, not fnmatch character classes
    escaped = pattern.replace("[", "[[]")
    return fnmatch.translate(escaped)


def compile_pattern(pattern: str) -> Matcher:
    """Compile a search term. Never raises.

    If the wildcard expression cannot be compiled, the matcher falls back to
    substring search on the term with its wildcard characters removed.
    """
    folded = pattern.lower()
    if not WILDCARDS.intersection(folded):
        return Matcher(pattern=pattern, needle=folded)

    try:
        regex = re.compile(_translate(folded), re.DOTALL)
    except (re.error, RecursionError, OverflowError):
        stripped = folded.replace("*", "").replace("?", "")
        return Matcher(pattern=pattern, needle=stripped)
    return Matcher(pattern=pattern, needle=folded, regex=regex)
