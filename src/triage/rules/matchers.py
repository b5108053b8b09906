"""Pattern matching for rule conditions.

A pattern is either a delimited regular expression with flags, '/body/flags',
or any other string, which is itself used as a regular expression. A pattern
list matches only when every pattern is found in the text (AND semantics);
an empty list always matches.

The same functions are used for body text and for author associations, so
an author filter like '/^(OWNER|MEMBER)$/' selects several associations.
"""

from __future__ import annotations

import functools
import re

# Delimited form: '/body/flags'
DELIMITED_PATTERN = re.compile(r"^/(.+)/(.*)\Z")

FLAG_MAP: dict[str, re.RegexFlag] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    # Global and unicode flags change nothing for a single search on str.
    "g": re.NOFLAG,
    "u": re.NOFLAG,
}


class PatternError(ValueError):
    """Raised when a rule pattern cannot be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        super().__init__(f"invalid pattern `{pattern}`: {reason}")


def _flags(pattern: str, flags: str) -> re.RegexFlag:
    result = re.NOFLAG
    for flag in flags:
        if flag not in FLAG_MAP:
            raise PatternError(pattern, f"unsupported flag '{flag}'")
        result |= FLAG_MAP[flag]
    return result


@functools.lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a rule pattern.

    Args:
        pattern: '/body/flags' or a bare regular expression.

    Returns:
        Compiled regular expression.

    Raises:
        PatternError: If the expression or its flags are invalid.

    Example:
        >>> bool(compile_pattern("/foo/i").search("FOO bar"))
        True
    """
    delimited = DELIMITED_PATTERN.match(pattern)
    if delimited:
        body, flags = delimited.group(1), delimited.group(2)
        compile_flags = _flags(pattern, flags)
    else:
        body, compile_flags = pattern, re.NOFLAG

    try:
        return re.compile(body, compile_flags)
    except re.error as e:
        raise PatternError(pattern, str(e)) from e


def explain_match(text: str, patterns: tuple[str, ...] | list[str]) -> tuple[bool, str]:
    """Check a pattern list against text.

    Stops at the first pattern that does not match.

    Args:
        text: Text to search.
        patterns: Patterns that must all be found.

    Returns:
        Tuple of (matched, reason).
    """
    if not patterns:
        return True, "No patterns specified (matches all)"

    for pattern in patterns:
        if compile_pattern(pattern).search(text) is None:
            return False, f"Pattern '{pattern}' not found"

    return True, f"All {len(patterns)} pattern(s) matched"


def match_all(text: str, patterns: tuple[str, ...] | list[str]) -> bool:
    """Return True if every pattern is found in text."""
    matched, _ = explain_match(text, patterns)
    return matched
