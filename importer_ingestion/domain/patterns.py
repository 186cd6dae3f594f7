"""Field ``pattern`` parsing: bare regexes and PHP-style delimited forms.

A pattern written as ``<d>body<d>flags`` is delimited when ``<d>`` is one of
``DELIMITERS`` and ``flags`` only holds ``imsxu``; anything else compiles as
a bare regular expression. Bracket-style delimiters are not recognised, so
``[abc]`` keeps its character-class meaning.
"""

from __future__ import annotations

import re
from functools import lru_cache

DELIMITERS = frozenset("/#~!@%;,")
_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE, "u": 0}


def split_delimited(pattern: str) -> tuple[str, int] | None:
    """``(body, flags)`` for a delimited pattern, ``None`` for a bare one."""
    if len(pattern) < 2 or pattern[0] not in DELIMITERS:
        return None
    end = pattern.rfind(pattern[0])
    if end == 0:
        return None
    suffix = pattern[end + 1:]
    if any(ch not in _FLAGS for ch in suffix):
        return None
    flags = 0
    for ch in suffix:
        flags |= _FLAGS[ch]
    return pattern[1:end], flags


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a field pattern. Raises ``re.error`` when it is malformed."""
    delimited = split_delimited(pattern)
    if delimited is None:
        return re.compile(pattern)
    body, flags = delimited
    return re.compile(body, flags)
