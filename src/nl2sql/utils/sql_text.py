"""
Lexical helpers for pattern-based SQL inspection.

Nothing here parses SQL. The helpers blank out string literals, comments
and (optionally) quoted identifiers while keeping every character offset
unchanged, so a regex can run on the masked text and its match positions
can be applied to the original.
"""

import re
from typing import Iterator, List, Optional, Tuple

WORD_CHARS = re.compile(r"\w")


def mask_sql(sql: str, mask_identifiers: bool = True) -> str:
    """
    Blank out literals, comments and quoted identifiers.

    String literal and comment bodies become spaces. Quoted identifier
    bodies ("x" and [x]) become underscores so they still read as one word.
    Newlines are preserved. The result has the same length as the input.

    Example:
        >>> mask_sql("SELECT 'drop' FROM [Order Details] -- x")
        "SELECT '    ' FROM [_____________]     "
    """
    out = list(sql)
    n = len(sql)
    i = 0

    def blank(start: int, end: int, fill: str) -> None:
        for k in range(start, min(end, n)):
            if out[k] != "\n":
                out[k] = fill

    while i < n:
        ch = sql[i]
        if ch == "'":
            j = i + 1
            while j < n:
                if sql[j] == "'":
                    if j + 1 < n and sql[j + 1] == "'":
                        j += 2
                        continue
                    break
                j += 1
            blank(i + 1, j, " ")
            i = j + 1
        elif sql.startswith("--", i):
            j = sql.find("\n", i)
            end = n if j == -1 else j
            blank(i, end, " ")
            i = end
        elif sql.startswith("/*", i):
            j = sql.find("*/", i + 2)
            end = n if j == -1 else j + 2
            blank(i, end, " ")
            i = end
        elif mask_identifiers and ch in ('"', "["):
            close = '"' if ch == '"' else "]"
            j = sql.find(close, i + 1)
            end = n if j == -1 else j
            blank(i + 1, end, "_")
            i = end + 1
        else:
            i += 1

    return "".join(out)


def in_comment(sql: str, pos: int) -> bool:
    """True when pos sits inside a -- line comment or an unclosed /* block."""
    line_start = sql.rfind("\n", 0, pos) + 1
    if "--" in sql[line_start:pos]:
        return True
    opened = sql.rfind("/*", 0, pos)
    if opened == -1:
        return False
    closed = sql.find("*/", opened + 2)
    return closed == -1 or closed >= pos


def paren_depth_at(masked: str, pos: int) -> int:
    """Parenthesis nesting depth at offset pos of masked text."""
    depth = 0
    for ch in masked[:pos]:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
    return depth


def paren_balance(masked: str) -> Tuple[int, int]:
    return masked.count("("), masked.count(")")


def enclosing_open_paren(masked: str, pos: int) -> Optional[int]:
    """Offset of the unmatched "(" enclosing pos, or None at top level."""
    depth = 0
    for k in range(pos - 1, -1, -1):
        ch = masked[k]
        if ch == ")":
            depth += 1
        elif ch == "(":
            if depth == 0:
                return k
            depth -= 1
    return None


def matching_close_paren(masked: str, open_pos: int) -> int:
    """Offset of the ")" closing the "(" at open_pos, or len(masked) when unclosed."""
    depth = 0
    for k in range(open_pos, len(masked)):
        ch = masked[k]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return k
    return len(masked)


def keyword_pattern(*words: str) -> "re.Pattern[str]":
    """Case-insensitive pattern matching any of words as standalone tokens."""
    alternatives = "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in words)
    return re.compile(rf"(?<![\w@#$])(?:{alternatives})(?![\w$#])", re.IGNORECASE)


def find_keywords(masked: str, *words: str) -> List[re.Match]:
    return list(keyword_pattern(*words).finditer(masked))


def has_keyword(masked: str, *words: str) -> bool:
    return keyword_pattern(*words).search(masked) is not None


def top_level_keywords(masked: str, *words: str) -> Iterator[re.Match]:
    """Keyword matches at parenthesis depth zero."""
    for match in keyword_pattern(*words).finditer(masked):
        if paren_depth_at(masked, match.start()) == 0:
            yield match


def collapse_whitespace(sql: str) -> str:
    return " ".join(sql.split())


def splice(text: str, edits: List[Tuple[int, int, str]]) -> str:
    """Apply non-overlapping (start, end, replacement) edits to text."""
    result = text
    for start, end, replacement in sorted(edits, key=lambda e: e[0], reverse=True):
        result = result[:start] + replacement + result[end:]
    return result
