"""
Dialect Normalization Repository.

Rewrites common non-T-SQL constructs that models emit into their SQL Server
equivalents. Rewrites run in a fixed order because later ones depend on
earlier output (an INTERVAL operand may be a freshly produced GETDATE()):

1. CURRENT_DATE, CURRENT_TIMESTAMP, LOCALTIMESTAMP, NOW()  ->  GETDATE()
2. <operand> +/- INTERVAL 'n' UNIT                         ->  DATEADD(UNIT, +/-n, <operand>)
3. NULLS FIRST / NULLS LAST                                ->  removed
4. ILIKE -> LIKE, EXTRACT(unit FROM x) -> DATEPART(unit, x)
5. LIMIT n [OFFSET m] and misplaced trailing TOP n         ->  TOP n after the owning SELECT,
                                                               or OFFSET/FETCH when paging

Every rewrite ignores text inside string literals and comments. Anything
not recognised passes through unchanged.
"""

import re
from typing import Optional

from nl2sql.utils.logging import get_module_logger
from nl2sql.utils.sql_text import (
    enclosing_open_paren,
    mask_sql,
    matching_close_paren,
    paren_depth_at,
    splice,
)

logger = get_module_logger()

NOW_TOKENS = re.compile(
    r"(?<![\w@#$.])(?:(?:CURRENT_DATE|CURRENT_TIMESTAMP|LOCALTIMESTAMP)(?:\s*\(\s*\))?(?![\w$#(])|NOW\s*\(\s*\))",
    re.IGNORECASE,
)

UNIT_WORDS = r"(?:YEARS?|QUARTERS?|MONTHS?|WEEKS?|DAYS?|HOURS?|MINUTES?|SECONDS?)"
INTERVAL_EXPR = re.compile(
    rf"(?P<sign>[+-])\s*INTERVAL\s*"
    rf"(?:'\s*(?P<qn>\d+)\s*(?P<qunit>{UNIT_WORDS})?\s*'(?:\s*(?P<unit1>{UNIT_WORDS})(?!\w))?"
    rf"|(?P<n>\d+)\s*(?P<unit2>{UNIT_WORDS})(?!\w))",
    re.IGNORECASE,
)

NULLS_ORDERING = re.compile(r"\s+NULLS\s+(?:FIRST|LAST)(?![\w$#])", re.IGNORECASE)
ILIKE = re.compile(r"(?<![\w@#$])ILIKE(?![\w$#])", re.IGNORECASE)
EXTRACT_CALL = re.compile(r"(?<![\w@#$.])EXTRACT\s*\(", re.IGNORECASE)
EXTRACT_BODY = re.compile(r"^\s*(?P<unit>[A-Za-z]+)\s+FROM\s+(?P<expr>.+?)\s*$", re.IGNORECASE | re.DOTALL)

LIMIT_CLAUSE = re.compile(
    r"(?<![\w@#$])LIMIT\s+(?P<n>\d+)(?:\s*,\s*(?P<n2>\d+)|\s+OFFSET\s+(?P<offset>\d+))?(?![\w$#])",
    re.IGNORECASE,
)
TOP_CLAUSE = re.compile(r"(?<![\w@#$])TOP\s*\(?\s*(?P<n>\d+)\s*\)?", re.IGNORECASE)
SELECT_HEAD = re.compile(r"(?<![\w@#$])SELECT(?:\s+(?:DISTINCT|ALL)(?![\w$#]))?", re.IGNORECASE)
HAS_TOP = re.compile(r"^\s*TOP(?![\w$#])", re.IGNORECASE)

EXTRACT_UNITS = {
    "year": "YEAR", "quarter": "QUARTER", "month": "MONTH", "week": "WEEK",
    "day": "DAY", "hour": "HOUR", "minute": "MINUTE", "second": "SECOND",
    "dow": "WEEKDAY", "doy": "DAYOFYEAR",
}

# Words that end an expression rather than being one
NON_OPERAND_WORDS = {
    "select", "where", "and", "or", "on", "by", "then", "else", "when",
    "as", "between", "not", "in", "is", "having", "return", "case",
}


def _singular_unit(unit: str) -> str:
    unit = unit.upper()
    return unit[:-1] if unit.endswith("S") else unit


def _operand_start(text: str, masked: str, sign_pos: int) -> Optional[int]:
    """Start offset of the expression immediately before sign_pos, or None."""
    i = sign_pos - 1
    while i >= 0 and text[i].isspace():
        i -= 1
    if i < 0:
        return None

    if masked[i] == ")":
        depth = 0
        while i >= 0:
            if masked[i] == ")":
                depth += 1
            elif masked[i] == "(":
                depth -= 1
                if depth == 0:
                    break
            i -= 1
        if i < 0:
            return None
        k = i - 1
        while k >= 0 and (text[k].isalnum() or text[k] in "_.[]@#$"):
            k -= 1
        return k + 1

    if text[i] == "'":
        opening = text.rfind("'", 0, i)
        return opening if opening != -1 else None

    if text[i].isalnum() or text[i] in "_]\"":
        k = i
        while k >= 0 and (text[k].isalnum() or text[k] in "_.[]@#$\""):
            k -= 1
        word = text[k + 1:i + 1]
        if word.lower() in NON_OPERAND_WORDS:
            return None
        return k + 1

    return None


class DialectNormalizer:
    """Deterministic, order-sensitive rewrites toward T-SQL."""

    def normalize(self, sql: str) -> str:
        """
        Apply every rewrite in order.

        Args:
            sql: Validated statement

        Returns:
            T-SQL text; unchanged when nothing applies
        """
        result = self._replace_now(sql)
        result = self._rewrite_intervals(result)
        result = self._remove_nulls_ordering(result)
        result = self._rewrite_ilike(result)
        result = self._rewrite_extract(result)
        result = self._rewrite_limits(result)

        if result != sql:
            logger.debug("SQL normalized", original=sql[:200], normalized=result[:200])
        return result

    @staticmethod
    def _outside_literals(pattern: "re.Pattern[str]", sql: str):
        masked = mask_sql(sql)
        return [m for m in pattern.finditer(sql) if masked[m.start()] == sql[m.start()]]

    def _replace_now(self, sql: str) -> str:
        edits = [(m.start(), m.end(), "GETDATE()") for m in self._outside_literals(NOW_TOKENS, sql)]
        return splice(sql, edits)

    def _rewrite_intervals(self, sql: str) -> str:
        result = sql
        search_from = 0
        while True:
            masked = mask_sql(result)
            match = next(
                (m for m in INTERVAL_EXPR.finditer(result, search_from) if masked[m.start()] == result[m.start()]),
                None,
            )
            if match is None:
                return result

            unit = match.group("qunit") or match.group("unit1") or match.group("unit2")
            amount = match.group("qn") or match.group("n")
            operand_start = _operand_start(result, masked, match.start("sign"))
            if unit is None or operand_start is None:
                search_from = match.end()
                continue

            operand = result[operand_start:match.start("sign")].rstrip()
            signed = f"-{amount}" if match.group("sign") == "-" else amount
            replacement = f"DATEADD({_singular_unit(unit)}, {signed}, {operand})"
            result = result[:operand_start] + replacement + result[match.end():]
            search_from = operand_start + len(replacement)

    def _remove_nulls_ordering(self, sql: str) -> str:
        edits = [(m.start(), m.end(), "") for m in self._outside_literals(NULLS_ORDERING, sql)]
        return splice(sql, edits)

    def _rewrite_ilike(self, sql: str) -> str:
        edits = [(m.start(), m.end(), "LIKE") for m in self._outside_literals(ILIKE, sql)]
        return splice(sql, edits)

    def _rewrite_extract(self, sql: str) -> str:
        result = sql
        search_from = 0
        while True:
            masked = mask_sql(result)
            match = next(
                (m for m in EXTRACT_CALL.finditer(result, search_from) if masked[m.start()] == result[m.start()]),
                None,
            )
            if match is None:
                return result

            open_paren = match.end() - 1
            close_paren = matching_close_paren(masked, open_paren)
            body = EXTRACT_BODY.match(result[open_paren + 1:close_paren])
            unit = EXTRACT_UNITS.get(body.group("unit").lower()) if body else None
            if body is None or unit is None or close_paren >= len(result):
                search_from = match.end()
                continue

            replacement = f"DATEPART({unit}, {body.group('expr')})"
            result = result[:match.start()] + replacement + result[close_paren + 1:]
            search_from = match.start() + len("DATEPART(")

    # -------------------------------------------------------------------------
    # Row limiting
    # -------------------------------------------------------------------------

    @staticmethod
    def _owning_select(masked: str, pos: int) -> Optional["re.Match[str]"]:
        """Nearest SELECT before pos in the same parenthesis group."""
        group = enclosing_open_paren(masked, pos)
        depth = paren_depth_at(masked, pos)
        owner = None
        for select in SELECT_HEAD.finditer(masked, 0, pos):
            if paren_depth_at(masked, select.start()) == depth and enclosing_open_paren(masked, select.start()) == group:
                owner = select
        return owner

    def _misplaced_top(self, masked: str) -> Optional["re.Match[str]"]:
        """A TOP clause that does not directly follow SELECT [DISTINCT]."""
        for match in TOP_CLAUSE.finditer(masked):
            preceding = masked[:match.start()].rstrip()
            last_word = re.search(r"(\w+)$", preceding)
            if last_word is None or last_word.group(1).lower() not in ("select", "distinct", "all"):
                return match
        return None

    def _rewrite_limits(self, sql: str) -> str:
        result = sql
        while True:
            masked = mask_sql(result)
            clause = LIMIT_CLAUSE.search(masked) or self._misplaced_top(masked)
            if clause is None:
                return result if result == sql else result.rstrip()

            count = clause.group("n")
            offset = None
            if "n2" in clause.re.groupindex and clause.group("n2"):
                offset, count = clause.group("n"), clause.group("n2")
            elif "offset" in clause.re.groupindex and clause.group("offset"):
                offset = clause.group("offset")

            removal_start = clause.start()
            while removal_start > 0 and result[removal_start - 1].isspace():
                removal_start -= 1

            owner = self._owning_select(masked, clause.start())

            if offset is not None:
                depth = paren_depth_at(masked, clause.start())
                body_start = owner.end() if owner else 0
                order_by = "" if self._has_order_by_at_depth(masked, body_start, clause.start(), depth) else " ORDER BY (SELECT NULL)"
                replacement = f"{order_by} OFFSET {offset} ROWS FETCH NEXT {count} ROWS ONLY"
                result = result[:removal_start] + replacement + result[clause.end():]
                continue

            edits = [(removal_start, clause.end(), "")]
            if owner is not None and not HAS_TOP.match(masked[owner.end():]):
                edits.append((owner.end(), owner.end(), f" TOP {count}"))
            result = splice(result, edits)

    @staticmethod
    def _has_order_by_at_depth(masked: str, start: int, end: int, depth: int) -> bool:
        pattern = re.compile(r"(?<![\w@#$])ORDER\s+BY(?![\w$#])", re.IGNORECASE)
        return any(paren_depth_at(masked, m.start()) == depth for m in pattern.finditer(masked, start, end))
