"""
Safety Limits Repository.

Bounds result size for unfiltered queries and flags statements that are
likely to be slow. Cost flags are advisory only and never block execution.
"""

import re
from typing import List

from nl2sql.utils.logging import get_module_logger
from nl2sql.utils.sql_text import find_keywords, has_keyword, mask_sql, top_level_keywords

logger = get_module_logger()

FETCH_LIMIT = re.compile(r"(?<![\w@#$])FETCH\s+(?:NEXT|FIRST)(?![\w$#])", re.IGNORECASE)
SELECT_HEAD = re.compile(r"SELECT(?:\s+(?:DISTINCT|ALL)(?![\w$#]))?", re.IGNORECASE)
WILDCARD_PROJECTION = re.compile(
    r"(?<![\w@#$])SELECT\s+(?:(?:ALL|DISTINCT)\s+)?(?:TOP\s*\(?\s*\d+\s*\)?\s*(?:PERCENT\s+)?)?(?:[\w\]\[]+\s*\.\s*)?\*",
    re.IGNORECASE,
)


class SafetyLimiter:
    """Row caps and cost advisories."""

    def __init__(self, default_row_cap: int = 1000):
        self.default_row_cap = default_row_cap

    @staticmethod
    def has_row_limit(masked: str) -> bool:
        return has_keyword(masked, "top", "limit") or FETCH_LIMIT.search(masked) is not None

    def apply_limits(self, sql: str) -> str:
        """
        Insert TOP <cap> when the statement has neither a WHERE nor a row limit.

        Returns:
            Limited statement, or the input unchanged
        """
        masked = mask_sql(sql)
        if has_keyword(masked, "where") or self.has_row_limit(masked):
            return sql

        select = next(top_level_keywords(masked, "select"), None)
        if select is None:
            return sql

        head = SELECT_HEAD.match(masked, select.start())
        insert_at = head.end() if head else select.end()
        limited = f"{sql[:insert_at]} TOP {self.default_row_cap}{sql[insert_at:]}"

        logger.info("Row cap applied", row_cap=self.default_row_cap)
        return limited

    def expense_reasons(self, sql: str) -> List[str]:
        """Human-readable reasons the statement may be expensive."""
        masked = mask_sql(sql)
        filtered = has_keyword(masked, "where")
        reasons: List[str] = []

        if not filtered and WILDCARD_PROJECTION.search(masked):
            reasons.append("Selects all columns (SELECT *) without a WHERE clause")

        if has_keyword(masked, "cross join"):
            reasons.append("Uses CROSS JOIN, which multiplies row counts")

        join_count = len(find_keywords(masked, "join"))
        if join_count >= 2 and not filtered:
            reasons.append(f"Joins {join_count + 1} tables without a WHERE clause")

        return reasons

    def is_expensive(self, sql: str) -> bool:
        return bool(self.expense_reasons(sql))
