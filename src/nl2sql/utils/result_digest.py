"""
Compact text digests of query results.

Digests are fed back to the model as history, so they stay short: shape,
column names and a few leading rows.
"""

from typing import List

from nl2sql.domain.responses import QueryExecutionResult
from nl2sql.utils.token_utils import truncate_value

DIGEST_CELL_CHARS = 50


def summarize_result(result: QueryExecutionResult, sample_rows: int = 3) -> str:
    """
    Render a result as a digest.

    Example:
        2 rows, 2 columns
        Columns: CategoryName, Total
        Sample data:
          Row 1: Beverages | 12
          Row 2: Produce | 5
    """
    if result.row_count == 0 or not result.rows:
        return "No rows returned."

    lines: List[str] = [
        f"{result.row_count} rows, {result.column_count} columns",
        f"Columns: {', '.join(result.column_names)}",
        "Sample data:",
    ]
    for index, row in enumerate(result.rows[:sample_rows], start=1):
        cells = " | ".join(truncate_value(value, DIGEST_CELL_CHARS) for value in row)
        lines.append(f"  Row {index}: {cells}")

    remaining = result.row_count - min(sample_rows, len(result.rows))
    if remaining > 0:
        lines.append(f"  ... and {remaining} more rows")

    return "\n".join(lines)


def summarize_statements(statements: List[str], limit: int = 2) -> str:
    """Digest of the SQL that answered a conversational question."""
    if not statements:
        return "SQL: (none)"
    return "SQL: " + "; ".join(statements[:limit])
