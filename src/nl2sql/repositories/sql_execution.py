"""
SQL Execution Repository.

Runs prepared statements against SQL Server.

Safety Features:
- Read-only enforcement: every statement runs inside a transaction that is rolled back
- Timeout protection: driver query timeout plus an event-loop backstop (default 30s)

Only statements that passed SQLValidationRepository, normalization and row
limiting should reach this repository; the service layer guarantees that.

Usage:
    repo = SQLExecutionRepository(db_client)
    result = await repo.execute("SELECT TOP 10 * FROM dbo.Orders", timeout_seconds=30)
    print(f"Returned {result.row_count} rows in {result.execution_time_ms}ms")

Error Handling:
- DatabaseConnectionError, DatabaseQueryError and QueryTimeoutError propagate
  to the service layer unchanged
"""

from datetime import datetime, timezone
from typing import Optional

from nl2sql.domain.responses import QueryExecutionResult
from nl2sql.infrastructure.database_client import DatabaseClient
from nl2sql.utils.logging import get_module_logger
from nl2sql.utils.tracing import current_trace_id

logger = get_module_logger()


class SQLExecutionRepository:
    """
    Repository for SQL execution.

    Executes prepared SQL with read-only enforcement.
    """

    def __init__(self, db_client: DatabaseClient):
        self.db_client = db_client

    async def execute(self, sql: str, timeout_seconds: Optional[int] = None) -> QueryExecutionResult:
        """
        Execute a prepared SQL statement.

        Args:
            sql: Validated, normalized and limited SQL
            timeout_seconds: Query timeout; client default when None

        Returns:
            QueryExecutionResult with rows and metadata
        """
        trace_id = current_trace_id()

        logger.info(
            "Executing SQL query",
            sql_length=len(sql),
            timeout=timeout_seconds,
            trace_id=trace_id,
        )

        start_time = datetime.now(timezone.utc)
        column_names, rows = await self.db_client.execute_query(sql, timeout=timeout_seconds)
        execution_time_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

        result = QueryExecutionResult(
            column_names=column_names,
            rows=rows,
            row_count=len(rows),
            execution_time_ms=execution_time_ms,
        )

        logger.info(
            "SQL execution successful",
            row_count=result.row_count,
            execution_time_ms=round(execution_time_ms, 2),
            trace_id=trace_id,
        )

        return result
