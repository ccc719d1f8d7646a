"""
Database client for SQL Server using pyodbc.

pyodbc is blocking, so every call runs in a worker thread via
asyncio.to_thread. Each statement gets its own connection and runs inside a
transaction that is rolled back afterwards when read-only enforcement is on.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import DatabaseConfig
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..domain.errors import (
    DatabaseConnectionError,
    DatabaseQueryError,
    NL2SQLException,
    QueryTimeoutError,
)


logger = get_module_logger()

# SQLSTATE codes raised by the ODBC driver when the query timeout fires
TIMEOUT_SQLSTATES = {"HYT00", "HYT01"}

# Extra wall time allowed beyond the driver timeout before giving up on the thread
TIMEOUT_GRACE_SECONDS = 5

ColumnNames = List[str]
Rows = List[List[Any]]


def _sqlstate(error: Exception) -> str:
    return str(error.args[0]) if error.args else ""


def classify_driver_error(error: Exception, query: str) -> NL2SQLException:
    """
    Map a pyodbc error onto the exception hierarchy.

    Timeouts become QueryTimeoutError, connection-class SQLSTATEs (08xxx,
    28000) become DatabaseConnectionError, and everything else is a
    DatabaseQueryError.
    """
    state = _sqlstate(error)
    if state in TIMEOUT_SQLSTATES:
        return QueryTimeoutError(
            f"Query timeout exceeded: {error}",
            details={"sqlstate": state, "query": query[:200]},
        )
    if state.startswith("08") or state == "28000":
        return DatabaseConnectionError(
            f"Database connection lost: {error}",
            details={"sqlstate": state},
        )
    return DatabaseQueryError(
        f"Query execution failed: {error}",
        details={"sqlstate": state, "query": query[:200]},
    )


class DatabaseClient:
    """
    Low-level SQL Server client using pyodbc.

    This is a thin infrastructure layer for database operations.
    Schema introspection lives in SchemaRepository; statement execution with
    timing lives in SQLExecutionRepository.

    Usage:
        client = DatabaseClient(config)
        await client.connect()

        columns, rows = await client.execute_query("SELECT TOP 10 * FROM Orders")
        count = await client.execute_scalar("SELECT COUNT(*) FROM Orders")

        await client.close()
    """

    def __init__(self, config: DatabaseConfig):
        """
        Initialize database client with configuration.

        Args:
            config: Database configuration
        """
        self.config = config
        self._is_connected = False
        self.database_name: Optional[str] = None

        logger.info(
            "DatabaseClient initialized",
            query_timeout_seconds=config.query_timeout_seconds,
            application_name=config.application_name,
            read_only=config.enforce_read_only_default,
        )

    def _connection_string(self) -> str:
        conn_str = self.config.connection_string.strip()
        if "app=" not in conn_str.lower():
            if not conn_str.endswith(";"):
                conn_str += ";"
            conn_str += f"APP={self.config.application_name};"
        return conn_str

    def _open_connection(self, query_timeout: Optional[int] = None) -> Any:
        """Open a pyodbc connection; runs in a worker thread."""
        import pyodbc

        try:
            conn = pyodbc.connect(
                self._connection_string(),
                timeout=self.config.connection_timeout_seconds,
                autocommit=False,
            )
        except pyodbc.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to database: {e}",
                details={"sqlstate": _sqlstate(e)},
            ) from e

        conn.timeout = query_timeout if query_timeout is not None else self.config.query_timeout_seconds
        return conn

    def _fetch_database_name(self) -> str:
        conn = self._open_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT DB_NAME()")
            row = cursor.fetchone()
            return str(row[0]) if row else ""
        finally:
            self._end_transaction(conn, "SELECT DB_NAME()", commit=False)

    async def connect(self) -> None:
        """
        Verify that the database is reachable.

        Raises:
            DatabaseConnectionError: If connection fails
        """
        if self._is_connected:
            logger.warning("Database client already connected")
            return

        trace_id = current_trace_id()
        logger.info("Establishing database connection", trace_id=trace_id)

        try:
            self.database_name = await asyncio.to_thread(self._fetch_database_name)
        except DatabaseConnectionError as e:
            logger.error(e.message, trace_id=trace_id)
            raise
        except Exception as e:
            error_msg = f"Failed to connect to database: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

        self._is_connected = True
        logger.info(
            "Database connection established successfully",
            database=self.database_name,
            trace_id=trace_id,
        )

    async def close(self) -> None:
        """Mark the client closed; connections are per statement."""
        self._is_connected = False
        logger.info("Database connection closed", trace_id=current_trace_id())

    def is_connected(self) -> bool:
        """Check if database client is connected."""
        return self._is_connected

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on database connection.

        Returns:
            Dictionary with status and connection details
        """
        if not self.is_connected():
            return {
                "status": "unhealthy",
                "connected": False,
                "error": "Database client not connected",
            }

        try:
            result = await self.execute_scalar("SELECT 1")
        except NL2SQLException as e:
            logger.error("Database health check failed", error=e.message, trace_id=current_trace_id())
            return {"status": "unhealthy", "connected": True, "error": e.message}

        return {
            "status": "healthy" if result == 1 else "unhealthy",
            "connected": True,
            "database": self.database_name,
        }

    def _end_transaction(self, conn: Any, query: str, commit: bool) -> None:
        """
        Commit or roll back, then close the connection.

        A failed commit is raised as a classified error. A failed rollback is
        only logged so it never replaces the statement's own error; the
        server discards the transaction when the session drops.
        """
        import pyodbc

        try:
            if commit:
                try:
                    conn.commit()
                except pyodbc.Error as e:
                    raise classify_driver_error(e, query) from e
            else:
                try:
                    conn.rollback()
                except pyodbc.Error as e:
                    logger.warning(
                        "Rollback failed",
                        sqlstate=_sqlstate(e),
                        error=str(e),
                        trace_id=current_trace_id(),
                    )
        finally:
            try:
                conn.close()
            except pyodbc.Error as e:
                logger.warning("Closing connection failed", sqlstate=_sqlstate(e), trace_id=current_trace_id())

    def _run(
        self,
        query: str,
        params: Optional[Sequence[Any]],
        timeout: Optional[int],
    ) -> Tuple[ColumnNames, Rows]:
        """Execute one statement on a fresh connection; runs in a worker thread."""
        import pyodbc

        conn = self._open_connection(timeout)
        try:
            cursor = conn.cursor()
            if params:
                cursor.execute(query, *params)
            else:
                cursor.execute(query)

            columns: ColumnNames = []
            rows: Rows = []
            if cursor.description is not None:
                columns = [col[0] for col in cursor.description]
                rows = [list(row) for row in cursor.fetchall()]
        except pyodbc.Error as e:
            self._end_transaction(conn, query, commit=False)
            raise classify_driver_error(e, query) from e
        except BaseException:
            self._end_transaction(conn, query, commit=False)
            raise

        self._end_transaction(conn, query, commit=not self.config.enforce_read_only_default)
        return columns, rows

    async def execute_query(
        self,
        query: str,
        params: Optional[Sequence[Any]] = None,
        timeout: Optional[int] = None,
    ) -> Tuple[ColumnNames, Rows]:
        """
        Execute a SQL statement and return column names and rows.

        Args:
            query: SQL statement
            params: Optional positional parameters for ? placeholders
            timeout: Optional query timeout in seconds

        Returns:
            (column_names, rows) with rows as lists in column order

        Raises:
            DatabaseConnectionError: If the database cannot be reached
            QueryTimeoutError: If the statement exceeds the timeout
            DatabaseQueryError: For any other execution failure
        """
        if not self.is_connected():
            raise DatabaseConnectionError("Database client is not connected")

        trace_id = current_trace_id()
        effective_timeout = timeout if timeout is not None else self.config.query_timeout_seconds

        logger.info(
            "Executing database query",
            query=query[:200],
            timeout=effective_timeout,
            trace_id=trace_id,
        )

        try:
            columns, rows = await asyncio.wait_for(
                asyncio.to_thread(self._run, query, params, effective_timeout),
                timeout=effective_timeout + TIMEOUT_GRACE_SECONDS,
            )
        except asyncio.TimeoutError as e:
            error_msg = f"Query timeout exceeded after {effective_timeout}s"
            logger.error(error_msg, query=query[:200], trace_id=trace_id)
            raise QueryTimeoutError(error_msg, details={"query": query[:200]}) from e
        except NL2SQLException as e:
            logger.error(
                e.message,
                error_code=e.error_code,
                query=query[:200],
                trace_id=trace_id,
            )
            raise
        except Exception as e:
            error_msg = f"Query execution failed: {e}"
            logger.error(
                error_msg,
                error_type=type(e).__name__,
                query=query[:200],
                trace_id=trace_id,
            )
            raise DatabaseQueryError(error_msg) from e

        logger.info("Query executed successfully", row_count=len(rows), trace_id=trace_id)
        return columns, rows

    async def execute_scalar(
        self,
        query: str,
        params: Optional[Sequence[Any]] = None,
    ) -> Any:
        """Execute a query and return the first column of the first row."""
        _, rows = await self.execute_query(query, params=params)
        if not rows:
            return None
        return rows[0][0]
