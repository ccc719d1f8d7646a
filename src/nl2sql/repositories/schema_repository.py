"""
Schema Repository for extracting SQL Server schema information.

Fetches table, column, primary key and foreign key metadata from
INFORMATION_SCHEMA and the sys catalog views through DatabaseClient.

All methods return domain models from schema_nodes.py.
"""

from collections import OrderedDict
from typing import Any, List, Optional, Tuple

from ..infrastructure.database_client import DatabaseClient
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..domain.errors import DatabaseConnectionError, DatabaseQueryError, NL2SQLException
from ..domain.schema_nodes import (
    TableNode,
    ColumnNode,
    RelationshipNode
)


logger = get_module_logger()


COLUMNS_QUERY = """
    SELECT
        t.TABLE_SCHEMA,
        t.TABLE_NAME,
        c.COLUMN_NAME,
        c.DATA_TYPE,
        c.CHARACTER_MAXIMUM_LENGTH,
        c.IS_NULLABLE,
        c.ORDINAL_POSITION,
        CASE WHEN pk.COLUMN_NAME IS NOT NULL THEN 1 ELSE 0 END AS IS_PRIMARY_KEY
    FROM INFORMATION_SCHEMA.TABLES t
    INNER JOIN INFORMATION_SCHEMA.COLUMNS c
        ON c.TABLE_SCHEMA = t.TABLE_SCHEMA AND c.TABLE_NAME = t.TABLE_NAME
    LEFT JOIN (
        SELECT ku.TABLE_SCHEMA, ku.TABLE_NAME, ku.COLUMN_NAME
        FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
        INNER JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE ku
            ON tc.CONSTRAINT_NAME = ku.CONSTRAINT_NAME
            AND tc.TABLE_SCHEMA = ku.TABLE_SCHEMA
        WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
    ) pk
        ON pk.TABLE_SCHEMA = c.TABLE_SCHEMA
        AND pk.TABLE_NAME = c.TABLE_NAME
        AND pk.COLUMN_NAME = c.COLUMN_NAME
    WHERE t.TABLE_TYPE = 'BASE TABLE'
"""

COLUMNS_ORDER_BY = " ORDER BY t.TABLE_SCHEMA, t.TABLE_NAME, c.ORDINAL_POSITION"

RELATIONSHIPS_QUERY = """
    SELECT
        tp.name AS parent_table,
        cp.name AS parent_column,
        tr.name AS referenced_table,
        cr.name AS referenced_column
    FROM sys.foreign_keys fk
    INNER JOIN sys.foreign_key_columns fkc ON fkc.constraint_object_id = fk.object_id
    INNER JOIN sys.tables tp ON fkc.parent_object_id = tp.object_id
    INNER JOIN sys.columns cp
        ON fkc.parent_object_id = cp.object_id AND fkc.parent_column_id = cp.column_id
    INNER JOIN sys.tables tr ON fkc.referenced_object_id = tr.object_id
    INNER JOIN sys.columns cr
        ON fkc.referenced_object_id = cr.object_id AND fkc.referenced_column_id = cr.column_id
"""

RELATIONSHIPS_FILTER = " WHERE SCHEMA_NAME(tp.schema_id) = ?"
RELATIONSHIPS_ORDER_BY = " ORDER BY tp.name, cp.name"


class SchemaRepository:
    """
    Repository for schema metadata operations.

    Usage:
        db_client = DatabaseClient(config)
        await db_client.connect()

        schema_repo = SchemaRepository(db_client)
        tables = await schema_repo.get_tables()
        relationships = await schema_repo.get_relationships()
    """

    def __init__(self, db_client: DatabaseClient, schema_filter: Optional[str] = None):
        """
        Initialize schema repository.

        Args:
            db_client: DatabaseClient instance for database operations
            schema_filter: Optional schema name to restrict introspection to
        """
        self.db_client = db_client
        self.schema_filter = schema_filter
        logger.info("SchemaRepository initialized", schema_filter=schema_filter)

    def _with_filter(self, base: str, filter_clause: str, order_by: str) -> Tuple[str, List[Any]]:
        if self.schema_filter:
            return base + filter_clause + order_by, [self.schema_filter]
        return base + order_by, []

    async def get_tables(self) -> List[TableNode]:
        """
        Fetch every base table with its columns.

        Returns:
            Tables sorted by schema then name, columns in ordinal order

        Raises:
            DatabaseConnectionError: If the database is unreachable
            DatabaseQueryError: If the metadata query fails
        """
        trace_id = current_trace_id()
        logger.info("Fetching tables and columns", trace_id=trace_id)

        query, params = self._with_filter(COLUMNS_QUERY, " AND t.TABLE_SCHEMA = ?", COLUMNS_ORDER_BY)

        try:
            _, rows = await self.db_client.execute_query(query, params=params or None)
        except DatabaseConnectionError:
            raise
        except NL2SQLException as e:
            error_msg = f"Failed to fetch table metadata: {e.message}"
            logger.error(error_msg, trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        tables: "OrderedDict[Tuple[str, str], TableNode]" = OrderedDict()
        for schema_name, table_name, column_name, data_type, max_length, is_nullable, ordinal, is_pk in rows:
            key = (schema_name, table_name)
            if key not in tables:
                tables[key] = TableNode(table_name=table_name, schema_name=schema_name)
            tables[key].columns.append(
                ColumnNode(
                    column_name=column_name,
                    data_type=data_type,
                    max_length=max_length,
                    ordinal_position=ordinal or 0,
                    is_nullable=str(is_nullable).upper() == "YES",
                    is_primary_key=bool(is_pk),
                )
            )

        result = sorted(tables.values(), key=lambda t: (t.schema_name.lower(), t.table_name.lower()))
        logger.info("Tables fetched", table_count=len(result), column_count=len(rows), trace_id=trace_id)
        return result

    async def get_relationships(self) -> List[RelationshipNode]:
        """
        Fetch foreign key relationships.

        Raises:
            DatabaseConnectionError: If the database is unreachable
            DatabaseQueryError: If the metadata query fails
        """
        trace_id = current_trace_id()
        logger.info("Fetching relationships", trace_id=trace_id)

        query, params = self._with_filter(RELATIONSHIPS_QUERY, RELATIONSHIPS_FILTER, RELATIONSHIPS_ORDER_BY)

        try:
            _, rows = await self.db_client.execute_query(query, params=params or None)
        except DatabaseConnectionError:
            raise
        except NL2SQLException as e:
            error_msg = f"Failed to fetch relationships: {e.message}"
            logger.error(error_msg, trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        relationships = [
            RelationshipNode(
                from_table=parent_table,
                from_column=parent_column,
                to_table=referenced_table,
                to_column=referenced_column,
            )
            for parent_table, parent_column, referenced_table, referenced_column in rows
        ]

        logger.info("Relationships fetched", relationship_count=len(relationships), trace_id=trace_id)
        return relationships
