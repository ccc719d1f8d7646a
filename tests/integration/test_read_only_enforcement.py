"""
Integration tests for read-only enforcement at database connection level.

Every statement runs inside a transaction that DatabaseClient rolls back, so
even a statement that slipped past validation leaves no trace.

Usage:
    pytest tests/integration/test_read_only_enforcement.py -m integration -v

Requirements:
    - DATABASE__CONNECTION_STRING must be set
    - DATABASE__ENFORCE_READ_ONLY_DEFAULT=true (default)
    - The login needs CREATE TABLE permission for the rollback check
"""

import pytest

from nl2sql.config import get_settings
from nl2sql.infrastructure.database_client import DatabaseClient

SCRATCH_TABLE = "dbo.nl2sql_read_only_scratch"


@pytest.fixture
def database_config():
    """Get database configuration from settings."""
    settings = get_settings()
    return settings.database


@pytest.fixture
async def db_client(database_config):
    """Create and connect database client."""
    client = DatabaseClient(database_config)
    await client.connect()
    yield client
    if client.is_connected():
        await client.close()


@pytest.mark.integration
class TestReadOnlyEnforcement:
    """Test read-only enforcement at connection level."""

    async def test_read_operations_work(self, db_client):
        """Read operations work with read-only enforcement on."""
        assert db_client.config.enforce_read_only_default is True
        assert await db_client.execute_scalar("SELECT COUNT(*) FROM INFORMATION_SCHEMA.TABLES") >= 0

    async def test_writes_are_rolled_back(self, db_client):
        """DDL issued straight through the client does not survive the statement."""
        await db_client.execute_query(f"CREATE TABLE {SCRATCH_TABLE} (id INT)")

        remaining = await db_client.execute_scalar(f"SELECT OBJECT_ID('{SCRATCH_TABLE}')")
        assert remaining is None
