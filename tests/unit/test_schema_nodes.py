"""
Unit tests for schema node domain models.

Tests the Pydantic models representing database schema elements:
- TableNode
- ColumnNode
- RelationshipNode
"""

import pytest
from pydantic import ValidationError

from nl2sql.domain.schema_nodes import TableNode, ColumnNode, RelationshipNode
from nl2sql.domain.base_enums import NodeType


class TestTableNode:
    """Test cases for TableNode class."""

    def test_create_valid_table_node(self):
        """Test creating a valid TableNode."""
        table = TableNode(table_name="Orders", schema_name="sales")

        assert table.node_type == NodeType.TABLE
        assert table.table_name == "Orders"
        assert table.schema_name == "sales"
        assert table.columns == []

    def test_default_schema_is_dbo(self):
        """Tables without an explicit schema belong to dbo."""
        table = TableNode(table_name="Orders")
        assert table.schema_name == "dbo"
        assert table.qualified_name == "dbo.Orders"

    def test_table_node_frozen_node_type(self):
        """Test that node_type is frozen and cannot be changed."""
        table = TableNode(table_name="Orders")

        with pytest.raises(ValidationError):
            table.node_type = NodeType.COLUMN

    def test_table_node_missing_required_fields(self):
        """Test TableNode validation with missing required fields."""
        with pytest.raises(ValidationError) as exc_info:
            TableNode()  # type: ignore[call-arg]

        error_fields = {error["loc"][0] for error in exc_info.value.errors()}
        assert "table_name" in error_fields

    def test_columns_keep_order(self):
        """Columns are stored in the order given."""
        table = TableNode(
            table_name="Orders",
            columns=[
                ColumnNode(column_name="OrderID", data_type="int", ordinal_position=1),
                ColumnNode(column_name="OrderDate", data_type="datetime", ordinal_position=2),
            ],
        )
        assert [c.column_name for c in table.columns] == ["OrderID", "OrderDate"]


class TestColumnNode:
    """Test cases for ColumnNode class."""

    def test_column_node_default_values(self):
        """Test ColumnNode with default boolean values."""
        column = ColumnNode(column_name="Freight", data_type="money")

        assert column.node_type == NodeType.COLUMN
        assert column.is_primary_key is False
        assert column.is_nullable is True
        assert column.max_length is None

    def test_column_node_missing_required_fields(self):
        """column_name and data_type are required."""
        with pytest.raises(ValidationError) as exc_info:
            ColumnNode()  # type: ignore[call-arg]

        error_fields = {error["loc"][0] for error in exc_info.value.errors()}
        assert {"column_name", "data_type"} <= error_fields

    def test_render_primary_key(self):
        column = ColumnNode(column_name="OrderID", data_type="int", is_primary_key=True, is_nullable=False)
        assert column.render() == "  - OrderID (int, PRIMARY KEY)"

    def test_render_not_null_with_length(self):
        column = ColumnNode(column_name="CategoryName", data_type="nvarchar", max_length=15, is_nullable=False)
        assert column.render() == "  - CategoryName (nvarchar(15), NOT NULL)"

    def test_render_max_length(self):
        """A length of -1 is SQL Server's MAX."""
        column = ColumnNode(column_name="Notes", data_type="nvarchar", max_length=-1)
        assert column.render() == "  - Notes (nvarchar(max))"

    def test_render_ignores_length_for_non_character_types(self):
        column = ColumnNode(column_name="Quantity", data_type="smallint", max_length=2)
        assert column.render() == "  - Quantity (smallint)"


class TestRelationshipNode:
    """Test cases for RelationshipNode class."""

    def test_render(self):
        relationship = RelationshipNode(
            from_table="Orders", from_column="CustomerID", to_table="Customers", to_column="CustomerID"
        )
        assert relationship.node_type == NodeType.RELATIONSHIP
        assert relationship.render() == "  - Orders.CustomerID -> Customers.CustomerID"

    def test_missing_fields(self):
        with pytest.raises(ValidationError):
            RelationshipNode(from_table="Orders")  # type: ignore[call-arg]
