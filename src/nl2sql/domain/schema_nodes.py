from pydantic import BaseModel, Field
from .base_enums import NodeType
from typing import Optional
from abc import ABC


class BaseSchemaNode(BaseModel, ABC):
    """Base class for schema nodes."""

    node_type: NodeType = Field(..., description="Type of the schema node")


class ColumnNode(BaseSchemaNode):
    """Represents a database column schema node."""

    node_type : NodeType = Field(default=NodeType.COLUMN, frozen=True, description="Should be 'column'")
    column_name : str = Field(..., description="Name of the column")
    data_type : str = Field(..., description="Data type of the column")
    max_length : Optional[int] = Field(default=None, description="Character length for char/varchar types; -1 means MAX")
    ordinal_position : int = Field(default=0, description="Position of the column in its table")

    is_primary_key : bool = Field(default=False, description="Indicates if the column is a primary key")
    is_nullable : bool = Field(default=True, description="Indicates if the column can contain null values")

    def render(self) -> str:
        """Render the column as one schema-description line."""
        type_text = self.data_type
        if self.data_type.lower() in ("varchar", "nvarchar", "char", "nchar") and self.max_length is not None:
            type_text += "(max)" if self.max_length == -1 else f"({self.max_length})"

        if self.is_primary_key:
            type_text += ", PRIMARY KEY"
        elif not self.is_nullable:
            type_text += ", NOT NULL"

        return f"  - {self.column_name} ({type_text})"


class TableNode(BaseSchemaNode):
    """Represents a database table schema node."""

    node_type : NodeType = Field(default=NodeType.TABLE, frozen=True, description="should be 'table'")
    table_name : str = Field(..., description="Name of the table")
    schema_name : str = Field(default="dbo", description="Schema to which the table belongs")
    columns : list[ColumnNode] = Field(default_factory=list, description="Columns in ordinal order")

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}"


class RelationshipNode(BaseSchemaNode):
    """Represents a foreign key between two tables."""

    node_type : NodeType = Field(default=NodeType.RELATIONSHIP, frozen=True, description="Should be 'relationship'")
    from_table : str = Field(..., description="Table holding the foreign key")
    from_column : str = Field(..., description="Foreign key column")
    to_table : str = Field(..., description="Referenced table")
    to_column : str = Field(..., description="Referenced column")

    def render(self) -> str:
        return f"  - {self.from_table}.{self.from_column} -> {self.to_table}.{self.to_column}"
