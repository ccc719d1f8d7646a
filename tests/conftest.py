"""
Shared fixtures for unit tests.

Provides a small Northwind-style schema, a scripted model backend and an
in-memory executor so the pipeline can run without SQL Server or a model.
"""

import os

os.environ.setdefault(
    "DATABASE__CONNECTION_STRING",
    "DRIVER={ODBC Driver 18 for SQL Server};SERVER=localhost;DATABASE=Shop;Trusted_Connection=yes",
)

from typing import List, Optional, Sequence, Union

import pytest

from nl2sql.config import LLMConfig, NL2SQLConfig, get_settings
from nl2sql.domain.errors import NL2SQLException
from nl2sql.domain.responses import QueryExecutionResult
from nl2sql.domain.schema_nodes import ColumnNode, RelationshipNode, TableNode
from nl2sql.domain.session import QuerySession
from nl2sql.infrastructure.llm_client import LLMBackend
from nl2sql.services.nl2sql_service import NL2SQLService
from nl2sql.services.schema_catalog import SchemaCatalog


def make_table(name: str, *columns: ColumnNode, schema_name: str = "dbo") -> TableNode:
    return TableNode(table_name=name, schema_name=schema_name, columns=list(columns))


def col(name: str, data_type: str = "int", **kwargs) -> ColumnNode:
    return ColumnNode(column_name=name, data_type=data_type, **kwargs)


SAMPLE_TABLES = [
    make_table(
        "Categories",
        col("CategoryID", is_primary_key=True, is_nullable=False, ordinal_position=1),
        col("CategoryName", "nvarchar", max_length=15, is_nullable=False, ordinal_position=2),
        col("dropdown_id", ordinal_position=3),
    ),
    make_table(
        "Customers",
        col("CustomerID", "nchar", max_length=5, is_primary_key=True, is_nullable=False, ordinal_position=1),
        col("CompanyName", "nvarchar", max_length=40, is_nullable=False, ordinal_position=2),
        col("Notes", "nvarchar", max_length=-1, ordinal_position=3),
    ),
    make_table(
        "OrderDetails",
        col("OrderID", is_nullable=False, ordinal_position=1),
        col("ProductID", is_nullable=False, ordinal_position=2),
        col("Quantity", "smallint", is_nullable=False, ordinal_position=3),
        col("UnitPrice", "money", is_nullable=False, ordinal_position=4),
    ),
    make_table(
        "Orders",
        col("OrderID", is_primary_key=True, is_nullable=False, ordinal_position=1),
        col("CustomerID", "nchar", max_length=5, ordinal_position=2),
        col("OrderDate", "datetime", ordinal_position=3),
        col("Freight", "money", ordinal_position=4),
    ),
    make_table(
        "Products",
        col("ProductID", is_primary_key=True, is_nullable=False, ordinal_position=1),
        col("ProductName", "nvarchar", max_length=40, is_nullable=False, ordinal_position=2),
        col("CategoryID", ordinal_position=3),
        col("UnitPrice", "money", ordinal_position=4),
        col("UnitsInStock", "smallint", ordinal_position=5),
    ),
]

SAMPLE_RELATIONSHIPS = [
    RelationshipNode(from_table="OrderDetails", from_column="OrderID", to_table="Orders", to_column="OrderID"),
    RelationshipNode(from_table="OrderDetails", from_column="ProductID", to_table="Products", to_column="ProductID"),
    RelationshipNode(from_table="Orders", from_column="CustomerID", to_table="Customers", to_column="CustomerID"),
    RelationshipNode(from_table="Products", from_column="CategoryID", to_table="Categories", to_column="CategoryID"),
]


class ScriptedLLM(LLMBackend):
    """Model backend that replays canned responses and records prompts."""

    def __init__(self, responses: Union[str, Sequence[str]] = ()):
        super().__init__(LLMConfig())
        self.responses: List[str] = [responses] if isinstance(responses, str) else list(responses)
        self.prompts: List[str] = []
        self.max_tokens: List[Optional[int]] = []
        self.resets = 0
        self._is_connected = True

    @property
    def active_model_name(self) -> str:
        return "scripted"

    async def connect(self) -> None:
        self._is_connected = True

    async def generate(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0] if self.responses else ""

    def reset_context(self) -> None:
        self.resets += 1


class FakeExecutionRepository:
    """Executor that records statements and returns or raises scripted results."""

    def __init__(self, outcomes: Sequence[Union[QueryExecutionResult, NL2SQLException]] = ()):
        self.outcomes = list(outcomes)
        self.executed: List[str] = []
        self.timeouts: List[Optional[int]] = []

    async def execute(self, sql: str, timeout_seconds: Optional[int] = None) -> QueryExecutionResult:
        self.executed.append(sql)
        self.timeouts.append(timeout_seconds)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else (self.outcomes[0] if self.outcomes else None)
        if isinstance(outcome, NL2SQLException):
            raise outcome
        return outcome or sample_result()


def sample_result(rows: int = 2) -> QueryExecutionResult:
    data = [["Beverages", 12], ["Produce", 5], ["Seafood", 3], ["Dairy", 1]][:rows]
    return QueryExecutionResult(
        column_names=["CategoryName", "Total"],
        rows=data,
        row_count=len(data),
        execution_time_ms=4.2,
    )


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def catalog() -> SchemaCatalog:
    return SchemaCatalog(SAMPLE_TABLES, SAMPLE_RELATIONSHIPS)


@pytest.fixture
def session() -> QuerySession:
    return QuerySession.create(history_size=4, persist_history=False)


@pytest.fixture
def executor() -> FakeExecutionRepository:
    return FakeExecutionRepository()


@pytest.fixture
def make_service(catalog, executor):
    """Build an NL2SQLService around a scripted model."""

    def factory(responses: Union[str, Sequence[str]] = (), config: Optional[NL2SQLConfig] = None) -> NL2SQLService:
        return NL2SQLService(
            llm=ScriptedLLM(responses),
            catalog=catalog,
            execution_repository=executor,  # type: ignore[arg-type]
            config=config or NL2SQLConfig(),
            query_timeout_seconds=30,
        )

    return factory
