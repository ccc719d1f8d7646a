"""
Schema Catalog service.

Holds the discovered database structure for the life of a session: tables
with their columns, foreign key relationships, and the rendered schema text
that goes into every prompt.

The catalog is built once from SchemaRepository and never mutated
afterwards; re-extraction means building a new catalog.

Usage:
    catalog = await SchemaCatalog.build(schema_repo)
    catalog.has_table("orders")          # True
    catalog.relevant_subset("top products by category")
"""

import re
from typing import Dict, Iterable, List, Optional, Sequence, Set

from ..domain.errors import SchemaEmptyError
from ..domain.schema_nodes import RelationshipNode, TableNode
from ..repositories.schema_repository import SchemaRepository
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id


logger = get_module_logger()

DEFAULT_BROAD_SCOPE_CUES = ("all", "analyze")

QUESTION_TOKEN = re.compile(r"[a-z0-9]+")
NAME_PART = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def word_variants(word: str) -> Set[str]:
    """Naive singular and plural spellings of a lowercase word."""
    variants = {word, word + "s", word + "es"}
    if word.endswith("ies"):
        variants.add(word[:-3] + "y")
    elif word.endswith("es"):
        variants.update({word[:-2], word[:-1]})
    elif word.endswith("s"):
        variants.add(word[:-1])
    if word.endswith("y"):
        variants.add(word[:-1] + "ies")
    return variants


def name_parts(name: str) -> List[str]:
    """Split a CamelCase or snake_case identifier into lowercase words."""
    parts: List[str] = []
    for chunk in re.split(r"[_\s]+", name):
        parts.extend(p.lower() for p in NAME_PART.findall(chunk))
    return parts or [name.lower()]


class SchemaCatalog:
    """
    In-memory registry of tables, columns and relationships.

    Table lookups are case-insensitive and accept either the bare table
    name or the schema-qualified form.
    """

    def __init__(
        self,
        tables: Sequence[TableNode],
        relationships: Sequence[RelationshipNode] = (),
        broad_scope_cues: Iterable[str] = DEFAULT_BROAD_SCOPE_CUES,
    ):
        self._tables: List[TableNode] = list(tables)
        self._relationships: List[RelationshipNode] = list(relationships)
        self._broad_scope_cues = {cue.lower() for cue in broad_scope_cues}

        # lowercase bare or qualified name -> qualified name
        self._names: Dict[str, str] = {}
        self._by_qualified: Dict[str, TableNode] = {}
        for table in self._tables:
            self._by_qualified[table.qualified_name] = table
            self._names.setdefault(table.table_name.lower(), table.qualified_name)
            self._names[table.qualified_name.lower()] = table.qualified_name

        self._schema_context = self.render(self._tables)

    @classmethod
    async def build(
        cls,
        schema_repo: SchemaRepository,
        broad_scope_cues: Iterable[str] = DEFAULT_BROAD_SCOPE_CUES,
    ) -> "SchemaCatalog":
        """
        Introspect the database and build the catalog.

        Raises:
            DatabaseConnectionError: If the database is unreachable
            SchemaEmptyError: If no base tables were found
        """
        trace_id = current_trace_id()
        logger.info("Building schema catalog", trace_id=trace_id)

        tables = await schema_repo.get_tables()
        if not tables:
            raise SchemaEmptyError(
                "No base tables found in the database",
                details={"schema_filter": schema_repo.schema_filter},
            )

        relationships = await schema_repo.get_relationships()
        catalog = cls(tables, relationships, broad_scope_cues)

        logger.info(
            "Schema catalog built",
            table_count=catalog.table_count,
            relationship_count=len(relationships),
            schema_length=len(catalog.schema_context),
            trace_id=trace_id,
        )
        return catalog

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @property
    def tables(self) -> List[TableNode]:
        return list(self._tables)

    @property
    def relationships(self) -> List[RelationshipNode]:
        return list(self._relationships)

    @property
    def table_count(self) -> int:
        return len(self._tables)

    @property
    def schema_context(self) -> str:
        """Full rendered schema."""
        return self._schema_context

    def resolve_table(self, name: str) -> Optional[str]:
        """Qualified name for a bare or qualified table name, or None."""
        return self._names.get(name.strip().lower())

    def has_table(self, name: str) -> bool:
        return self.resolve_table(name) is not None

    def get_table(self, name: str) -> Optional[TableNode]:
        qualified = self.resolve_table(name)
        return self._by_qualified.get(qualified) if qualified else None

    def columns_for(self, table_name: str) -> Optional[List[str]]:
        table = self.get_table(table_name)
        if table is None:
            return None
        return [column.column_name for column in table.columns]

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def render(self, tables: Sequence[TableNode]) -> str:
        """
        Render tables and the relationships among them.

        Example:
            Table: dbo.Orders
              - OrderID (int, PRIMARY KEY)
              - CustomerID (nchar(5))

            Relationships:
              - Orders.CustomerID -> Customers.CustomerID
        """
        blocks = [
            "\n".join([f"Table: {table.qualified_name}"] + [column.render() for column in table.columns])
            for table in tables
        ]

        names = {table.table_name.lower() for table in tables}
        edges = [
            r for r in self._relationships
            if r.from_table.lower() in names and r.to_table.lower() in names
        ]
        if edges:
            blocks.append("Relationships:\n" + "\n".join(edge.render() for edge in edges))

        return "\n\n".join(blocks)

    # -------------------------------------------------------------------------
    # Relevance filtering
    # -------------------------------------------------------------------------

    def _mentions(self, table: TableNode, tokens: List[str]) -> bool:
        token_set = set(tokens)
        if token_set & word_variants(table.table_name.lower()):
            return True

        parts = name_parts(table.table_name)
        if len(parts) == 1:
            return bool(token_set & word_variants(parts[0]))

        span = len(parts)
        for start in range(len(tokens) - span + 1):
            window = tokens[start:start + span]
            if window[:-1] == parts[:-1] and window[-1] in word_variants(parts[-1]):
                return True
        return False

    def _join_partners(self, selected: Set[str]) -> Set[str]:
        """Tables referenced by a foreign key of any selected table."""
        partners: Set[str] = set()
        for relationship in self._relationships:
            if relationship.from_table.lower() in selected:
                partners.add(relationship.to_table.lower())
        return partners

    def relevant_tables(self, question: str) -> List[TableNode]:
        """
        Tables a question mentions plus one foreign key hop.

        Returns every table when nothing matches or a broad-scope cue appears.
        """
        tokens = QUESTION_TOKEN.findall(question.lower())
        if self._broad_scope_cues & set(tokens):
            return self.tables

        selected = {t.table_name.lower() for t in self._tables if self._mentions(t, tokens)}
        if not selected:
            return self.tables

        selected |= self._join_partners(selected)
        return [t for t in self._tables if t.table_name.lower() in selected]

    def relevant_subset(self, question: str) -> str:
        """
        Rendered schema restricted to the tables relevant to question.

        The filter only shrinks the prompt; the validator re-checks
        whatever the model actually references.
        """
        tables = self.relevant_tables(question)
        if len(tables) == len(self._tables):
            return self._schema_context

        logger.debug(
            "Schema filtered for question",
            tables=[t.table_name for t in tables],
            total_tables=self.table_count,
            trace_id=current_trace_id(),
        )
        return self.render(tables)
