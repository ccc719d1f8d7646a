"""
SQL Validation Repository.

Decides whether a candidate statement may run. Checks run in a fixed order
and the first failure is returned:

1. Empty check: statement has non-whitespace text
2. Forbidden operation check: no mutating or procedural keyword as a standalone token
3. SELECT check: a SELECT token is present
4. Balance check: parentheses are balanced outside literals and comments
5. Table check (schema-aware): FROM/JOIN targets exist in the catalog
6. Column check (schema-aware): qualified projection columns exist on their table

Matching is token based. String literals, comments and quoted identifiers
are masked first, so `dropdown_id`, `'please delete me'` and `[Update Log]`
never trip the forbidden-keyword check.

Validation is deterministic and has no side effects besides logging; a
rejected statement is reported through the returned verdict, never raised.

Usage:
    repo = SQLValidationRepository(catalog)
    verdict = repo.validate("SELECT COUNT(*) FROM Orders")
    if not verdict.accepted:
        print(verdict.reason, verdict.message)
"""

import re
from typing import Dict, List, Optional, Protocol, Set

from nl2sql.domain.base_enums import RejectionReason
from nl2sql.domain.responses import ValidationVerdict
from nl2sql.utils.logging import get_module_logger
from nl2sql.utils.sql_text import (
    enclosing_open_paren,
    find_keywords,
    has_keyword,
    keyword_pattern,
    mask_sql,
    paren_balance,
    paren_depth_at,
    top_level_keywords,
)
from nl2sql.utils.tracing import current_trace_id

logger = get_module_logger()

# Keywords that mutate data or schema, or run arbitrary code
FORBIDDEN_KEYWORDS = (
    "drop", "delete", "insert", "update", "truncate", "alter", "create",
    "exec", "execute", "grant", "revoke", "deny", "merge",
    "into", "dbcc", "shutdown",
)

# Words that can follow a table reference but are never an alias
NON_ALIAS_WORDS = {
    "where", "join", "inner", "left", "right", "full", "outer", "cross", "on",
    "group", "order", "having", "union", "except", "intersect", "with", "as",
    "apply", "option", "for", "pivot", "unpivot", "tablesample", "select", "from",
}

IDENT = r'(?:\[[^\]]+\]|"[^"]+"|[A-Za-z_#@][\w$#@]*)'
IDENT_END = r'(?![\w$#@])'
NOT_KEYWORD = rf"(?!(?:{'|'.join(sorted(NON_ALIAS_WORDS))}){IDENT_END})"
TABLE_NAME = (
    rf"(?P<ref>{IDENT}(?:\s*\.\s*{IDENT}){{0,3}}){IDENT_END}"
    rf"(?:\s+(?:AS\s+)?{NOT_KEYWORD}(?P<alias>{IDENT}){IDENT_END})?"
)
TABLE_REF = re.compile(rf"\b(?:FROM|JOIN)\s+{TABLE_NAME}", re.IGNORECASE)
# Further tables in a comma-separated FROM list
LISTED_TABLE = re.compile(rf"\s*,\s*{TABLE_NAME}", re.IGNORECASE)

# System and extended stored procedures, only where they are invoked: at the
# head of a statement (optionally schema-qualified) or directly before "("
PROCEDURE_NAME = r"(?<![\w@#$])(?:sp|xp)_[\w$#@]*"
PROCEDURE_CALL = re.compile(
    rf"(?:\A|;)\s*(?:{IDENT}\s*\.\s*)*(?P<head>{PROCEDURE_NAME})|(?P<call>{PROCEDURE_NAME})\s*\(",
    re.IGNORECASE,
)
CTE_NAME = re.compile(
    rf"(?:\bWITH|,)\s*(?P<name>{IDENT})\s*(?:\([^()]*\))?\s*AS\s*\(",
    re.IGNORECASE,
)
QUALIFIED_COLUMN = re.compile(
    rf"(?<![\w.\]\"$#@])(?P<chain>{IDENT}(?:\s*\.\s*{IDENT})*\s*\.\s*(?:{IDENT}|\*))"
    rf"(?![\w$#@]|\s*[.(])",
)
PROJECTION_PREFIX = re.compile(
    r"^\s*(?:ALL\s+|DISTINCT\s+)?(?:TOP\s*\(?\s*\d+\s*\)?\s*(?:PERCENT\s+)?(?:WITH\s+TIES\s+)?)?",
    re.IGNORECASE,
)


class SchemaLookup(Protocol):
    """Catalog operations the schema-aware checks need."""

    def resolve_table(self, name: str) -> Optional[str]:
        ...

    def columns_for(self, table_name: str) -> Optional[List[str]]:
        ...


def unquote_identifier(name: str) -> str:
    name = name.strip()
    if len(name) >= 2 and ((name[0] == "[" and name[-1] == "]") or (name[0] == '"' and name[-1] == '"')):
        return name[1:-1]
    return name


def split_dotted(ref: str) -> List[str]:
    return [unquote_identifier(part) for part in re.split(r"\s*\.\s*(?![^\[]*\])", ref)]


class SQLValidationRepository:
    """
    Repository for SQL validation.

    Static checks only; with a catalog the table and column checks are
    enabled, without one they are skipped.
    """

    def __init__(self, catalog: Optional[SchemaLookup] = None):
        self.catalog = catalog

    def validate(self, sql: str) -> ValidationVerdict:
        """
        Validate one statement.

        Args:
            sql: Candidate statement text

        Returns:
            ValidationVerdict; the first failing check wins
        """
        verdict = (
            self._check_not_empty(sql)
            or self._check_forbidden_operations(sql)
            or self._check_has_select(sql)
            or self._check_balanced_parentheses(sql)
        )

        catalog = self.catalog
        if verdict is None and catalog is not None:
            verdict = self._check_known_tables(sql, catalog) or self._check_known_columns(sql, catalog)

        if verdict is None:
            return ValidationVerdict.accept()

        logger.info(
            "SQL rejected",
            reason=verdict.reason.value,
            detail=verdict.message,
            sql=sql[:200],
            trace_id=current_trace_id(),
        )
        return verdict

    def _check_not_empty(self, sql: str) -> Optional[ValidationVerdict]:
        if not sql or not sql.strip():
            return ValidationVerdict.reject(RejectionReason.EMPTY_STATEMENT, "Statement is empty")
        return None

    def _check_forbidden_operations(self, sql: str) -> Optional[ValidationVerdict]:
        """Reject the earliest forbidden keyword or procedure call."""
        masked = mask_sql(sql)

        hits = [(m.start(), m.group(0).lower()) for m in find_keywords(masked, *FORBIDDEN_KEYWORDS)]
        proc = PROCEDURE_CALL.search(masked)
        if proc:
            group = "head" if proc.group("head") else "call"
            hits.append((proc.start(group), proc.group(group).lower()))

        if not hits:
            return None

        _, keyword = min(hits)
        return ValidationVerdict.reject(
            RejectionReason.FORBIDDEN_OPERATION,
            f"Forbidden operation: {keyword.upper()}",
            keyword=keyword,
        )

    def _check_has_select(self, sql: str) -> Optional[ValidationVerdict]:
        if not has_keyword(mask_sql(sql), "select"):
            return ValidationVerdict.reject(RejectionReason.MISSING_SELECT, "Statement has no SELECT")
        return None

    def _check_balanced_parentheses(self, sql: str) -> Optional[ValidationVerdict]:
        opened, closed = paren_balance(mask_sql(sql))
        if opened != closed:
            return ValidationVerdict.reject(
                RejectionReason.SYNTAX_IMBALANCE,
                f"Unbalanced parentheses: {opened} opening vs {closed} closing",
            )
        return None

    # -------------------------------------------------------------------------
    # Schema-aware checks
    # -------------------------------------------------------------------------

    def _cte_names(self, masked: str) -> Set[str]:
        return {unquote_identifier(m.group("name")).lower() for m in CTE_NAME.finditer(masked)}

    def _table_references(self, sql: str) -> List[re.Match]:
        """
        FROM/JOIN references that name a table, including every entry of a
        comma-separated FROM list.

        Skips derived tables (FROM followed by a paren) and FROM used inside
        a function argument list such as EXTRACT(YEAR FROM x).
        """
        masked = mask_sql(sql, mask_identifiers=False)
        refs = []
        for match in TABLE_REF.finditer(masked):
            open_paren = enclosing_open_paren(masked, match.start())
            if open_paren is not None and not has_keyword(masked[open_paren + 1:match.start()], "select"):
                continue
            refs.append(match)

            listed = LISTED_TABLE.match(masked, match.end())
            while listed is not None:
                refs.append(listed)
                listed = LISTED_TABLE.match(masked, listed.end())
        return refs

    @staticmethod
    def _resolve(catalog: SchemaLookup, ref: str) -> Optional[str]:
        parts = split_dotted(ref)
        if len(parts) >= 2:
            resolved = catalog.resolve_table(f"{parts[-2]}.{parts[-1]}")
            if resolved:
                return resolved
        return catalog.resolve_table(parts[-1])

    def _check_known_tables(self, sql: str, catalog: SchemaLookup) -> Optional[ValidationVerdict]:
        cte_names = self._cte_names(mask_sql(sql, mask_identifiers=False))
        for match in self._table_references(sql):
            ref = match.group("ref")
            bare = split_dotted(ref)[-1]
            if bare.lower() in cte_names:
                continue
            if self._resolve(catalog, ref) is None:
                return ValidationVerdict.reject(
                    RejectionReason.UNKNOWN_TABLE,
                    f"Unknown table: {bare}",
                    table=bare,
                )
        return None

    def _alias_map(self, sql: str, catalog: SchemaLookup) -> Dict[str, str]:
        """Map of lowercase alias or table name to catalog table name."""
        aliases: Dict[str, str] = {}
        for match in self._table_references(sql):
            resolved = self._resolve(catalog, match.group("ref"))
            if resolved is None:
                continue
            aliases[split_dotted(match.group("ref"))[-1].lower()] = resolved
            alias = match.group("alias")
            if alias and unquote_identifier(alias).lower() not in NON_ALIAS_WORDS:
                aliases[unquote_identifier(alias).lower()] = resolved
        return aliases

    def _projections(self, masked: str) -> List[str]:
        """Select lists of every top-level SELECT."""
        projections = []
        from_pattern = keyword_pattern("from")
        for select in top_level_keywords(masked, "select"):
            start = select.end()
            end = len(masked)
            for from_match in from_pattern.finditer(masked, start):
                if paren_depth_at(masked, from_match.start()) == 0:
                    end = from_match.start()
                    break
            segment = masked[start:end]
            prefix = PROJECTION_PREFIX.match(segment)
            projections.append(segment[prefix.end():] if prefix else segment)
        return projections

    def _check_known_columns(self, sql: str, catalog: SchemaLookup) -> Optional[ValidationVerdict]:
        aliases = self._alias_map(sql, catalog)
        if not aliases:
            return None

        for projection in self._projections(mask_sql(sql, mask_identifiers=False)):
            for match in QUALIFIED_COLUMN.finditer(projection):
                parts = split_dotted(match.group("chain"))
                qualifier, column = parts[-2], parts[-1]
                if column == "*":
                    continue
                table = aliases.get(qualifier.lower())
                if table is None:
                    continue
                columns = catalog.columns_for(table)
                if columns is None:
                    continue
                if column.lower() not in {c.lower() for c in columns}:
                    return ValidationVerdict.reject(
                        RejectionReason.UNKNOWN_COLUMN,
                        f"Unknown column: {table}.{column}",
                        table=table,
                        column=column,
                    )
        return None
