"""
Custom exception hierarchy for NL2SQL system.

This module defines the exception hierarchy with:
- Consistent machine-readable error codes
- Structured details for debugging

Exception Categories:
- Configuration: ConfigurationError
- Database: DatabaseConnectionError (fatal), DatabaseQueryError, QueryTimeoutError
- Schema: SchemaEmptyError
- Model: LLMError, PlanParseError
- SQL: SQLValidationError (carries the rejection verdict)

Usage:
    raise DatabaseConnectionError("Failed to connect to database")
    raise SQLValidationError("Forbidden operation: DELETE", details={"keyword": "delete"})
"""

from typing import Any, Dict, Optional


class NL2SQLException(Exception):
    """
    Base exception for all NL2SQL errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "DATABASE_CONNECTION_ERROR")
        details: Optional dictionary with additional error context
    """

    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for structured output."""
        result: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(NL2SQLException):
    """
    Raised when configuration is invalid or missing.

    Examples:
        - Missing API key for the hosted chat backend
        - Local model file not found
    """

    error_code = "CONFIGURATION_ERROR"


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(NL2SQLException):
    """Base class for database-related errors."""

    error_code = "DATABASE_ERROR"


class DatabaseConnectionError(DatabaseError):
    """
    Raised when the database cannot be reached.

    Fatal to the current operation; never retried automatically.

    Examples:
        - Login timeout
        - Authentication failure
        - Network unreachable
    """

    error_code = "DATABASE_CONNECTION_ERROR"


class DatabaseQueryError(DatabaseError):
    """
    Raised when a statement fails during execution.

    Recorded against the step or query that caused it.

    Examples:
        - Invalid column name
        - Conversion failure
    """

    error_code = "DATABASE_QUERY_ERROR"


class QueryTimeoutError(DatabaseQueryError):
    """Raised when a statement exceeds the configured query timeout."""

    error_code = "QUERY_TIMEOUT"


# =============================================================================
# Schema Errors
# =============================================================================


class SchemaError(NL2SQLException):
    """Raised when schema introspection fails."""

    error_code = "SCHEMA_ERROR"


class SchemaEmptyError(SchemaError):
    """Raised when introspection finds zero base tables."""

    error_code = "SCHEMA_EMPTY"


# =============================================================================
# LLM Errors
# =============================================================================


class LLMError(NL2SQLException):
    """
    Raised when model backend operations fail.

    Examples:
        - Hosted API unreachable
        - Empty response
        - Prompt exceeds the input limit
    """

    error_code = "LLM_ERROR"


class PlanParseError(NL2SQLException):
    """Raised when a planning reply matches neither the next-step nor the completion form."""

    error_code = "PLAN_PARSE_ERROR"


# =============================================================================
# SQL Errors
# =============================================================================


class SQLValidationError(NL2SQLException):
    """
    Raised when a statement is rejected before execution.

    The rejection reason and offending token are carried in details.

    Examples:
        - Forbidden operation (INSERT/UPDATE/DELETE/EXEC)
        - Unknown table or column
    """

    error_code = "SQL_VALIDATION_ERROR"
