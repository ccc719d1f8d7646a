"""
Result models produced by the query pipeline.

Covers execution results, validation verdicts, extracted candidates,
prepared statements and the outcome records returned to the console.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .base_enums import RejectionReason


class QueryExecutionResult(BaseModel):
    """Query execution result with metadata."""

    column_names: List[str] = Field(default_factory=list, description="Column names in result set")
    rows: List[List[Any]] = Field(default_factory=list, description="Result rows in column order")
    row_count: int = Field(default=0, description="Number of rows returned")
    execution_time_ms: float = Field(default=0.0, description="Query execution time in milliseconds")

    @property
    def column_count(self) -> int:
        return len(self.column_names)


class ValidationVerdict(BaseModel):
    """Outcome of validating one statement."""

    accepted: bool = Field(..., description="Whether the statement may run")
    reason: RejectionReason = Field(default=RejectionReason.NONE, description="First failing check")
    keyword: Optional[str] = Field(default=None, description="Forbidden keyword that was found")
    table: Optional[str] = Field(default=None, description="Offending table name")
    column: Optional[str] = Field(default=None, description="Offending column name")
    message: str = Field(default="", description="Human-readable explanation")

    @classmethod
    def accept(cls) -> "ValidationVerdict":
        return cls(accepted=True, message="Statement accepted")

    @classmethod
    def reject(cls, reason: RejectionReason, message: str, **details: Any) -> "ValidationVerdict":
        return cls(accepted=False, reason=reason, message=message, **details)


class Candidate(BaseModel):
    """A statement found in model output, in source order."""

    sql: str = Field(..., description="Statement text without trailing semicolon")
    position: int = Field(..., description="Ordinal position among extracted candidates")
    verdict: Optional[ValidationVerdict] = Field(default=None, description="Set once validated")


class PreparedStatement(BaseModel):
    """A statement after validation, dialect normalization and row limiting."""

    original_sql: str = Field(..., description="Statement as produced by the model")
    verdict: ValidationVerdict = Field(..., description="Validator outcome")
    final_sql: Optional[str] = Field(default=None, description="Executable text; None when rejected")
    is_expensive: bool = Field(default=False, description="Advisory cost flag")
    advisories: List[str] = Field(default_factory=list, description="Reasons the statement may be slow")

    @property
    def accepted(self) -> bool:
        return self.verdict.accepted


class AnalysisResponse(BaseModel):
    """Model answer to a question with every candidate it contained."""

    question: str
    raw_response: str
    candidates: List[Candidate] = Field(default_factory=list)
    statements: List[PreparedStatement] = Field(default_factory=list, description="Accepted statements, ready to run")
    rejected: List[PreparedStatement] = Field(default_factory=list, description="Rejected candidates kept for diagnostics")

    @property
    def has_sql(self) -> bool:
        return bool(self.statements)


class QueryOutcome(BaseModel):
    """Result of answering one question with a single statement."""

    question: str
    success: bool
    sql: Optional[str] = None
    result: Optional[QueryExecutionResult] = None
    error_message: Optional[str] = None
    processing_time_ms: float = 0.0


class SelfTestReport(BaseModel):
    """Pass/fail tally for the built-in question battery."""

    outcomes: List[QueryOutcome] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def passed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def success_rate(self) -> float:
        return (self.passed / self.total * 100.0) if self.total else 0.0
