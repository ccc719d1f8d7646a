"""
Multi-step plan models.

A Plan is the append-only record of one multi-step analysis: the original
question, every step proposed by the model with its outcome, and the
terminal status.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .base_enums import PlannerReplyKind, PlanStatus, StepOutcome


class QueryStep(BaseModel):
    """One proposed query and what happened to it."""

    step_number: int = Field(..., ge=1, description="1-based position in the plan")
    explanation: str = Field(..., description="Model's reason for running this query")
    sql: str = Field(..., description="Statement as proposed by the model")
    outcome: StepOutcome = Field(..., description="Executed, skipped, failed or cancelled")
    result_digest: Optional[str] = Field(default=None, description="Digest of the result when executed")
    duration_seconds: Optional[float] = Field(default=None, description="Wall time spent executing")
    error_message: Optional[str] = Field(default=None, description="Failure text when the step failed")


class Plan(BaseModel):
    """Record of a multi-step analysis session."""

    original_question: str
    steps: List[QueryStep] = Field(default_factory=list)
    status: PlanStatus = PlanStatus.PLANNING
    final_summary: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.status == PlanStatus.COMPLETE

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            PlanStatus.COMPLETE,
            PlanStatus.CANCELLED,
            PlanStatus.FAILED,
            PlanStatus.STEP_LIMIT_REACHED,
        )

    def record(self, step: QueryStep) -> None:
        if self.steps and step.step_number <= self.steps[-1].step_number:
            raise ValueError(
                f"Step numbers must increase: got {step.step_number} after {self.steps[-1].step_number}"
            )
        self.steps.append(step)

    @property
    def executed_steps(self) -> List[QueryStep]:
        return [s for s in self.steps if s.outcome == StepOutcome.EXECUTED]


class PlannerReply(BaseModel):
    """Parsed form of one planning turn from the model."""

    kind: PlannerReplyKind
    explanation: Optional[str] = None
    sql: Optional[str] = None
    summary: Optional[str] = None
