from enum import Enum


class NodeType(str, Enum):
    TABLE = "table"
    COLUMN = "column"
    RELATIONSHIP = "relationship"


class RejectionReason(str, Enum):
    """Why the validator refused a statement."""
    NONE = "none"
    EMPTY_STATEMENT = "empty_statement"
    FORBIDDEN_OPERATION = "forbidden_operation"
    MISSING_SELECT = "missing_select"
    SYNTAX_IMBALANCE = "syntax_imbalance"
    UNKNOWN_TABLE = "unknown_table"
    UNKNOWN_COLUMN = "unknown_column"


class PromptMode(str, Enum):
    """Output contract requested from the model."""
    SINGLE_STEP = "single_step"
    CONVERSATIONAL = "conversational"
    MULTI_STEP = "multi_step"


class StepOutcome(str, Enum):
    """Status values for one multi-step query."""
    EXECUTED = "executed"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PlanStatus(str, Enum):
    """States of the multi-step planner."""
    PLANNING = "planning"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING = "executing"
    SUMMARIZING = "summarizing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"
    STEP_LIMIT_REACHED = "step_limit_reached"


class StepDecision(str, Enum):
    """Operator answer to a confirmation prompt."""
    PROCEED = "proceed"
    SKIP = "skip"
    CANCEL = "cancel"


class PlannerReplyKind(str, Enum):
    NEXT_STEP = "next_step"
    COMPLETE = "complete"
    UNPARSEABLE = "unparseable"
