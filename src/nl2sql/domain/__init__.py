"""
Domain package for the NL2SQL system.

This package contains the domain models, enums and errors shared by the
repositories, services and console.
"""

from .base_enums import (
    NodeType,
    RejectionReason,
    PromptMode,
    StepOutcome,
    PlanStatus,
    StepDecision,
    PlannerReplyKind,
)
from .schema_nodes import BaseSchemaNode, TableNode, ColumnNode, RelationshipNode
from .responses import (
    QueryExecutionResult,
    ValidationVerdict,
    Candidate,
    PreparedStatement,
    AnalysisResponse,
    QueryOutcome,
    SelfTestReport,
)
from .plan import QueryStep, Plan, PlannerReply
from .session import ExchangeSummary, ConversationContext, QuerySession

__all__ = [
    # Enums
    "NodeType",
    "RejectionReason",
    "PromptMode",
    "StepOutcome",
    "PlanStatus",
    "StepDecision",
    "PlannerReplyKind",

    # Schema Nodes
    "BaseSchemaNode",
    "TableNode",
    "ColumnNode",
    "RelationshipNode",

    # Results
    "QueryExecutionResult",
    "ValidationVerdict",
    "Candidate",
    "PreparedStatement",
    "AnalysisResponse",
    "QueryOutcome",
    "SelfTestReport",

    # Plans
    "QueryStep",
    "Plan",
    "PlannerReply",

    # Session
    "ExchangeSummary",
    "ConversationContext",
    "QuerySession",
]
