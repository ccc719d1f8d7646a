import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable holding the trace ID of the question being processed
trace_id_var: ContextVar[Optional[str]] = ContextVar('trace_id', default=None)


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return str(uuid.uuid4())


def set_trace_id(trace_id: str) -> None:
    """Set the trace ID for the current context."""
    trace_id_var.set(trace_id)


def current_trace_id() -> Optional[str]:
    """Get the current trace ID."""
    return trace_id_var.get()


def start_new_trace() -> str:
    """Start a fresh trace for a new top-level question and return its ID."""
    trace_id = generate_trace_id()
    set_trace_id(trace_id)
    return trace_id
