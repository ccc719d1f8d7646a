import pytest
from nl2sql.utils.logging import configure_logging, get_logger, get_module_logger
from nl2sql.utils.tracing import current_trace_id, generate_trace_id, set_trace_id, start_new_trace


def test_logger_configuration():
    configure_logging()
    logger = get_logger("test")
    assert logger is not None


def test_module_logger():
    logger = get_module_logger()
    assert logger is not None


def test_trace_id_generation():
    trace_id = generate_trace_id()
    assert len(trace_id) == 36  # UUID format
    assert '-' in trace_id


def test_trace_id_context():
    test_id = "test-trace-123"
    set_trace_id(test_id)
    assert current_trace_id() == test_id


def test_new_trace_per_question():
    first = start_new_trace()
    second = start_new_trace()
    assert first != second
    assert current_trace_id() == second
