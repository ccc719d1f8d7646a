import structlog
import logging
import inspect
import json
from typing import Any, Optional

from nl2sql.config import get_settings
from nl2sql.config_constants import LogFormat
from nl2sql.utils.tracing import current_trace_id

# Module-level flag to prevent multiple configuration
_logging_configured = False


def _add_module_info(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """
    Custom processor to add module/file information to log records.

    This enhances the default logger name with more explicit file information.
    """
    logger_name = event_dict.get('logger', 'unknown')

    if logger_name.startswith('nl2sql.'):
        # Keep last 2 parts (e.g., "services.step_orchestrator" from "nl2sql.services.step_orchestrator")
        module_parts = logger_name.split('.')
        event_dict['module'] = '.'.join(module_parts[-2:])
    else:
        event_dict['module'] = logger_name

    return event_dict


def _add_trace_id(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """Attach the current trace ID unless the call site already passed one."""
    if not event_dict.get('trace_id'):
        trace_id = current_trace_id()
        if trace_id:
            event_dict['trace_id'] = trace_id
        else:
            event_dict.pop('trace_id', None)
    return event_dict


def _pretty_json_renderer(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    """
    Pretty JSON renderer with proper indentation and formatting.

    Renders logs as JSON with 2-space indentation.
    """
    return json.dumps(event_dict, indent=2, ensure_ascii=False, default=str)


def _dev_formatter(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    """
    Development-friendly formatter for better readability.

    Formats logs in a human-readable way with colors and proper spacing.
    """
    timestamp = event_dict.get('timestamp', '')
    level = event_dict.get('level', '').upper()
    module = event_dict.get('module', '')
    event = event_dict.get('event', '')
    trace_id = event_dict.get('trace_id', '')

    # Color codes for different log levels
    colors = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    reset = '\033[0m'

    color = colors.get(level, '')

    main_msg = f"{timestamp} {color}[{level}]{reset} {module}: {event}"

    if trace_id:
        main_msg += f" (trace: {trace_id[:8]})"

    other_fields = []
    skip_fields = {'timestamp', 'level', 'module', 'event', 'trace_id', 'logger'}

    for key, value in event_dict.items():
        if key not in skip_fields:
            other_fields.append(f"{key}={value}")

    if other_fields:
        main_msg += f" | {', '.join(other_fields)}"

    return main_msg


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Optional level override (e.g. "DEBUG" from a --verbose flag);
            defaults to settings.app.log_level
    """

    global _logging_configured

    # ---- guard: run only once ----
    if _logging_configured:
        return
    _logging_configured = True

    settings = get_settings()
    level_name = log_level or settings.app.log_level.value
    renderer = _pretty_json_renderer if settings.app.log_format == LogFormat.JSON else _dev_formatter

    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level_name),
        handlers=[logging.StreamHandler()]
    )

    # httpx logs every request at INFO; keep it out of the console
    logging.getLogger("httpx").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,  # Adds 'logger' field with module name
            structlog.stdlib.add_log_level,    # Adds 'level' field
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),  # Adds 'timestamp' field (ISO8601)
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _add_trace_id,
            _add_module_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name, typically __name__ to get the module name

    Returns:
        Configured structlog logger

    Usage:
        logger = get_logger(__name__)
        logger.info("Schema catalog built", table_count=14)

        # Output (console format):
        # 2024-01-22T10:30:00Z [INFO] services.schema_catalog: Schema catalog built | table_count=14
    """
    return structlog.get_logger(name)


def get_module_logger() -> structlog.stdlib.BoundLogger:
    """
    Get a logger for the calling module automatically.

    Returns:
        Configured structlog logger for the calling module

    Note:
        Falls back to 'unknown' module name if frame inspection fails.
    """
    module_name = 'unknown'
    frame = None

    try:
        frame = inspect.currentframe()
        if frame is not None and frame.f_back is not None:
            caller_frame = frame.f_back
            module_name = caller_frame.f_globals.get('__name__', 'unknown')
    except (AttributeError, RuntimeError):
        # Frame inspection can fail in some environments (e.g., some REPL implementations)
        pass
    finally:
        # Clean up frame references to avoid potential memory leaks
        if frame is not None:
            del frame

    return get_logger(module_name)
