"""
Structured logging for the CRM HTTP access layer.

Every logical call binds its own correlation fields (call id, method,
endpoint) so that log lines emitted by retries of the same call can be
grouped downstream.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

from opentelemetry import trace

# Correlation for the logical call currently executing
call_id_var: ContextVar[Optional[str]] = ContextVar('call_id', default=None)
call_method_var: ContextVar[Optional[str]] = ContextVar('call_method', default=None)
call_endpoint_var: ContextVar[Optional[str]] = ContextVar('call_endpoint', default=None)


def configure_logging(component: str = "crm_http", log_level: str = "info") -> None:
    """Configure JSON logging for the request layer."""
    level = getattr(logging, log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_component,
            add_trace_context,
            add_call_context,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger(component).setLevel(level)


def add_component(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Tag events with the component, taken from the dotted logger name."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["component"] = logger_name.split(".")[1]
    return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add OpenTelemetry ids when a span is recording."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        if span_context.span_id != 0:
            event_dict["span_id"] = f"{span_context.span_id:016x}"

    return event_dict


def add_call_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add the correlation fields of the current logical call."""
    call_id = call_id_var.get()
    if call_id:
        event_dict.setdefault("call_id", call_id)
        event_dict.setdefault("http_method", call_method_var.get())
        event_dict.setdefault("endpoint", call_endpoint_var.get())
    return event_dict


def bind_call_context(method: str, endpoint: str, call_id: Optional[str] = None) -> str:
    """Bind correlation fields for a logical call in the current context."""
    if call_id is None:
        call_id = uuid.uuid4().hex
    call_id_var.set(call_id)
    call_method_var.set(method)
    call_endpoint_var.set(endpoint)
    return call_id


def current_call_id() -> Optional[str]:
    return call_id_var.get()


def clear_call_context():
    """Clear correlation fields."""
    call_id_var.set(None)
    call_method_var.set(None)
    call_endpoint_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
