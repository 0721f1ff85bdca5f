"""
Shared logging configuration for the Dashboard Control layer.

Every event is a structlog JSON line carrying the service name, the
OpenTelemetry trace ids when a span is recording, and whatever correlation
context the current request has bound (request, subject, tenant, dashboard).
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

from opentelemetry import trace

# Correlation context, reset by the request middleware
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
subject_id_var: ContextVar[Optional[str]] = ContextVar('subject_id', default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar('tenant_id', default=None)
dashboard_id_var: ContextVar[Optional[str]] = ContextVar('dashboard_id', default=None)

_CORRELATION_VARS = (
    ("request_id", request_id_var),
    ("subject_id", subject_id_var),
    ("tenant_id", tenant_id_var),
    ("dashboard_id", dashboard_id_var),
)


def configure_logging(service_name: str, log_level: str = "info", log_format: str = "json") -> None:
    """Configure structured logging for a service.

    ``log_format="console"`` swaps the JSON renderer for structlog's
    human-readable one; everything else is identical.
    """
    renderer = (
        structlog.dev.ConsoleRenderer()
        if log_format == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_trace_context,
            add_correlation_context,
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    # Logger names look like "dashboard.resolver"
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["service"] = logger_name.split(".")[0]

    return event_dict


def add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach trace and span ids of the active span, if any."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        if span_context.span_id != 0:
            event_dict["span_id"] = f"{span_context.span_id:016x}"

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy bound correlation ids into the event. Explicit fields win."""
    for key, var in _CORRELATION_VARS:
        value = var.get()
        if value:
            event_dict.setdefault(key, value)

    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id, generating one when the caller sent none."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_subject_context(
    subject_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    dashboard_id: Optional[str] = None
):
    """Bind the subject, tenant and dashboard a request is about."""
    if subject_id:
        subject_id_var.set(subject_id)
    if tenant_id:
        tenant_id_var.set(tenant_id)
    if dashboard_id:
        dashboard_id_var.set(dashboard_id)


def clear_context():
    for _, var in _CORRELATION_VARS:
        var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
