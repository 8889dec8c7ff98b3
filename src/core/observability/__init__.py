"""
Observability Module

Distributed tracing and structured logging.
"""

from .tracing import (
    init_tracing,
    get_tracer,
    get_current_span,
    get_trace_id,
    create_span,
    inject_trace_context,
)
from .logging import (
    configure_logging,
    current_trace_id,
    request_trace_id,
    StructuredFormatter,
)

__all__ = [
    # Tracing
    "init_tracing",
    "get_tracer",
    "get_current_span",
    "get_trace_id",
    "create_span",
    "inject_trace_context",
    # Logging
    "configure_logging",
    "current_trace_id",
    "request_trace_id",
    "StructuredFormatter",
]
