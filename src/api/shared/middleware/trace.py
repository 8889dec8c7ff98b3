"""
Trace ID Middleware

Adds a trace id to every request and response. Log records emitted while
the request is handled carry the same id.
"""

from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ....core.observability.logging import request_trace_id
from ....core.observability.tracing import get_trace_id as get_span_trace_id

TRACE_HEADER = "X-Trace-ID"


def get_trace_id() -> str:
    """
    Get the current trace ID.

    Returns the trace ID from the current request context,
    or generates a new one if not set.
    """
    return request_trace_id.get() or str(uuid4())


def set_trace_id(trace_id: str) -> None:
    """Set the trace ID for the current context."""
    request_trace_id.set(trace_id)


class TraceMiddleware(BaseHTTPMiddleware):
    """
    Middleware that extracts or generates the trace ID.

    The incoming X-Trace-ID header wins; otherwise the active OpenTelemetry
    trace id is used, and failing that a fresh uuid.
    """

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get(TRACE_HEADER) or get_span_trace_id() or str(uuid4())
        set_trace_id(trace_id)
        request.state.trace_id = trace_id

        response = await call_next(request)

        response.headers[TRACE_HEADER] = trace_id
        return response
