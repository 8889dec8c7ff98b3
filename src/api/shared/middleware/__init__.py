"""
Shared API Middleware

Provides cross-cutting concerns for all API endpoints:
- Error handling with standardized responses
- Trace ID propagation for log correlation
- Session resolution and the /dashboard and /admin route guard
"""

from .error_handler import register_error_handlers, translate_domain_error
from .trace import (
    TraceMiddleware,
    get_trace_id,
    set_trace_id,
)
from .auth import (
    SessionMiddleware,
    get_session,
    is_public_path,
    require_admin,
    require_partner,
    require_session,
)

__all__ = [
    # Error handling
    "register_error_handlers",
    "translate_domain_error",
    # Trace
    "TraceMiddleware",
    "get_trace_id",
    "set_trace_id",
    # Session
    "SessionMiddleware",
    "get_session",
    "is_public_path",
    "require_admin",
    "require_partner",
    "require_session",
]
