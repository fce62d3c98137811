"""Context management for structured logging and tracing.

Request-scoped values (request id, caller, server being acted on) live in
context variables so that every log line emitted while handling a request
carries them, including lines logged from inside the services and clients.
"""

import contextvars
from contextlib import contextmanager
from typing import Optional, Any, Dict
from opentelemetry import trace

_FIELDS = ("request_id", "user_id", "user_name", "server_id", "action")

request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)
user_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "user_id", default=None
)
user_name_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "user_name", default=None
)
server_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "server_id", default=None
)
action_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "action", default=None
)

_VARS: Dict[str, contextvars.ContextVar] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "user_name": user_name_var,
    "server_id": server_id_var,
    "action": action_var,
}


def set_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
    server_id: Optional[str] = None,
    action: Optional[str] = None,
) -> None:
    """Set context variables. ``None`` arguments leave the current value.

    Args:
        request_id: Unique request identifier
        user_id: Profile ID of the caller
        user_name: Username of the caller
        server_id: Server being operated on
        action: Operation being performed (e.g., 'server.create')
    """
    values = {
        "request_id": request_id,
        "user_id": user_id,
        "user_name": user_name,
        "server_id": server_id,
        "action": action,
    }
    for key, value in values.items():
        if value is not None:
            _VARS[key].set(value)


def get_context() -> Dict[str, Any]:
    """Get all current context values as a dictionary.

    Returns:
        Dictionary with all non-empty context values
    """
    context = {}
    for key in _FIELDS:
        value = _VARS[key].get()
        if value:
            context[key] = value
    return context


def get_request_id() -> Optional[str]:
    """Get current request ID."""
    return request_id_var.get()


def get_server_id() -> Optional[str]:
    """Get current server ID."""
    return server_id_var.get()


def clear_context() -> None:
    """Clear all context variables."""
    for var in _VARS.values():
        var.set(None)


@contextmanager
def operation_context(
    action: str,
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
    server_id: Optional[str] = None,
):
    """Set operation context for the duration of a block, then restore it.

    The action and ids are also recorded on the active span, if any.

    Example:
        with operation_context("server.delete", server_id=server.id):
            logger.info("Deleting server")
    """
    old_context = get_context()

    try:
        set_context(
            user_id=user_id,
            user_name=user_name,
            server_id=server_id,
            action=action,
        )

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("action", action)
            if server_id:
                span.set_attribute("server.id", server_id)
            if user_id:
                span.set_attribute("user.id", user_id)

        yield

    finally:
        clear_context()
        for key, value in old_context.items():
            _VARS[key].set(value)


def get_trace_context() -> Dict[str, str]:
    """Get current OpenTelemetry trace context.

    Returns:
        Dictionary with trace_id and span_id (if available)
    """
    context = {}

    span = trace.get_current_span()
    if span.is_recording():
        span_context = span.get_span_context()
        if span_context.is_valid:
            context["trace_id"] = format(span_context.trace_id, "032x")
            context["span_id"] = format(span_context.span_id, "016x")

    return context
