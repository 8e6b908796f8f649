"""Request-scoped context kept in contextvars.

Every log line emitted while handling a request picks up these values
through the structlog context processor, so services never have to pass
request ids around explicitly.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_OPTIONAL_VARS: dict[str, ContextVar[str | None]] = {
    "user_id": user_id_var,
    "trace_id": trace_id_var,
    "correlation_id": correlation_id_var,
}


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID, generating one when none is supplied."""
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def set_user_id(user_id: str | UUID | None) -> None:
    user_id_var.set(str(user_id) if user_id is not None else None)


def set_trace_id(trace_id: str | None) -> None:
    trace_id_var.set(trace_id)


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Return the non-empty context values as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    for name, var in _OPTIONAL_VARS.items():
        value = var.get()
        if value:
            context[name] = value

    return context


def clear_context() -> None:
    """Reset every context variable (called when a request finishes)."""
    request_id_var.set("")
    for var in _OPTIONAL_VARS.values():
        var.set(None)


class RequestContext:
    """Context manager binding request values outside of HTTP handling.

    Usage:
        with RequestContext(user_id=user_id):
            await service.issue(...)
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | UUID | None = None,
        trace_id: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self.request_id = request_id
        self.values = {
            "user_id": str(user_id) if user_id is not None else None,
            "trace_id": trace_id,
            "correlation_id": correlation_id,
        }
        self._request_token: Token[str] | None = None
        self._tokens: dict[str, Token[str | None]] = {}

    def __enter__(self) -> "RequestContext":
        self._request_token = request_id_var.set(
            self.request_id or generate_request_id()
        )
        for name, value in self.values.items():
            if value is not None:
                self._tokens[name] = _OPTIONAL_VARS[name].set(value)
        return self

    def __exit__(self, *_: object) -> None:
        if self._request_token is not None:
            request_id_var.reset(self._request_token)
        for name, token in self._tokens.items():
            _OPTIONAL_VARS[name].reset(token)
        self._tokens.clear()
