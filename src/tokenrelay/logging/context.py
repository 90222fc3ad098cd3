"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_client_id: ContextVar[str] = ContextVar("client_id", default="")
_strategy: ContextVar[str] = ContextVar("strategy", default="")
_component: ContextVar[str] = ContextVar("component", default="")
_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def set_log_context(
    client_id: Optional[str] = None,
    strategy: Optional[str] = None,
    component: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> None:
    if client_id is not None:
        _client_id.set(client_id)
    if strategy is not None:
        _strategy.set(strategy)
    if component is not None:
        _component.set(component)
    if trace_id is not None:
        _trace_id.set(trace_id)


def get_log_context() -> Dict[str, str]:
    return {
        "client_id": _client_id.get(),
        "strategy": _strategy.get(),
        "component": _component.get(),
        "trace_id": _trace_id.get(),
    }


def clear_log_context() -> None:
    _client_id.set("")
    _strategy.set("")
    _component.set("")
    _trace_id.set("")
