"""Context managers for structured logging."""

from typing import Dict, Optional

from tokenrelay.logging.context import get_log_context, set_log_context


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(client_id=client_id, strategy="delegation"):
            # All logs in this block will carry client_id and strategy
            await do_refresh()
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        strategy: Optional[str] = None,
        component: Optional[str] = None,
        trace_id: Optional[str] = None,
    ):
        self.new_context = {
            "client_id": client_id,
            "strategy": strategy,
            "component": component,
            "trace_id": trace_id,
        }
        self.old_context: Dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        for key, value in self.new_context.items():
            if value is not None:
                set_log_context(**{key: value})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        set_log_context(
            client_id=self.old_context.get("client_id", ""),
            strategy=self.old_context.get("strategy", ""),
            component=self.old_context.get("component", ""),
            trace_id=self.old_context.get("trace_id", ""),
        )
        return False
