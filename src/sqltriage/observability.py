"""Observability utilities for triage workflow nodes.

Every node is wrapped with LangSmith tracing plus a short stderr log line,
which is what shows up in the GitHub Actions job output.
"""

import functools
import sys
import time
from typing import Any, Callable, TypeVar

from langsmith import traceable

F = TypeVar("F", bound=Callable[..., Any])

_PREFIXES = {
    "info": "ℹ️",
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "start": "🚀",
    "end": "🏁",
}


def _log(message: str, level: str = "info", node: str = "node") -> None:
    """Log message to stderr for GitHub Actions visibility."""
    prefix = _PREFIXES.get(level, "")
    print(f"{prefix} [{node}] {message}", file=sys.stderr, flush=True)


def _format_elapsed(elapsed: float) -> str:
    return f"{elapsed:.2f}s" if elapsed >= 1 else f"{elapsed * 1000:.0f}ms"


def _issue_ref(state: Any) -> str:
    snapshot = state.get("snapshot") if isinstance(state, dict) else None
    if snapshot is not None:
        return f"#{snapshot.id}"
    if isinstance(state, dict) and state.get("issue_number") is not None:
        return f"#{state['issue_number']}"
    return "?"


def traced_node(
    name: str,
    *,
    run_type: str = "chain",
    log_output: bool = True,
) -> Callable[[F], F]:
    """Decorator to add tracing and logging to a LangGraph node.

    Args:
        name: Name for the trace (e.g., "classify", "dispatch").
        run_type: LangSmith run type ("chain", "llm", "tool").
        log_output: Whether to log output keys.

    Example:
        @traced_node("classify")
        def classify_node(state: TriageState) -> dict:
            ...
    """

    def decorator(func: F) -> F:
        traced_func = traceable(name=name, run_type=run_type)(func)

        @functools.wraps(func)
        def wrapper(state: dict, *args: Any, **kwargs: Any) -> dict:
            _log(f"Starting for issue {_issue_ref(state)}", "start", name)
            start_time = time.perf_counter()

            try:
                result = traced_func(state, *args, **kwargs)
            except Exception as e:
                elapsed = time.perf_counter() - start_time
                _log(f"Failed after {_format_elapsed(elapsed)}: {e}", "error", name)
                raise

            elapsed_str = _format_elapsed(time.perf_counter() - start_time)
            if log_output and isinstance(result, dict):
                _log(f"Completed in {elapsed_str}, output: {list(result)}", "success", name)
            else:
                _log(f"Completed in {elapsed_str}", "success", name)
            return result

        return wrapper  # type: ignore

    return decorator


def log_node_event(node: str, event: str, level: str = "info", **data: Any) -> None:
    """Log a custom event from within a node.

    Example:
        log_node_event("dispatch", "intent dropped", level="warning", kind="add-comment")
    """
    if data:
        data_str = ", ".join(f"{k}={v}" for k, v in data.items())
        _log(f"{event} ({data_str})", level, node)
    else:
        _log(event, level, node)
