"""Conditional routing functions for the LangGraph workflow."""

from sqltriage.graph.state import TriageState


def route_after_intake(state: TriageState) -> str:
    """Skip events the run is not configured to act on."""
    if state.get("skip_reason"):
        return "skip"
    return "extract"


def route_after_dispatch(state: TriageState) -> str:
    """Go round again after a conflicting label write, otherwise finish."""
    match state.get("dispatch_state"):
        case "computing":
            return "refresh"
        case _:
            return "end"
