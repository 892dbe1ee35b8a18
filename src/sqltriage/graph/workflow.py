"""LangGraph workflow definition."""

from typing import Any, Optional

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.graph import END, StateGraph

from sqltriage.config import TriageConfig, load_config
from sqltriage.graph.routing import route_after_dispatch, route_after_intake
from sqltriage.graph.state import TriageState
from sqltriage.integrations.tracker import Tracker
from sqltriage.nodes.assess import assess_node
from sqltriage.nodes.classify import classify_node
from sqltriage.nodes.dispatch import DispatchReport, dispatch_node, skip_node
from sqltriage.nodes.extract import extract_node
from sqltriage.nodes.intake import intake_node, refresh_node, snapshot_from_event
from sqltriage.nodes.plan import plan_node
from sqltriage.nodes.reconcile import reconcile_node
from sqltriage.nodes.schemas import IssueSnapshot

# Each conflict retry walks refresh → reconcile → plan → dispatch
RECURSION_LIMIT = 100


def _build_triage_graph() -> StateGraph:
    """Build the triage graph.

    intake → extract → classify → assess → reconcile → plan → dispatch,
    with a skip branch after intake and a refresh loop after dispatch.
    """
    workflow = StateGraph(TriageState)

    workflow.add_node("intake", intake_node)
    workflow.add_node("skip", skip_node)
    workflow.add_node("extract", extract_node)
    workflow.add_node("classify", classify_node)
    workflow.add_node("assess", assess_node)
    workflow.add_node("refresh", refresh_node)
    workflow.add_node("reconcile", reconcile_node)
    workflow.add_node("plan", plan_node)
    workflow.add_node("dispatch", dispatch_node)

    workflow.set_entry_point("intake")
    workflow.add_conditional_edges(
        "intake",
        route_after_intake,
        {
            "skip": "skip",
            "extract": "extract",
        },
    )
    workflow.add_edge("skip", END)

    workflow.add_edge("extract", "classify")
    workflow.add_edge("classify", "assess")
    workflow.add_edge("assess", "reconcile")
    workflow.add_edge("reconcile", "plan")
    workflow.add_edge("plan", "dispatch")

    workflow.add_conditional_edges(
        "dispatch",
        route_after_dispatch,
        {
            "refresh": "refresh",
            "end": END,
        },
    )
    workflow.add_edge("refresh", "reconcile")

    return workflow


def create_triage_workflow(
    checkpointer: Optional[BaseCheckpointSaver] = None,
) -> StateGraph:
    """Create the triage workflow with optional checkpointing."""
    return _build_triage_graph().compile(checkpointer=checkpointer)


triage_graph = create_triage_workflow()


def run_triage(
    initial: dict[str, Any],
    tracker: Tracker,
    config: Optional[TriageConfig] = None,
) -> dict[str, Any]:
    """Run one triage pass and return the final workflow state.

    Args:
        initial: Either ``{"issue_number": n, "event": "opened"}`` or
            ``{"snapshot": snapshot}``.
        tracker: Tracker to read from and write to.
        config: Loaded configuration; read from the working directory if omitted.
    """
    return triage_graph.invoke(
        initial,
        config={
            "configurable": {
                "tracker": tracker,
                "settings": config or load_config(),
            },
            "recursion_limit": RECURSION_LIMIT,
        },
    )


def triage_issue(
    issue_number: int,
    tracker: Tracker,
    config: Optional[TriageConfig] = None,
    event: str = "opened",
) -> DispatchReport:
    """Triage an issue by number and return the dispatch report."""
    result = run_triage({"issue_number": issue_number, "event": event}, tracker, config)
    return result["report"]


def triage_snapshot(
    snapshot: IssueSnapshot,
    tracker: Tracker,
    config: Optional[TriageConfig] = None,
) -> DispatchReport:
    """Triage an issue snapshot that arrived with its event."""
    result = run_triage({"snapshot": snapshot}, tracker, config)
    return result["report"]


def triage_event(
    payload: dict[str, Any],
    tracker: Tracker,
    config: Optional[TriageConfig] = None,
) -> DispatchReport:
    """Triage a GitHub ``issues`` webhook payload."""
    snapshot = snapshot_from_event(payload)
    result = run_triage(
        {
            "snapshot": snapshot,
            "event": payload.get("action", snapshot.event.value),
            "is_pull_request": "pull_request" in payload["issue"],
        },
        tracker,
        config,
    )
    return result["report"]
