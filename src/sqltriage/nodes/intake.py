"""Intake node - builds the issue snapshot and reads its current labels."""

from typing import Any, Optional

from langchain_core.runnables import RunnableConfig

from sqltriage.config import TriageConfig
from sqltriage.graph.state import TriageState
from sqltriage.integrations.tracker import Tracker
from sqltriage.nodes.dispatch import start_run
from sqltriage.nodes.schemas import EventKind, IssueSnapshot
from sqltriage.observability import log_node_event, traced_node

EVENT_KINDS = {kind.value for kind in EventKind}


def snapshot_from_event(payload: dict[str, Any]) -> IssueSnapshot:
    """Build a snapshot from a GitHub ``issues`` webhook payload."""
    issue = payload.get("issue")
    if not issue:
        raise ValueError("Event payload has no 'issue' object")
    action = payload.get("action", EventKind.OPENED.value)
    return IssueSnapshot.from_markdown(
        id=issue["number"],
        title=issue.get("title", ""),
        body=issue.get("body"),
        labels=[label["name"] for label in issue.get("labels", [])],
        event=action if action in EVENT_KINDS else EventKind.OPENED,
    )


def _skip_reason(event: str, state: TriageState, settings: TriageConfig) -> Optional[str]:
    if state.get("is_pull_request"):
        return "Event belongs to a pull request, not an issue"
    if event not in EVENT_KINDS or event not in settings.triggers:
        return f"Event '{event}' is not a configured trigger ({', '.join(settings.triggers)})"
    return None


@traced_node("intake")
def intake_node(state: TriageState, config: RunnableConfig) -> dict:
    """Fetch the issue (unless the event carried it) and its current labels."""
    tracker: Tracker = config["configurable"]["tracker"]
    settings: TriageConfig = config["configurable"]["settings"]

    snapshot = state.get("snapshot")
    event = state.get("event") or (snapshot.event.value if snapshot else EventKind.OPENED.value)

    if snapshot is None:
        kind = event if event in EVENT_KINDS else EventKind.OPENED
        snapshot = tracker.get_snapshot(state["issue_number"], kind)
    else:
        # Labels in an event payload can be stale by the time the run starts
        snapshot = snapshot.with_labels(tracker.get_labels(snapshot.id))

    result = {"snapshot": snapshot, "event": event, **start_run(settings)}

    skip_reason = _skip_reason(event, state, settings)
    if skip_reason:
        log_node_event("intake", "skipping", "warning", reason=skip_reason)
        result["skip_reason"] = skip_reason
    return result


@traced_node("refresh")
def refresh_node(state: TriageState, config: RunnableConfig) -> dict:
    """Re-read labels before another reconcile-and-dispatch attempt."""
    tracker: Tracker = config["configurable"]["tracker"]
    snapshot = state["snapshot"]
    labels = tracker.get_labels(snapshot.id)
    log_node_event("refresh", "labels re-read", labels=labels)
    return {"snapshot": snapshot.with_labels(labels)}
