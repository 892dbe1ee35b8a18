"""TriageState schema for the LangGraph workflow."""

from typing import Any, Optional, TypedDict


class TriageState(TypedDict, total=False):
    """State schema for one triage run.

    Values are the pydantic models from ``sqltriage.nodes.schemas`` and
    ``sqltriage.nodes.dispatch``; they are typed as ``Any`` here to keep the
    graph package free of import cycles.
    """

    # === Input ===
    issue_number: int
    event: str  # opened / edited
    snapshot: Any  # IssueSnapshot
    is_pull_request: bool

    # === Intake ===
    skip_reason: Optional[str]

    # === Classification ===
    signals: tuple  # tuple[Signal, ...]
    classification: Any  # ClassificationResult
    completeness: Any  # CompletenessReport

    # === Reconcile / plan ===
    label_diff: Any  # LabelDiff
    intents: list  # list[ActionIntent]

    # === Dispatch ===
    quota: Any  # DispatchQuota
    dispatch_state: Any  # DispatchState
    attempts: int
    transitions: list
    records: list  # list[DispatchRecord]
    executed: list  # list[ActionIntent]
    report: Any  # DispatchReport
