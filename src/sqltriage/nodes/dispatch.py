"""Output dispatch node - quota-guarded execution of planned intents.

The dispatcher is a small state machine:

    Idle → Computing → Dispatching → Done | Blocked | Escalated

``Dispatching → Computing`` is only taken when the tracker rejects a stale
label write and the run still has attempts left; the workflow then re-reads
labels and plans again. Every intent leaves a record, whether it was
executed, dropped, escalated or hit a conflict.
"""

from enum import Enum
from typing import Literal, Optional

from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field

from sqltriage.config import TriageConfig
from sqltriage.errors import (
    CapabilityMissingError,
    ConflictingUpdateError,
    InvalidTransitionError,
    QuotaExceededError,
)
from sqltriage.graph.state import TriageState
from sqltriage.integrations.tracker import Tracker
from sqltriage.nodes.schemas import (
    ActionIntent,
    CommentIntent,
    EscalateIntent,
    IssueSnapshot,
    NoopIntent,
    UpdateLabelsIntent,
)
from sqltriage.observability import log_node_event, traced_node


class DispatchState(str, Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    DISPATCHING = "dispatching"
    DONE = "done"
    BLOCKED = "blocked"
    ESCALATED = "escalated"


TERMINAL_STATES = frozenset(
    {DispatchState.DONE, DispatchState.BLOCKED, DispatchState.ESCALATED}
)

VALID_TRANSITIONS: dict[DispatchState, frozenset[DispatchState]] = {
    DispatchState.IDLE: frozenset({DispatchState.COMPUTING}),
    DispatchState.COMPUTING: frozenset({DispatchState.DISPATCHING}),
    DispatchState.DISPATCHING: frozenset(
        {
            DispatchState.DONE,
            DispatchState.BLOCKED,
            DispatchState.ESCALATED,
            DispatchState.COMPUTING,
        }
    ),
    DispatchState.DONE: frozenset(),
    DispatchState.BLOCKED: frozenset(),
    DispatchState.ESCALATED: frozenset(),
}

# Execution order when several intents are planned
KIND_ORDER = ["update-issue", "add-comment", "missing-tool", "noop"]

# Kinds the host always provides
ALWAYS_GRANTED = frozenset({"missing-tool", "noop"})


class DispatchQuota(BaseModel):
    """Per-run counters with checked increments. ``None`` means unlimited."""

    limits: dict[str, Optional[int]]
    used: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_config(cls, config: TriageConfig) -> "DispatchQuota":
        return cls(limits=config.quota_limits())

    def remaining(self, kind: str) -> Optional[int]:
        limit = self.limits.get(kind)
        if limit is None:
            return None
        return max(limit - self.used.get(kind, 0), 0)

    def acquire(self, kind: str) -> None:
        """Count one use of ``kind`` or raise if its ceiling is reached."""
        limit = self.limits.get(kind)
        if limit is not None and self.used.get(kind, 0) >= limit:
            raise QuotaExceededError(kind, limit)
        self.used[kind] = self.used.get(kind, 0) + 1

    def release(self, kind: str) -> None:
        """Give back a use whose write never landed."""
        if self.used.get(kind, 0) > 0:
            self.used[kind] -= 1


class DispatchRecord(BaseModel):
    """Audit entry for one intent."""

    kind: str
    status: Literal["executed", "dropped", "escalated", "conflict"]
    detail: str = ""
    escalation_issue: Optional[int] = None


class DispatchReport(BaseModel):
    """Outcome of one triage run."""

    issue_id: int
    state: DispatchState
    attempts: int = 1
    executed: list[ActionIntent] = Field(default_factory=list)
    records: list[DispatchRecord] = Field(default_factory=list)
    transitions: list[tuple[DispatchState, DispatchState]] = Field(default_factory=list)

    def count(self, kind: str) -> int:
        """Number of executed intents of one kind."""
        return sum(1 for intent in self.executed if intent.kind == kind)


def _escalation_title(snapshot: IssueSnapshot, capability: str) -> str:
    return f"[sqltriage] Missing capability '{capability}' while triaging #{snapshot.id}"


def _escalation_body(snapshot: IssueSnapshot, intent: ActionIntent, reason: str) -> str:
    return (
        f"The triage run for #{snapshot.id} ({snapshot.title!r}) planned a "
        f"`{intent.kind}` output but could not execute it.\n\n"
        f"**Reason:** {reason}\n\n"
        "Grant the capability in the workflow configuration (safe-outputs, "
        "permissions and tools) and edit the issue to re-run triage."
    )


class OutputDispatcher:
    """Execute planned intents against a tracker within a per-run quota."""

    def __init__(
        self,
        tracker: Tracker,
        quota: DispatchQuota,
        capabilities: Optional[frozenset[str]] = None,
        state: DispatchState = DispatchState.IDLE,
        config: Optional[TriageConfig] = None,
    ):
        self.tracker = tracker
        self.config = config
        self.quota = quota
        self.capabilities = (
            tracker.capabilities() if capabilities is None else capabilities
        )
        self.state = state
        self.transitions: list[tuple[DispatchState, DispatchState]] = []
        self.records: list[DispatchRecord] = []
        self.executed: list[ActionIntent] = []

    def transition(self, to_state: DispatchState) -> None:
        if to_state not in VALID_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state.value, to_state.value)
        self.transitions.append((self.state, to_state))
        self.state = to_state

    def begin(self) -> None:
        """Mark the start of computation for a run."""
        self.transition(DispatchState.COMPUTING)

    def _require(self, kind: str) -> None:
        if kind in ALWAYS_GRANTED or kind in self.capabilities:
            return
        # Escalate on the unmet grant so kinds blocked by it share one issue
        capability = self.config.missing_capability(kind) if self.config else None
        raise CapabilityMissingError(kind, capability or kind)

    def _record(self, kind: str, status: str, detail: str = "", **extra) -> None:
        self.records.append(DispatchRecord(kind=kind, status=status, detail=detail, **extra))

    def _escalate(
        self, snapshot: IssueSnapshot, intent: ActionIntent, error: CapabilityMissingError
    ) -> int:
        escalation = EscalateIntent(capability=error.capability, reason=str(error))
        self.quota.acquire(escalation.kind)
        number = self.tracker.create_escalation(
            _escalation_title(snapshot, error.capability),
            _escalation_body(snapshot, intent, str(error)),
        )
        self.executed.append(escalation)
        self._record(
            intent.kind, "escalated", str(error), escalation_issue=number
        )
        log_node_event(
            "dispatch", "capability missing, escalated", "warning",
            kind=intent.kind, escalation=number,
        )
        return number

    def _execute(self, snapshot: IssueSnapshot, intent: ActionIntent) -> None:
        if isinstance(intent, UpdateLabelsIntent):
            self.tracker.update_issue(
                snapshot.id,
                title=intent.title,
                labels=intent.labels,
                expected_labels=list(snapshot.labels),
            )
        elif isinstance(intent, CommentIntent):
            self.tracker.add_comment(snapshot.id, intent.body)
        elif isinstance(intent, EscalateIntent):
            self.tracker.create_escalation(
                _escalation_title(snapshot, intent.capability), intent.reason
            )
        elif isinstance(intent, NoopIntent):
            log_node_event("dispatch", "noop", reason=intent.reason)

    def dispatch(
        self,
        snapshot: IssueSnapshot,
        intents: list[ActionIntent],
        *,
        final_attempt: bool = True,
    ) -> DispatchState:
        """Dispatch intents and move to a terminal state.

        Raises:
            ConflictingUpdateError: The label write was stale and
                ``final_attempt`` is False. The dispatcher is back in
                ``Computing`` and nothing after the label update was sent.
        """
        self.transition(DispatchState.DISPATCHING)
        escalated: dict[str, int] = {}
        blocked = False

        for intent in sorted(intents, key=lambda i: KIND_ORDER.index(i.kind)):
            try:
                self._require(intent.kind)
            except CapabilityMissingError as e:
                if e.capability in escalated:
                    self._record(
                        intent.kind, "escalated", str(e),
                        escalation_issue=escalated[e.capability],
                    )
                else:
                    escalated[e.capability] = self._escalate(snapshot, intent, e)
                continue

            try:
                self.quota.acquire(intent.kind)
            except QuotaExceededError as e:
                blocked = True
                self._record(intent.kind, "dropped", str(e))
                log_node_event("dispatch", "intent dropped", "warning", kind=intent.kind)
                continue

            try:
                self._execute(snapshot, intent)
            except ConflictingUpdateError as e:
                self.quota.release(intent.kind)
                self._record(intent.kind, "conflict", str(e))
                if not final_attempt:
                    self.transition(DispatchState.COMPUTING)
                    raise
                blocked = True
                log_node_event(
                    "dispatch", "label update still conflicting, giving up", "error"
                )
                continue

            self.executed.append(intent)
            self._record(intent.kind, "executed")

        if escalated:
            self.transition(DispatchState.ESCALATED)
        elif blocked:
            self.transition(DispatchState.BLOCKED)
        else:
            self.transition(DispatchState.DONE)
        return self.state


def start_run(config: TriageConfig) -> dict:
    """Fresh per-run dispatch fields: new quota, dispatcher in Computing."""
    return {
        "quota": DispatchQuota.from_config(config),
        "dispatch_state": DispatchState.COMPUTING,
        "transitions": [(DispatchState.IDLE, DispatchState.COMPUTING)],
        "attempts": 0,
        "records": [],
        "executed": [],
    }


def _dispatch_update(
    state: TriageState, dispatcher: OutputDispatcher, attempts: int
) -> dict:
    update = {
        "dispatch_state": dispatcher.state,
        "attempts": attempts,
        "quota": dispatcher.quota,
        "records": state.get("records", []) + dispatcher.records,
        "executed": state.get("executed", []) + dispatcher.executed,
        "transitions": state.get("transitions", []) + dispatcher.transitions,
    }
    if dispatcher.state in TERMINAL_STATES:
        update["report"] = DispatchReport(
            issue_id=state["snapshot"].id,
            state=dispatcher.state,
            attempts=attempts,
            executed=update["executed"],
            records=update["records"],
            transitions=update["transitions"],
        )
    return update


@traced_node("dispatch")
def dispatch_node(state: TriageState, config: RunnableConfig) -> dict:
    """Dispatch planned intents; a stale label write sends the run back."""
    tracker: Tracker = config["configurable"]["tracker"]
    settings: TriageConfig = config["configurable"]["settings"]

    attempts = state.get("attempts", 0) + 1
    dispatcher = OutputDispatcher(
        tracker,
        quota=state["quota"],
        state=state.get("dispatch_state", DispatchState.COMPUTING),
        config=settings,
    )
    try:
        dispatcher.dispatch(
            state["snapshot"],
            state["intents"],
            final_attempt=attempts >= settings.retry.max_update_attempts,
        )
    except ConflictingUpdateError as e:
        log_node_event("dispatch", "conflicting label update, retrying", "warning",
                       attempt=attempts, error=e)

    return _dispatch_update(state, dispatcher, attempts)


@traced_node("skip")
def skip_node(state: TriageState, config: RunnableConfig) -> dict:
    """Acknowledge an event the run does not act on."""
    tracker: Tracker = config["configurable"]["tracker"]
    settings: TriageConfig = config["configurable"]["settings"]
    dispatcher = OutputDispatcher(
        tracker,
        quota=state["quota"],
        state=state.get("dispatch_state", DispatchState.COMPUTING),
        config=settings,
    )
    dispatcher.dispatch(state["snapshot"], [NoopIntent(reason=state["skip_reason"])])
    return _dispatch_update(state, dispatcher, 0)
