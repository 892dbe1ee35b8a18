"""Exceptions raised inside the triage pipeline.

Only ``ConflictingUpdateError`` is expected to come from the tracker; the
others are raised by the dispatcher and converted into recorded outcomes
(dropped intents, escalations) before they reach the caller.
"""


class TriageError(Exception):
    """Base class for triage pipeline errors."""


class QuotaExceededError(TriageError):
    """Raised when an intent would exceed its per-run ceiling."""

    def __init__(self, kind: str, limit: int):
        self.kind = kind
        self.limit = limit
        super().__init__(f"Quota for {kind} exhausted (limit {limit} per run)")


class CapabilityMissingError(TriageError):
    """Raised when a safe output needs a capability the run was not granted."""

    def __init__(self, kind: str, capability: str):
        self.kind = kind
        self.capability = capability
        super().__init__(f"{kind} requires capability '{capability}'")


class ConflictingUpdateError(TriageError):
    """Raised by a tracker when a label write is based on stale labels."""

    def __init__(self, issue_id: int, expected: list[str], actual: list[str]):
        self.issue_id = issue_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Labels on #{issue_id} changed concurrently: "
            f"expected {expected}, found {actual}"
        )


class InvalidTransitionError(TriageError):
    """Raised when the dispatcher is asked for a transition it does not allow."""

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition from {from_state} to {to_state}")
