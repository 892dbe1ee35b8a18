"""Narrow interface to the issue tracker the triage run writes to."""

from typing import Optional, Protocol, runtime_checkable

from sqltriage.nodes.schemas import EventKind, IssueSnapshot


@runtime_checkable
class Tracker(Protocol):
    """Everything the pipeline needs from an issue tracker.

    Implementations own transport, auth and retry. ``update_issue`` must
    raise ``ConflictingUpdateError`` when the issue's labels no longer match
    ``expected_labels``.
    """

    def get_snapshot(
        self, issue_id: int, event: EventKind | str = EventKind.OPENED
    ) -> IssueSnapshot: ...

    def get_labels(self, issue_id: int) -> list[str]: ...

    def capabilities(self) -> frozenset[str]: ...

    def add_comment(self, issue_id: int, body: str) -> None: ...

    def update_issue(
        self,
        issue_id: int,
        title: str,
        labels: list[str],
        expected_labels: Optional[list[str]] = None,
    ) -> None: ...

    def create_escalation(self, title: str, body: str) -> int: ...
