"""In-process trackers for offline runs and dry runs."""

from dataclasses import dataclass, field
from typing import Any, Optional

from sqltriage.errors import ConflictingUpdateError
from sqltriage.integrations.tracker import Tracker
from sqltriage.nodes.schemas import EventKind, IssueSnapshot

ALL_CAPABILITIES = frozenset({"add-comment", "update-issue", "missing-tool", "noop"})


@dataclass
class StoredIssue:
    title: str
    body: str = ""
    labels: list[str] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


class InMemoryTracker:
    """Tracker that keeps issues in a dict.

    ``concurrent_edits`` simulates other actors: each queued label list is
    applied to the issue just before the next ``update_issue`` call, which
    then fails with ``ConflictingUpdateError`` because its expected labels
    are stale.
    """

    def __init__(self, capabilities: Optional[frozenset[str]] = None):
        self.issues: dict[int, StoredIssue] = {}
        self.escalations: list[dict[str, Any]] = []
        self.concurrent_edits: list[list[str]] = []
        self.update_calls = 0
        self._capabilities = ALL_CAPABILITIES if capabilities is None else capabilities

    def add_issue(
        self,
        issue_id: int,
        title: str,
        body: str = "",
        labels: Optional[list[str]] = None,
    ) -> StoredIssue:
        issue = StoredIssue(title=title, body=body, labels=list(labels or []))
        self.issues[issue_id] = issue
        return issue

    def get_snapshot(
        self, issue_id: int, event: EventKind | str = EventKind.OPENED
    ) -> IssueSnapshot:
        issue = self.issues[issue_id]
        return IssueSnapshot.from_markdown(
            id=issue_id,
            title=issue.title,
            body=issue.body,
            labels=issue.labels,
            event=event,
        )

    def get_labels(self, issue_id: int) -> list[str]:
        return list(self.issues[issue_id].labels)

    def capabilities(self) -> frozenset[str]:
        return self._capabilities

    def add_comment(self, issue_id: int, body: str) -> None:
        self.issues[issue_id].comments.append(body)

    def update_issue(
        self,
        issue_id: int,
        title: str,
        labels: list[str],
        expected_labels: Optional[list[str]] = None,
    ) -> None:
        self.update_calls += 1
        issue = self.issues[issue_id]
        if self.concurrent_edits:
            issue.labels = list(self.concurrent_edits.pop(0))
        if expected_labels is not None and set(issue.labels) != set(expected_labels):
            raise ConflictingUpdateError(issue_id, list(expected_labels), list(issue.labels))
        issue.title = title
        issue.labels = list(labels)

    def create_escalation(self, title: str, body: str) -> int:
        number = 10_000 + len(self.escalations)
        self.escalations.append({"number": number, "title": title, "body": body})
        return number


class DryRunTracker:
    """Reads through to another tracker and records writes instead of sending them."""

    def __init__(self, inner: Tracker):
        self.inner = inner
        self.actions: list[dict[str, Any]] = []

    def get_snapshot(
        self, issue_id: int, event: EventKind | str = EventKind.OPENED
    ) -> IssueSnapshot:
        return self.inner.get_snapshot(issue_id, event)

    def get_labels(self, issue_id: int) -> list[str]:
        return self.inner.get_labels(issue_id)

    def capabilities(self) -> frozenset[str]:
        return self.inner.capabilities()

    def add_comment(self, issue_id: int, body: str) -> None:
        self.actions.append({"kind": "add-comment", "issue": issue_id, "body": body})

    def update_issue(
        self,
        issue_id: int,
        title: str,
        labels: list[str],
        expected_labels: Optional[list[str]] = None,
    ) -> None:
        self.actions.append(
            {"kind": "update-issue", "issue": issue_id, "title": title, "labels": labels}
        )

    def create_escalation(self, title: str, body: str) -> int:
        self.actions.append({"kind": "missing-tool", "title": title, "body": body})
        return 0
