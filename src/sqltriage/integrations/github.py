"""GitHub API integration."""

import os
from typing import Optional

from github import Github

from sqltriage.config import TriageConfig, load_config
from sqltriage.errors import ConflictingUpdateError
from sqltriage.labels import ESCALATION_LABEL
from sqltriage.nodes.schemas import EventKind, IssueSnapshot


def get_github_client() -> Github:
    """Get authenticated GitHub client."""
    token = os.environ.get("GITHUB_TOKEN")
    if not token:
        raise ValueError("GITHUB_TOKEN environment variable is required")
    return Github(token)


class GitHubTracker:
    """Tracker backed by the GitHub REST API through PyGithub.

    Retries and rate limiting are left to PyGithub. The label check in
    ``update_issue`` reads labels right before the write; GitHub offers no
    conditional label update, so a write that lands between the read and the
    edit is not detected.
    """

    def __init__(
        self,
        repo: str,
        config: Optional[TriageConfig] = None,
        client: Optional[Github] = None,
    ):
        self.repo = repo
        self.config = config or load_config()
        self._client = client
        self._repository = None

    @property
    def repository(self):
        if self._repository is None:
            client = self._client or get_github_client()
            self._repository = client.get_repo(self.repo)
        return self._repository

    def get_snapshot(
        self, issue_id: int, event: EventKind | str = EventKind.OPENED
    ) -> IssueSnapshot:
        """Fetch an issue and freeze it into a snapshot."""
        issue = self.repository.get_issue(issue_id)
        return IssueSnapshot.from_markdown(
            id=issue.number,
            title=issue.title,
            body=issue.body,
            labels=[label.name for label in issue.labels],
            event=event,
            timestamp=issue.updated_at,
        )

    def get_labels(self, issue_id: int) -> list[str]:
        issue = self.repository.get_issue(issue_id)
        return [label.name for label in issue.get_labels()]

    def capabilities(self) -> frozenset[str]:
        return self.config.granted_capabilities()

    def add_comment(self, issue_id: int, body: str) -> None:
        """Post a comment on an issue."""
        self.repository.get_issue(issue_id).create_comment(body)

    def update_issue(
        self,
        issue_id: int,
        title: str,
        labels: list[str],
        expected_labels: Optional[list[str]] = None,
    ) -> None:
        """Write the full label list, keeping the title as it is."""
        issue = self.repository.get_issue(issue_id)
        if expected_labels is not None:
            current = [label.name for label in issue.get_labels()]
            if set(current) != set(expected_labels):
                raise ConflictingUpdateError(issue_id, list(expected_labels), current)
        issue.edit(title=title, labels=labels)

    def create_escalation(self, title: str, body: str) -> int:
        """Open a tracking issue describing a missing capability."""
        issue = self.repository.create_issue(
            title=title, body=body, labels=[ESCALATION_LABEL]
        )
        return issue.number
