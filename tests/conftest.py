"""Pytest configuration and fixtures."""

import os
from pathlib import Path

import pytest

from sqltriage.config import TriageConfig
from sqltriage.integrations.memory import InMemoryTracker
from sqltriage.nodes.schemas import EventKind, IssueSnapshot


def _load_env_file():
    """Load .env file from project root if it exists."""
    env_path = Path(__file__).parent.parent / ".env"
    if not env_path.exists():
        return

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip().strip("\"'")
                if key not in os.environ:
                    os.environ[key] = value


_load_env_file()

# Tests never talk to LangSmith
os.environ["LANGCHAIN_TRACING_V2"] = "false"


def _make_snapshot(
    title: str,
    body: str = "",
    labels: list[str] | None = None,
    issue_id: int = 1,
    event: EventKind | str = EventKind.OPENED,
) -> IssueSnapshot:
    return IssueSnapshot.from_markdown(
        id=issue_id, title=title, body=body, labels=labels, event=event
    )


@pytest.fixture
def make_snapshot():
    """Factory for issue snapshots built from markdown."""
    return _make_snapshot


@pytest.fixture
def settings(monkeypatch) -> TriageConfig:
    """Default configuration, isolated from the environment."""
    for name in (
        "SQLTRIAGE_SCORER",
        "SQLTRIAGE_MODEL_SCORER",
        "SQLTRIAGE_MAX_UPDATE_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)
    return TriageConfig()


@pytest.fixture
def tracker() -> InMemoryTracker:
    return InMemoryTracker()
