"""Tests for the Typer CLI."""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from sqltriage.cli import app
from sqltriage.config import load_config
from sqltriage.integrations.memory import InMemoryTracker

runner = CliRunner()

TSQL_BODY = "Using sqlfluff 3.0.7.\n\n```sql\nSELECT TOP 10 * FROM users;\n```\n"


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    """Run every command in an empty directory so no repo config is picked up."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LANGCHAIN_API_KEY", raising=False)
    for name in (
        "SQLTRIAGE_SCORER",
        "SQLTRIAGE_MODEL_SCORER",
        "SQLTRIAGE_MAX_UPDATE_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


class TestClassifyCommand:
    """Tests for the offline classify command."""

    def test_complete_bug(self):
        result = runner.invoke(
            app,
            ["classify", "--title", "TOP clause not parsing in T-SQL", "--body", TSQL_BODY],
        )
        assert result.exit_code == 0
        assert "Type: bug" in result.output
        assert "Dialect: tsql" in result.output
        assert "Component: parser" in result.output
        assert "Completeness: complete" in result.output
        assert "Missing" not in result.output

    def test_needs_info(self):
        result = runner.invoke(app, ["classify", "-t", "it doesn't work"])
        assert result.exit_code == 0
        assert "Completeness: needs-info" in result.output
        assert "Missing: sql-example, dialect-or-config, expected-vs-actual" in result.output

    def test_body_file(self, tmp_path):
        body_file = tmp_path / "issue.md"
        body_file.write_text(TSQL_BODY)
        result = runner.invoke(
            app, ["classify", "-t", "Crash", "--body-file", str(body_file)]
        )
        assert result.exit_code == 0
        assert "Dialect: tsql" in result.output


class TestTriageCommand:
    """Tests for the triage command with a stand-in tracker."""

    @patch("sqltriage.cli.GitHubTracker")
    def test_dry_run(self, mock_tracker_cls):
        tracker = InMemoryTracker()
        tracker.add_issue(5, "it doesn't work")
        mock_tracker_cls.return_value = tracker

        result = runner.invoke(app, ["triage", "owner/repo", "--issue", "5", "--dry-run"])

        assert result.exit_code == 0
        assert "Outcome: done" in result.output
        assert "[DRY RUN]" in result.output
        assert "update-issue: labels=['type:bug', 'status:needs-info']" in result.output
        assert "add-comment:" in result.output
        assert tracker.issues[5].labels == []

    @patch("sqltriage.cli.GitHubTracker")
    def test_applies_labels(self, mock_tracker_cls):
        tracker = InMemoryTracker()
        tracker.add_issue(5, "TOP clause not parsing in T-SQL", TSQL_BODY)
        mock_tracker_cls.return_value = tracker

        result = runner.invoke(app, ["triage", "owner/repo", "-i", "5"])

        assert result.exit_code == 0
        assert "update-issue: executed" in result.output
        assert "type:bug" in tracker.issues[5].labels


class TestEventCommand:
    """Tests for the GitHub Actions event command."""

    @patch("sqltriage.cli.GitHubTracker")
    def test_event_payload(self, mock_tracker_cls, tmp_path):
        tracker = InMemoryTracker()
        tracker.add_issue(3, "it doesn't work")
        mock_tracker_cls.return_value = tracker
        payload = tmp_path / "event.json"
        payload.write_text(
            json.dumps(
                {
                    "action": "opened",
                    "issue": {"number": 3, "title": "it doesn't work", "body": None},
                }
            )
        )

        result = runner.invoke(
            app, ["event", "--path", str(payload), "--repo", "owner/repo"]
        )

        assert result.exit_code == 0
        assert "(opened event)" in result.output
        assert tracker.issues[3].labels == ["type:bug", "status:needs-info"]
        assert len(tracker.issues[3].comments) == 1

    def test_missing_payload(self, monkeypatch):
        monkeypatch.delenv("GITHUB_EVENT_PATH", raising=False)
        monkeypatch.delenv("GITHUB_REPOSITORY", raising=False)
        result = runner.invoke(app, ["event"])
        assert result.exit_code == 1

    def test_payload_without_issue(self, tmp_path):
        payload = tmp_path / "event.json"
        payload.write_text(json.dumps({"action": "created"}))
        result = runner.invoke(
            app, ["event", "--path", str(payload), "--repo", "owner/repo"]
        )
        assert result.exit_code == 1
        assert "no issue" in result.output


class TestInitCommand:
    """Tests for the init command."""

    def test_requires_git_repo(self):
        result = runner.invoke(app, ["init", "--skip-labels"])
        assert result.exit_code == 1
        assert "Not a git repository" in result.output

    def test_writes_workflow_and_config(self, tmp_path):
        (tmp_path / ".git").mkdir()

        result = runner.invoke(app, ["init", "--skip-labels"])

        assert result.exit_code == 0
        workflow = tmp_path / ".github" / "workflows" / "sqltriage.yml"
        config = tmp_path / ".github" / "sqltriage.yml"
        assert "sqltriage event" in workflow.read_text()
        assert "safe-outputs" in config.read_text()

    def test_generated_config_loads(self, tmp_path):
        (tmp_path / ".git").mkdir()
        runner.invoke(app, ["init", "--skip-labels"])

        config = load_config(tmp_path)

        assert config.triggers == ["opened", "edited"]
        assert config.safe_outputs["add-comment"] == 1
        assert config.retry.max_update_attempts == 3
