"""CLI entry point using Typer."""

import json
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

import typer

from sqltriage.config import load_config, setup_langsmith
from sqltriage.graph.workflow import triage_event, triage_issue
from sqltriage.integrations.github import GitHubTracker
from sqltriage.integrations.memory import DryRunTracker
from sqltriage.labels import get_triage_labels
from sqltriage.nodes.assess import assess
from sqltriage.nodes.classify import classify
from sqltriage.nodes.dispatch import DispatchReport
from sqltriage.nodes.extract import extract_signals
from sqltriage.nodes.schemas import IssueSnapshot

app = typer.Typer(
    name="sqltriage",
    help="Rule-based issue triage for a SQL linter",
)


def _print_report(report: DispatchReport) -> None:
    typer.echo(f"\nOutcome: {report.state.value} (attempts: {report.attempts})")
    for record in report.records:
        line = f"  {record.kind}: {record.status}"
        if record.detail:
            line += f" - {record.detail}"
        if record.escalation_issue is not None:
            line += f" (escalation #{record.escalation_issue})"
        typer.echo(line)


def _print_dry_run(tracker: DryRunTracker) -> None:
    typer.echo("\n[DRY RUN] No actions taken on GitHub. Would have sent:")
    if not tracker.actions:
        typer.echo("  (nothing)")
    for action in tracker.actions:
        if action["kind"] == "update-issue":
            typer.echo(f"  update-issue: labels={action['labels']}")
        elif action["kind"] == "add-comment":
            typer.echo("  add-comment:")
            typer.echo("    " + action["body"].replace("\n", "\n    "))
        else:
            typer.echo(f"  {action['kind']}: {action['title']}")


@app.command()
def triage(
    repo: str = typer.Argument(..., help="Repository in owner/repo format"),
    issue: int = typer.Option(..., "--issue", "-i", help="Issue number to triage"),
    event: str = typer.Option("opened", "--event", "-e", help="Triggering event kind"),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Don't apply labels or post comments"
    ),
) -> None:
    """Triage a GitHub issue: classify, label and ask for missing details."""
    setup_langsmith()
    config = load_config()

    typer.echo(f"Triaging issue #{issue} in {repo}...")

    tracker = GitHubTracker(repo, config)
    if dry_run:
        tracker = DryRunTracker(tracker)

    report = triage_issue(issue, tracker, config, event=event)
    _print_report(report)

    if dry_run:
        _print_dry_run(tracker)


@app.command()
def event(
    path: Optional[Path] = typer.Option(
        None,
        "--path",
        "-p",
        help="Event payload JSON (defaults to $GITHUB_EVENT_PATH)",
    ),
    repo: Optional[str] = typer.Option(
        None, "--repo", "-r", help="Repository (defaults to $GITHUB_REPOSITORY)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Don't apply labels or post comments"
    ),
) -> None:
    """Triage the issue from a GitHub Actions `issues` event."""
    setup_langsmith()
    config = load_config()

    event_path = path or os.environ.get("GITHUB_EVENT_PATH")
    repo = repo or os.environ.get("GITHUB_REPOSITORY")
    if not event_path or not repo:
        typer.echo("Error: need an event payload (--path) and a repository (--repo).")
        raise typer.Exit(1)

    payload = json.loads(Path(event_path).read_text())
    if "issue" not in payload:
        typer.echo("Error: event payload has no issue.")
        raise typer.Exit(1)

    typer.echo(
        f"Triaging issue #{payload['issue']['number']} in {repo} "
        f"({payload.get('action', 'unknown')} event)..."
    )

    tracker = GitHubTracker(repo, config)
    if dry_run:
        tracker = DryRunTracker(tracker)

    report = triage_event(payload, tracker, config)
    _print_report(report)

    if dry_run:
        _print_dry_run(tracker)


@app.command(name="classify")
def classify_text(
    title: str = typer.Option(..., "--title", "-t", help="Issue title"),
    body: str = typer.Option("", "--body", "-b", help="Issue body (markdown)"),
    body_file: Optional[Path] = typer.Option(
        None, "--body-file", "-f", help="Read the issue body from a file"
    ),
) -> None:
    """Classify issue text offline, without touching any tracker."""
    config = load_config()
    if body_file is not None:
        body = body_file.read_text()

    snapshot = IssueSnapshot.from_markdown(id=0, title=title, body=body)
    classification = classify(extract_signals(snapshot, config.dialects))
    report = assess(snapshot, classification)

    typer.echo(f"Type: {classification.type}")
    typer.echo(f"Dialect: {classification.dialect}")
    typer.echo(f"Component: {classification.component}")
    typer.echo(f"Completeness: {report.completeness}")
    if report.missing:
        typer.echo(f"Missing: {', '.join(report.missing)}")


@app.command()
def init(
    skip_labels: bool = typer.Option(
        False, "--skip-labels", help="Skip creating GitHub labels"
    ),
    skip_workflow: bool = typer.Option(
        False, "--skip-workflow", help="Skip creating workflow file"
    ),
) -> None:
    """Initialize sqltriage in the current repository.

    Creates:
    - .github/workflows/sqltriage.yml (GitHub Action workflow)
    - .github/sqltriage.yml (configuration)
    - Namespaced GitHub labels (type:*, dialect:*, component:*, status:*)
    """
    if not Path(".git").exists():
        typer.echo("Error: Not a git repository. Run this command from the repo root.")
        raise typer.Exit(1)

    if not shutil.which("gh"):
        typer.echo("Warning: GitHub CLI (gh) not found. Labels will not be created.")
        typer.echo("Install: https://cli.github.com/")
        skip_labels = True

    typer.echo("Initializing sqltriage...\n")

    if not skip_workflow:
        workflow_dir = Path(".github/workflows")
        workflow_dir.mkdir(parents=True, exist_ok=True)
        _write_if_confirmed(workflow_dir / "sqltriage.yml", WORKFLOW_TEMPLATE)
        _write_if_confirmed(Path(".github/sqltriage.yml"), CONFIG_TEMPLATE)

    if not skip_labels:
        typer.echo("\nCreating GitHub labels...")
        for label_name, color, description in get_triage_labels(load_config().dialects):
            result = subprocess.run(
                [
                    "gh",
                    "label",
                    "create",
                    label_name,
                    "--color",
                    color,
                    "--description",
                    description,
                ],
                capture_output=True,
                text=True,
            )
            if result.returncode == 0:
                typer.echo(f"  Created: {label_name}")
            elif "already exists" in result.stderr:
                typer.echo(f"  Exists:  {label_name}")
            else:
                typer.echo(f"  Failed:  {label_name} - {result.stderr.strip()}")

    typer.echo("\n" + "=" * 50)
    typer.echo("Setup complete!")
    typer.echo("=" * 50)
    typer.echo("\nNext steps:")
    typer.echo("1. Review .github/sqltriage.yml (triggers, permissions, safe-outputs)")
    typer.echo("2. Commit and push the workflow and config files:")
    typer.echo("   git add .github/workflows/sqltriage.yml .github/sqltriage.yml")
    typer.echo("   git commit -m 'Add sqltriage workflow'")
    typer.echo("   git push")
    typer.echo("\n3. Open an issue to test!")


def _write_if_confirmed(target: Path, content: str) -> None:
    if target.exists():
        overwrite = typer.confirm(f"{target} already exists. Overwrite?", default=False)
        if not overwrite:
            typer.echo(f"Skipping {target}.")
            return
    target.write_text(content)
    typer.echo(f"Created: {target}")


WORKFLOW_TEMPLATE = """# sqltriage - rule-based issue triage
# Generated by: sqltriage init

name: sqltriage

on:
  issues:
    types: [opened, edited]

permissions:
  contents: read
  issues: write
  pull-requests: read

jobs:
  triage:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - uses: actions/setup-python@v5
        with:
          python-version: "3.12"
      - run: pip install sqltriage
      - run: sqltriage event
        env:
          GITHUB_TOKEN: ${{ secrets.GITHUB_TOKEN }}
"""

CONFIG_TEMPLATE = """# sqltriage configuration
version: "1.0"
on: [opened, edited]
permissions:
  contents: read
  issues: write
  pull-requests: read
tools: [github]
safe-outputs:
  add-comment: {max: 1}
  update-issue: {max: 1}
  missing-tool: {}
  noop: {}
retry:
  max-update-attempts: 3
scorer:
  name: rules
"""


if __name__ == "__main__":
    app()
