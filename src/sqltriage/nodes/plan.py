"""Action planning node - turns triage results into safe-output intents."""

from sqltriage.graph.state import TriageState
from sqltriage.nodes.assess import CHECKLISTS
from sqltriage.nodes.schemas import (
    ActionIntent,
    ClassificationResult,
    CommentIntent,
    CompletenessReport,
    IssueSnapshot,
    LabelDiff,
    NoopIntent,
    UpdateLabelsIntent,
)
from sqltriage.observability import log_node_event, traced_node

COMMENT_MARKER = "<!-- sqltriage:needs-info -->"
COMMENT_FOOTER = "\n\n---\n*🤖 Triaged by sqltriage*"

ITEM_REQUESTS = {
    "sql-example": (
        "**A SQL example** - the smallest query that shows the problem, "
        "in a ```sql code block."
    ),
    "dialect-or-config": (
        "**Your dialect or config** - which dialect you lint with "
        "(e.g. `--dialect tsql`) or the relevant part of your `.sqlfluff` file."
    ),
    "expected-vs-actual": (
        "**Expected vs actual behaviour** - what you expected to happen, "
        "and what happened instead (error output or lint results)."
    ),
    "use-case": (
        "**Your use case** - what you are trying to do and why the current "
        "behaviour does not cover it."
    ),
}

# Intro line per missing-item set; anything else uses DEFAULT_INTRO
INTROS = {
    frozenset(CHECKLISTS["bug"]): (
        "Thanks for opening this! There is not enough here for us to reproduce "
        "the problem yet. Could you add:"
    ),
    frozenset({"sql-example"}): (
        "Thanks for the report! We just need a way to reproduce it:"
    ),
    frozenset({"use-case"}): (
        "Thanks for the suggestion! To help us weigh it up, could you add:"
    ),
}
DEFAULT_INTRO = "Thanks for the report! A few details are still missing:"


def render_comment(report: CompletenessReport) -> str:
    """Render the needs-info template for the missing checklist items."""
    intro = INTROS.get(frozenset(report.missing), DEFAULT_INTRO)
    items = "\n".join(f"- {ITEM_REQUESTS[item]}" for item in report.missing)
    return (
        f"{COMMENT_MARKER}\n{intro}\n\n{items}\n\n"
        "Once the issue is edited with these details it will be triaged again."
        f"{COMMENT_FOOTER}"
    )


def _noop_reason(snapshot: IssueSnapshot, classification: ClassificationResult) -> str:
    labels = ", ".join(snapshot.labels) if snapshot.labels else "no labels"
    return (
        f"Issue #{snapshot.id} is complete and already labelled ({labels}); "
        f"classified as type={classification.type}, dialect={classification.dialect}, "
        f"component={classification.component}. Nothing to change."
    )


def plan_actions(
    snapshot: IssueSnapshot,
    classification: ClassificationResult,
    report: CompletenessReport,
    diff: LabelDiff,
) -> list[ActionIntent]:
    """Decide which safe outputs this run should produce.

    At most one label update (first, since it may need a conflict retry) and
    at most one comment. When neither is needed a single no-op explains why.
    """
    intents: list[ActionIntent] = []

    if len(diff) > 0:
        intents.append(
            UpdateLabelsIntent(
                title=snapshot.title,
                labels=diff.labels,
                added=list(diff.to_add),
            )
        )

    if report.completeness == "needs-info":
        intents.append(CommentIntent(body=render_comment(report)))

    if not intents:
        intents.append(NoopIntent(reason=_noop_reason(snapshot, classification)))

    return intents


@traced_node("plan")
def plan_node(state: TriageState) -> dict:
    """Plan the intents for this run."""
    intents = plan_actions(
        state["snapshot"],
        state["classification"],
        state["completeness"],
        state["label_diff"],
    )
    log_node_event("plan", "planned", intents=[i.kind for i in intents])
    return {"intents": intents}
