"""Completeness node - checks an issue against a type-dependent checklist."""

import re

from sqltriage.graph.state import TriageState
from sqltriage.nodes.schemas import (
    UNSPECIFIED_DIALECT,
    ChecklistItem,
    ClassificationResult,
    CompletenessReport,
    IssueSnapshot,
)
from sqltriage.observability import log_node_event, traced_node

CHECKLISTS: dict[str, tuple[ChecklistItem, ...]] = {
    "bug": ("sql-example", "dialect-or-config", "expected-vs-actual"),
    "feature": ("use-case",),
}

INLINE_CODE = re.compile(r"`([^`\n]+)`")

SQL_STATEMENT = re.compile(
    r"\bselect\s+\S"
    r"|\binsert\s+into\b"
    r"|\bupdate\s+\S+\s+set\b"
    r"|\bdelete\s+from\b"
    r"|\bcreate\s+(?:or\s+replace\s+)?(?:temp(?:orary)?\s+)?"
    r"(?:table|view|function|procedure|index|schema)\b"
    r"|\balter\s+table\b"
    r"|\bdrop\s+(?:table|view)\b"
    r"|\bmerge\s+into\b"
    r"|\bwith\s+\w+\s+as\s*\(",
    re.IGNORECASE,
)

CONFIG_SNIPPET = re.compile(
    r"\.sqlfluff\b|\[sqlfluff(?::[\w:]+)?\]|\bdialect\s*[=:]|--dialect\b",
    re.IGNORECASE,
)

EXPECTATION = re.compile(
    r"\bexpect(?:ed|s|ing|ation)?\b"
    r"|\bshould(?:n'?t| not)?\b"
    r"|\bsupposed to\b"
    r"|\binstead(?: of)?\b"
    r"|\bactual(?:ly)?\b"
    r"|\bdesired\b",
    re.IGNORECASE,
)

OBSERVED_FAILURE = re.compile(
    r"\bnot pars(?:e|ed|ing)\b"
    r"|\bfails? to\b"
    r"|\bunpars(?:e)?able\b"
    r"|\bparse error\b"
    r"|\berror:"
    r"|\btraceback\b"
    r"|\bfalse (?:positive|negative)s?\b"
    r"|\braises?\b"
    r"|\bcrash(?:es|ed)?\b"
    r"|\bL:\s*\d+\s*\|\s*P:\s*\d+",
    re.IGNORECASE,
)

USE_CASE = re.compile(
    r"\buse[- ]?cases?\b"
    r"|\bso that\b"
    r"|\bin order to\b"
    r"|\bbecause\b"
    r"|\bwould (?:allow|let|help|enable)\b"
    r"|\b(?:we|i) (?:need|want|would like)\b"
    r"|\bmotivation\b",
    re.IGNORECASE,
)

VERSION = re.compile(
    r"\b(?:sqlfluff|version)\b[^\n\d]{0,20}v?\d+\.\d+(?:\.\d+)?", re.IGNORECASE
)

# A long enough description reads as a use case even without a marker phrase
USE_CASE_MIN_WORDS = 25


def _has_sql_example(snapshot: IssueSnapshot) -> bool:
    if any(SQL_STATEMENT.search(block.content) for block in snapshot.code_blocks):
        return True
    return any(SQL_STATEMENT.search(span) for span in INLINE_CODE.findall(snapshot.prose))


def _has_dialect_or_config(
    snapshot: IssueSnapshot, classification: ClassificationResult
) -> bool:
    if classification.dialect != UNSPECIFIED_DIALECT:
        return True
    return bool(CONFIG_SNIPPET.search(snapshot.title) or CONFIG_SNIPPET.search(snapshot.body))


def _has_expected_vs_actual(snapshot: IssueSnapshot) -> bool:
    text = f"{snapshot.title}\n{snapshot.prose}"
    if EXPECTATION.search(text) or OBSERVED_FAILURE.search(text):
        return True
    return any(OBSERVED_FAILURE.search(block.content) for block in snapshot.code_blocks)


def _has_use_case(snapshot: IssueSnapshot) -> bool:
    prose = snapshot.prose
    if USE_CASE.search(f"{snapshot.title}\n{prose}"):
        return True
    return len(prose.split()) >= USE_CASE_MIN_WORDS


def evidence_present(
    snapshot: IssueSnapshot, classification: ClassificationResult
) -> tuple[str, ...]:
    """Every piece of evidence found in the issue, whether required or not."""
    checks = {
        "sql-example": lambda: _has_sql_example(snapshot),
        "dialect-or-config": lambda: _has_dialect_or_config(snapshot, classification),
        "expected-vs-actual": lambda: _has_expected_vs_actual(snapshot),
        "use-case": lambda: _has_use_case(snapshot),
        "version": lambda: bool(VERSION.search(snapshot.body)),
    }
    return tuple(item for item, check in checks.items() if check())


def assess(
    snapshot: IssueSnapshot, classification: ClassificationResult
) -> CompletenessReport:
    """Score evidence completeness for the detected issue type.

    Bugs need a SQL example, dialect or config evidence and a description of
    expected vs actual behaviour; feature requests need a use case; other
    types have no mandatory evidence.
    """
    present = evidence_present(snapshot, classification)
    required = CHECKLISTS.get(classification.type, ())
    missing = tuple(item for item in required if item not in present)
    return CompletenessReport(
        completeness="needs-info" if missing else "complete",
        missing=missing,
        present=present,
    )


@traced_node("assess")
def assess_node(state: TriageState) -> dict:
    """Assess completeness and fold it into the classification."""
    report = assess(state["snapshot"], state["classification"])
    classification = state["classification"].model_copy(
        update={"completeness": report.completeness}
    )
    log_node_event(
        "assess",
        report.completeness,
        missing=list(report.missing) or None,
    )
    return {"completeness": report, "classification": classification}
