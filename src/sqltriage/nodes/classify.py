"""Classification node - resolves signals into one category per axis."""

from collections import defaultdict
from typing import Callable, Iterable, Optional

from sqltriage.graph.state import TriageState
from sqltriage.nodes.extract import RULE_CODE_EVIDENCE
from sqltriage.nodes.schemas import (
    UNSPECIFIED_DIALECT,
    Axis,
    ClassificationResult,
    DialectEvidence,
    Signal,
)
from sqltriage.observability import log_node_event, traced_node

# Tie-break orders, highest priority first
TYPE_PRIORITY = ["bug", "feature", "documentation", "question"]
COMPONENT_PRIORITY = [
    "parser",
    "rules",
    "templating",
    "cli",
    "performance",
    "configuration",
]
EVIDENCE_PRIORITY = [e.value for e in DialectEvidence]


def _tally(signals: Iterable[Signal], axis: Axis) -> dict[str, int]:
    totals: dict[str, int] = defaultdict(int)
    for signal in signals:
        if signal.axis == axis:
            totals[signal.category] += signal.weight
    return totals


def _winner(
    totals: dict[str, int], rank: Callable[[str], tuple]
) -> Optional[str]:
    """Category with the highest total; ties go to the lowest rank."""
    if not totals:
        return None
    return min(totals, key=lambda category: (-totals[category], rank(category)))


def _priority_rank(order: list[str]) -> Callable[[str], tuple]:
    return lambda category: (
        order.index(category) if category in order else len(order),
        category,
    )


def resolve_type(signals: Iterable[Signal]) -> str:
    totals = {
        category: weight
        for category, weight in _tally(signals, Axis.TYPE).items()
        if category in TYPE_PRIORITY
    }
    return _winner(totals, _priority_rank(TYPE_PRIORITY)) or "unknown"


def resolve_dialect(signals: Iterable[Signal]) -> str:
    """Heaviest dialect wins; ties go to the strongest kind of evidence."""
    dialect_signals = [s for s in signals if s.axis == Axis.DIALECT]

    best_evidence: dict[str, int] = {}
    for signal in dialect_signals:
        if signal.evidence in EVIDENCE_PRIORITY:
            rank = EVIDENCE_PRIORITY.index(signal.evidence)
        else:
            rank = len(EVIDENCE_PRIORITY)
        best_evidence[signal.category] = min(
            rank, best_evidence.get(signal.category, rank)
        )

    winner = _winner(
        _tally(dialect_signals, Axis.DIALECT),
        lambda category: (best_evidence[category], category),
    )
    return winner or UNSPECIFIED_DIALECT


def resolve_component(signals: Iterable[Signal]) -> str:
    """Heaviest component wins, except that any rule code forces ``rules``."""
    signals = list(signals)
    if any(
        s.axis == Axis.COMPONENT and s.evidence == RULE_CODE_EVIDENCE for s in signals
    ):
        return "rules"
    totals = {
        category: weight
        for category, weight in _tally(signals, Axis.COMPONENT).items()
        if category in COMPONENT_PRIORITY
    }
    return _winner(totals, _priority_rank(COMPONENT_PRIORITY)) or "unknown"


def classify(signals: Iterable[Signal]) -> ClassificationResult:
    """Resolve a signal set into a classification.

    Completeness is left at its default here; the completeness assessor fills
    it in once the checklist has been evaluated.
    """
    signals = list(signals)
    return ClassificationResult(
        type=resolve_type(signals),
        dialect=resolve_dialect(signals),
        component=resolve_component(signals),
    )


@traced_node("classify")
def classify_node(state: TriageState) -> dict:
    """Classify the issue from the extracted signals."""
    classification = classify(state.get("signals", ()))
    log_node_event(
        "classify",
        "classified",
        type=classification.type,
        dialect=classification.dialect,
        component=classification.component,
    )
    return {"classification": classification}
