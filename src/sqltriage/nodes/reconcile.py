"""Label reconciliation node - additive diff of desired vs existing labels."""

from typing import Iterable

from sqltriage.graph.state import TriageState
from sqltriage.labels import (
    PLACEHOLDER_LABELS,
    label_namespace,
    make_label,
)
from sqltriage.nodes.schemas import (
    UNSPECIFIED_DIALECT,
    ClassificationResult,
    CompletenessReport,
    LabelDiff,
)
from sqltriage.observability import log_node_event, traced_node


def desired_labels(
    classification: ClassificationResult, report: CompletenessReport
) -> list[str]:
    """Labels the current classification would like the issue to carry."""
    labels = [make_label("type", classification.type)]
    if classification.dialect != UNSPECIFIED_DIALECT:
        labels.append(make_label("dialect", classification.dialect))
    if classification.component != "unknown":
        labels.append(make_label("component", classification.component))
    labels.append(make_label("status", report.completeness))
    return labels


def _occupied_namespaces(existing: Iterable[str]) -> set[str]:
    return {
        namespace
        for label in existing
        if label not in PLACEHOLDER_LABELS
        and (namespace := label_namespace(label)) is not None
    }


def reconcile(
    classification: ClassificationResult,
    report: CompletenessReport,
    existing: Iterable[str],
) -> LabelDiff:
    """Diff desired labels against the labels already on the issue.

    Only missing labels are proposed. A desired label is skipped when its
    namespace already holds a label, so a stale ``type:bug`` stays and no
    second ``type:*`` is added next to it. Nothing is ever removed.
    """
    existing = tuple(existing)
    occupied = _occupied_namespaces(existing)

    to_add = []
    for label in desired_labels(classification, report):
        if label in existing or label in to_add:
            continue
        if label_namespace(label) in occupied:
            continue
        to_add.append(label)

    return LabelDiff(to_add=tuple(to_add), existing=existing)


@traced_node("reconcile")
def reconcile_node(state: TriageState) -> dict:
    """Reconcile against the labels read right before this step."""
    snapshot = state["snapshot"]
    diff = reconcile(state["classification"], state["completeness"], snapshot.labels)
    log_node_event("reconcile", "label diff", add=list(diff.to_add) or None)
    return {"label_diff": diff}
