"""Namespaced labels used by sqltriage (``axis:category``)."""

from typing import Optional

from sqltriage.config import DEFAULT_DIALECTS

NAMESPACES = ("type", "dialect", "component", "status")

# Labels that record "we could not tell" and never block a real value
PLACEHOLDER_LABELS = frozenset({"type:unknown"})

ESCALATION_LABEL = "triage:missing-tool"


def make_label(namespace: str, value: str) -> str:
    return f"{namespace}:{value}"


def label_namespace(label: str) -> Optional[str]:
    """Namespace of a label we manage, or None for foreign labels."""
    namespace, sep, value = label.partition(":")
    if not sep or not value or namespace not in NAMESPACES:
        return None
    return namespace


# (name, color, description) for `sqltriage init`
TRIAGE_LABELS = [
    ("type:bug", "D73A4A", "Something is not working"),
    ("type:feature", "A2EEEF", "New feature or request"),
    ("type:documentation", "0075CA", "Documentation improvements"),
    ("type:question", "D876E3", "Usage question"),
    ("type:unknown", "EDEDED", "Type could not be determined"),
    ("component:parser", "1D76DB", "Parsing and dialect grammar"),
    ("component:rules", "1D76DB", "Lint rules"),
    ("component:templating", "1D76DB", "Jinja, dbt and placeholder templating"),
    ("component:cli", "1D76DB", "Command line interface"),
    ("component:performance", "1D76DB", "Speed and memory use"),
    ("component:configuration", "1D76DB", "Config files and options"),
    ("status:complete", "0E8A16", "Report has everything needed to act on it"),
    ("status:needs-info", "FBCA04", "More information requested from the reporter"),
    (ESCALATION_LABEL, "D93F0B", "Triage agent lacks a required capability"),
]


def get_triage_labels(dialects: Optional[list[str]] = None) -> list[tuple[str, str, str]]:
    """All labels to create, including one ``dialect:*`` per known dialect."""
    dialect_labels = [
        (make_label("dialect", name), "C5DEF5", f"{name} dialect")
        for name in (dialects or DEFAULT_DIALECTS)
    ]
    return TRIAGE_LABELS + dialect_labels
