"""Pydantic schemas for issue snapshots, signals and pipeline results."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

FENCE_PATTERN = re.compile(
    r"^[ \t]*(?P<fence>```|~~~)[ \t]*(?P<lang>[\w+.-]*)[^\n]*\n"
    r"(?P<content>.*?)"
    r"^[ \t]*(?P=fence)[ \t]*$",
    re.MULTILINE | re.DOTALL,
)


class EventKind(str, Enum):
    OPENED = "opened"
    EDITED = "edited"


class Axis(str, Enum):
    TYPE = "type"
    DIALECT = "dialect"
    COMPONENT = "component"


class SignalSource(str, Enum):
    """Where in the issue a signal was found."""

    TITLE = "title"
    PROSE = "prose"
    CODE = "code"
    SCORER = "scorer"


class DialectEvidence(str, Enum):
    """Kind of dialect evidence, in tie-break priority order."""

    MENTION = "mention"
    SYNTAX = "syntax"
    CONFIG = "config"


IssueType = Literal["bug", "feature", "documentation", "question", "unknown"]
Component = Literal[
    "parser", "rules", "templating", "cli", "performance", "configuration", "unknown"
]
Completeness = Literal["complete", "needs-info"]
ChecklistItem = Literal["sql-example", "dialect-or-config", "expected-vs-actual", "use-case"]

UNSPECIFIED_DIALECT = "unspecified"


class CodeBlock(BaseModel):
    """A fenced code block lifted out of an issue body."""

    model_config = ConfigDict(frozen=True)

    language: str = ""
    content: str


def split_code_blocks(markdown: str) -> tuple[str, tuple[CodeBlock, ...]]:
    """Split fenced code blocks out of a markdown body.

    Returns:
        Tuple of (prose with the fenced blocks removed, code blocks in order).
        Unterminated fences are left in the prose.
    """
    blocks = tuple(
        CodeBlock(language=m.group("lang").lower(), content=m.group("content"))
        for m in FENCE_PATTERN.finditer(markdown)
    )
    prose = FENCE_PATTERN.sub("\n", markdown)
    return prose, blocks


class IssueSnapshot(BaseModel):
    """Immutable view of an issue at the time of one triggering event."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    body: str = ""
    code_blocks: tuple[CodeBlock, ...] = ()
    labels: tuple[str, ...] = ()
    event: EventKind = EventKind.OPENED
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_markdown(
        cls,
        id: int,
        title: str,
        body: Optional[str],
        labels: Optional[list[str]] = None,
        event: EventKind | str = EventKind.OPENED,
        timestamp: Optional[datetime] = None,
    ) -> "IssueSnapshot":
        """Build a snapshot from a raw markdown issue body.

        Line endings are normalised to LF; bodies edited in the GitHub web
        UI arrive with CRLF.
        """
        body = (body or "").replace("\r\n", "\n").replace("\r", "\n")
        _, blocks = split_code_blocks(body)
        data = {
            "id": id,
            "title": title or "",
            "body": body,
            "code_blocks": blocks,
            "labels": tuple(labels or ()),
            "event": EventKind(event),
        }
        if timestamp is not None:
            data["timestamp"] = timestamp
        return cls(**data)

    @property
    def prose(self) -> str:
        """Body text with fenced code blocks removed."""
        return split_code_blocks(self.body)[0]

    def with_labels(self, labels: list[str]) -> "IssueSnapshot":
        """Return a copy of this snapshot carrying a refreshed label set."""
        return self.model_copy(update={"labels": tuple(labels)})


class Signal(BaseModel):
    """Evidence that some part of an issue matches an axis category."""

    model_config = ConfigDict(frozen=True)

    axis: Axis
    category: str
    source: SignalSource
    span: tuple[int, int]
    text: str = ""
    weight: int = 1
    evidence: Optional[str] = None


class ClassificationResult(BaseModel):
    """One resolved category per axis."""

    model_config = ConfigDict(frozen=True)

    type: IssueType = "unknown"
    dialect: str = UNSPECIFIED_DIALECT
    component: Component = "unknown"
    completeness: Completeness = "needs-info"


class CompletenessReport(BaseModel):
    """Checklist outcome for one issue."""

    model_config = ConfigDict(frozen=True)

    completeness: Completeness
    missing: tuple[ChecklistItem, ...] = ()
    present: tuple[str, ...] = ()


class LabelDiff(BaseModel):
    """Labels to add to an issue; removals are never proposed."""

    model_config = ConfigDict(frozen=True)

    to_add: tuple[str, ...] = ()
    existing: tuple[str, ...] = ()

    @property
    def labels(self) -> list[str]:
        """Full reconciled label list (existing first, then additions)."""
        return list(self.existing) + [
            label for label in self.to_add if label not in self.existing
        ]

    def __len__(self) -> int:
        return len(self.to_add)


# === Action intents ===


class CommentIntent(BaseModel):
    kind: Literal["add-comment"] = "add-comment"
    body: str


class UpdateLabelsIntent(BaseModel):
    kind: Literal["update-issue"] = "update-issue"
    title: str
    labels: list[str]
    added: list[str] = Field(default_factory=list)


class EscalateIntent(BaseModel):
    kind: Literal["missing-tool"] = "missing-tool"
    capability: str
    reason: str


class NoopIntent(BaseModel):
    kind: Literal["noop"] = "noop"
    reason: str


ActionIntent = Annotated[
    Union[CommentIntent, UpdateLabelsIntent, EscalateIntent, NoopIntent],
    Field(discriminator="kind"),
]
