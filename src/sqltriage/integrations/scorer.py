"""Optional external signal scorers.

The rule tables in ``sqltriage.nodes.extract`` are always applied. A scorer
adds extra, low-weight signals on top; with the default ``rules`` setting no
scorer runs and classification stays a pure function of the issue text.
"""

from typing import Optional, Protocol

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from sqltriage.config import TriageConfig
from sqltriage.nodes.schemas import Axis, IssueSnapshot, Signal, SignalSource
from sqltriage.observability import log_node_event

SCORER_PROMPT = """You triage issues for a SQL linter.
Pick the single best category for each axis, or "unknown" when the issue does not say.

- type: bug, feature, documentation, question
- component: parser, rules, templating, cli, performance, configuration
- dialect: one of {dialects}

Only use categories from these lists."""

AXIS_CATEGORIES = {
    Axis.TYPE: {"bug", "feature", "documentation", "question"},
    Axis.COMPONENT: {"parser", "rules", "templating", "cli", "performance", "configuration"},
}


class ScorerResult(BaseModel):
    """LLM structured output schema."""

    type: str
    component: str
    dialect: str


class SignalScorer(Protocol):
    def score(self, snapshot: IssueSnapshot) -> list[Signal]: ...


class ClaudeSignalScorer:
    """Ask an Anthropic model for one candidate category per axis."""

    def __init__(self, model: str, dialects: list[str]):
        self.model = model
        self.dialects = dialects

    def _signal(self, axis: Axis, category: str) -> Signal:
        return Signal(
            axis=axis,
            category=category,
            source=SignalSource.SCORER,
            span=(0, 0),
            text=category,
        )

    def score(self, snapshot: IssueSnapshot) -> list[Signal]:
        try:
            llm = ChatAnthropic(model=self.model)
            response = llm.with_structured_output(ScorerResult).invoke(
                [
                    SystemMessage(
                        content=SCORER_PROMPT.format(dialects=", ".join(self.dialects))
                    ),
                    HumanMessage(content=f"Title: {snapshot.title}\n\n{snapshot.body}"),
                ]
            )
        except Exception as e:
            # The scorer is advisory; rule signals still classify the issue
            log_node_event("scorer", f"scorer failed: {e}", "warning")
            return []

        signals = []
        for axis, category in (
            (Axis.TYPE, response.type),
            (Axis.COMPONENT, response.component),
        ):
            if category in AXIS_CATEGORIES[axis]:
                signals.append(self._signal(axis, category))
        if response.dialect.lower() in self.dialects:
            signals.append(self._signal(Axis.DIALECT, response.dialect.lower()))
        return signals


def get_scorer(config: TriageConfig) -> Optional[SignalScorer]:
    """Scorer selected by configuration, or None for rules only."""
    match config.scorer.name:
        case "claude":
            return ClaudeSignalScorer(config.scorer.model, config.dialects)
        case "rules":
            return None
        case other:
            log_node_event("scorer", f"unknown scorer '{other}', using rules only", "warning")
            return None
