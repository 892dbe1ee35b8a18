"""Feature extraction node - turns issue text into categorical signals.

Each pattern family looks at one axis and runs independently over the
title, the prose and (except for type keywords) the fenced code blocks of
an issue. Families share no state and only read the frozen snapshot, so
they can be fanned out on a thread pool.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional

from langchain_core.runnables import RunnableConfig

from sqltriage.config import DEFAULT_DIALECTS, TriageConfig
from sqltriage.graph.state import TriageState
from sqltriage.integrations.scorer import get_scorer
from sqltriage.nodes.schemas import (
    Axis,
    DialectEvidence,
    IssueSnapshot,
    Signal,
    SignalSource,
)
from sqltriage.observability import log_node_event, traced_node

CODE_WEIGHT = 2
TEXT_WEIGHT = 1

RULE_CODE_EVIDENCE = "rule-code"
RULE_CODE_PATTERN = re.compile(r"\b[A-Z]{2}\d{2}\b")

TYPE_PATTERNS: dict[str, list[str]] = {
    "bug": [
        r"\bbugs?\b",
        r"\bbroken\b",
        r"\bcrash(?:es|ed|ing)?\b",
        r"\berrors?\b",
        r"\bexceptions?\b",
        r"\btraceback\b",
        r"\bfail(?:s|ed|ing|ure)?\b",
        r"\b(?:doesn'?t|does not|don'?t|do not|isn'?t|is not) work(?:ing)?\b",
        r"\bnot working\b",
        r"\bnot pars(?:e|ed|ing)\b",
        r"\bunpars(?:e)?able\b",
        r"\bfalse (?:positive|negative)s?\b",
        r"\bregression\b",
        r"\bincorrect(?:ly)?\b",
        r"\bwrong(?:ly)?\b",
        r"\bunexpected(?:ly)?\b",
    ],
    "feature": [
        r"\bfeature(?: request)?\b",
        r"\benhancement\b",
        r"\badd(?:ing)? support\b",
        r"\bsupport for\b",
        r"\bplease add\b",
        r"\bwould be (?:nice|great|useful|helpful)\b",
        r"\bpropos(?:al|e|ing)\b",
        r"\bnew (?:rule|option|flag|setting)\b",
        r"\ballow(?:ing)? (?:users|us|me) to\b",
    ],
    "documentation": [
        r"\bdocs?\b",
        r"\bdocumentation\b",
        r"\breadme\b",
        r"\bdocstrings?\b",
        r"\btypos?\b",
        r"\bchangelog\b",
    ],
    "question": [
        r"\bhow (?:do|can|should|would) (?:i|we|you)\b",
        r"\bhow to\b",
        r"\bis (?:it|there) (?:possible|a way)\b",
        r"\bquestions?\b",
        r"\bwondering\b",
        r"\bany (?:way|advice|idea)s?\b",
    ],
}

COMPONENT_PATTERNS: dict[str, list[str]] = {
    "parser": [
        r"\bpars(?:e|er|es|ed|ing)\b",
        r"\bunpars(?:e)?able\b",
        r"\blex(?:er|ing)\b",
        r"\bgrammar\b",
        r"\bparse tree\b",
    ],
    "rules": [
        r"\brules?\b",
        r"\blint(?:ing)? (?:errors?|violations?)\b",
        r"\bfalse (?:positive|negative)s?\b",
        r"\bviolations?\b",
    ],
    "templating": [
        r"\bjinja2?\b",
        r"\bdbt\b",
        r"\btemplat(?:e|es|ed|er|ing)\b",
        r"\bmacros?\b",
        r"\bplaceholders?\b",
        r"\{\{|\{%",
    ],
    "cli": [
        r"\bcli\b",
        r"\bcommand[- ]line\b",
        r"\bexit codes?\b",
        r"\bsqlfluff (?:lint|fix|format|render)\b",
        r"--(?:format|nofail|processes|show-lint-violations)\b",
    ],
    "performance": [
        r"\bslow(?:ly|er|ness)?\b",
        r"\bperformance\b",
        r"\bmemory\b",
        r"\bhang(?:s|ing)?\b",
        r"\btime(?:s|d)? ?out\b",
        r"\btakes? (?:forever|minutes|hours)\b",
    ],
    "configuration": [
        r"\.sqlfluff\b",
        r"\bconfig(?:uration)?s?\b",
        r"\bpyproject\.toml\b",
        r"\bsetup\.cfg\b",
        r"\btox\.ini\b",
        r"\bexclude_rules\b",
        r"\[sqlfluff[:\]]",
    ],
}

DIALECT_ALIASES: dict[str, list[str]] = {
    "tsql": [r"t-sql", r"transact-sql", r"sql server", r"sqlserver", r"mssql"],
    "postgres": [r"postgresql"],
    "bigquery": [r"big query"],
    "sparksql": [r"spark sql", r"spark-sql"],
    "duckdb": [r"duck db"],
    "db2": [r"ibm db2"],
    "mysql": [r"my sql"],
    "materialize": [r"materialize ?db", r"materialize sql"],
    "hive": [r"hiveql", r"hive ?sql", r"apache hive"],
    "impala": [r"apache impala", r"impala sql"],
}

# Dialect names that are also everyday words; in free text only their
# aliases count as a mention
COMMON_WORD_DIALECTS = frozenset({"materialize", "hive", "impala"})

DIALECT_SYNTAX: dict[str, list[str]] = {
    "tsql": [
        r"\bselect\s+(?:distinct\s+)?top\s*\(?\s*\d+",
        r"\[\w+\]\s*\.\s*\[\w+\]",
        r"\bdeclare\s+@\w+",
        r"@@\w+",
        r"^\s*go\s*$",
    ],
    "postgres": [
        r"::\s*[a-z_]+",
        r"\bilike\b",
        r"\$\$",
        r"\breturning\b",
    ],
    "bigquery": [
        r"`[\w-]+\.[\w-]+\.[\w-]+`",
        r"\bstruct\s*<",
        r"\bsafe_cast\s*\(",
    ],
    "snowflake": [
        r"\bqualify\b",
        r"\blateral\s+flatten\s*\(",
        r"\bvariant\b",
    ],
    "mysql": [
        r"\bauto_increment\b",
        r"\bengine\s*=\s*innodb\b",
    ],
    "sparksql": [
        r"\blateral\s+view\b",
        r"\bdistribute\s+by\b",
    ],
    "oracle": [
        r"\bconnect\s+by\b",
        r"\bfrom\s+dual\b",
        r"\brownum\b",
    ],
}

CONFIG_PATTERN = re.compile(
    r"(?:--dialect[ =]+|\bdialect\s*[=:]\s*)[\"']?(?P<name>[a-z0-9_-]+)",
    re.IGNORECASE,
)

SourcedText = tuple[SignalSource, str]
Family = Callable[[IssueSnapshot, list[str]], list[Signal]]


def _compile(patterns: dict[str, list[str]]) -> dict[str, list[re.Pattern]]:
    return {
        category: [re.compile(p, re.IGNORECASE | re.MULTILINE) for p in items]
        for category, items in patterns.items()
    }


_TYPE_RES = _compile(TYPE_PATTERNS)
_COMPONENT_RES = _compile(COMPONENT_PATTERNS)
_SYNTAX_RES = _compile(DIALECT_SYNTAX)


def _texts(snapshot: IssueSnapshot, *, include_code: bool = True) -> list[SourcedText]:
    """Title, prose and (optionally) each code block, tagged with their source."""
    texts: list[SourcedText] = [
        (SignalSource.TITLE, snapshot.title),
        (SignalSource.PROSE, snapshot.prose),
    ]
    if include_code:
        texts.extend((SignalSource.CODE, block.content) for block in snapshot.code_blocks)
    return texts


def _match_table(
    axis: Axis,
    table: dict[str, list[re.Pattern]],
    texts: Iterable[SourcedText],
) -> list[Signal]:
    signals = []
    for source, text in texts:
        for category, patterns in table.items():
            for pattern in patterns:
                for match in pattern.finditer(text):
                    signals.append(
                        Signal(
                            axis=axis,
                            category=category,
                            source=source,
                            span=match.span(),
                            text=match.group(0),
                        )
                    )
    return signals


def extract_type_signals(snapshot: IssueSnapshot, dialects: list[str]) -> list[Signal]:
    """Type keywords; code blocks are skipped since SQL and logs are not prose."""
    return _match_table(Axis.TYPE, _TYPE_RES, _texts(snapshot, include_code=False))


def extract_component_signals(
    snapshot: IssueSnapshot, dialects: list[str]
) -> list[Signal]:
    """Component keywords plus rule codes such as ``AL01``."""
    signals = _match_table(Axis.COMPONENT, _COMPONENT_RES, _texts(snapshot))
    for source, text in _texts(snapshot):
        for match in RULE_CODE_PATTERN.finditer(text):
            signals.append(
                Signal(
                    axis=Axis.COMPONENT,
                    category="rules",
                    source=source,
                    span=match.span(),
                    text=match.group(0),
                    evidence=RULE_CODE_EVIDENCE,
                )
            )
    return signals


def _name_patterns(
    dialects: list[str], *, bare_common_words: bool = True
) -> dict[str, re.Pattern]:
    patterns = {}
    for name in dialects:
        alternatives = list(DIALECT_ALIASES.get(name, []))
        if bare_common_words or name not in COMMON_WORD_DIALECTS:
            alternatives.insert(0, re.escape(name))
        if not alternatives:
            continue
        patterns[name] = re.compile(
            r"(?<![\w-])(?:" + "|".join(alternatives) + r")(?![\w-])", re.IGNORECASE
        )
    return patterns


def _dialect_signal(
    name: str, source: SignalSource, span: tuple[int, int], text: str, evidence: str
) -> Signal:
    return Signal(
        axis=Axis.DIALECT,
        category=name,
        source=source,
        span=span,
        text=text,
        weight=CODE_WEIGHT if source == SignalSource.CODE else TEXT_WEIGHT,
        evidence=evidence,
    )


def resolve_dialect_name(text: str, dialects: list[str]) -> Optional[str]:
    """Map a dialect name or alias (``T-SQL``, ``postgresql``) to a known dialect."""
    for name, pattern in _name_patterns(dialects).items():
        if pattern.fullmatch(text.strip()):
            return name
    return None


def extract_dialect_signals(
    snapshot: IssueSnapshot, dialects: list[str]
) -> list[Signal]:
    """Dialect evidence: explicit names, config snippets and syntax heuristics.

    A name that is part of a config snippet (``dialect = tsql``) only counts
    as config evidence, not as a second, explicit mention.

    Names in ``COMMON_WORD_DIALECTS`` ("materialize the model") are only
    picked up through an alias, a config snippet or a fence hint.
    """
    known = set(dialects)
    names = _name_patterns(dialects, bare_common_words=False)
    signals: list[Signal] = []

    for source, text in _texts(snapshot):
        config_spans = []
        for match in CONFIG_PATTERN.finditer(text):
            config_spans.append(match.span())
            name = resolve_dialect_name(match.group("name"), dialects)
            if name:
                signals.append(
                    _dialect_signal(
                        name, source, match.span(), match.group(0),
                        DialectEvidence.CONFIG.value,
                    )
                )

        for name, pattern in names.items():
            for match in pattern.finditer(text):
                start, end = match.span()
                if any(s <= start and end <= e for s, e in config_spans):
                    continue
                signals.append(
                    _dialect_signal(
                        name, source, match.span(), match.group(0),
                        DialectEvidence.MENTION.value,
                    )
                )

    for block in snapshot.code_blocks:
        # ```tsql fences name the dialect outright
        hinted = resolve_dialect_name(block.language, dialects) if block.language else None
        if hinted:
            signals.append(
                _dialect_signal(
                    hinted, SignalSource.CODE, (0, 0), block.language,
                    DialectEvidence.MENTION.value,
                )
            )
        for name, patterns in _SYNTAX_RES.items():
            if name not in known:
                continue
            for pattern in patterns:
                for match in pattern.finditer(block.content):
                    signals.append(
                        _dialect_signal(
                            name, SignalSource.CODE, match.span(), match.group(0),
                            DialectEvidence.SYNTAX.value,
                        )
                    )

    return signals


FAMILIES: list[Family] = [
    extract_type_signals,
    extract_dialect_signals,
    extract_component_signals,
]


def extract_signals(
    snapshot: IssueSnapshot,
    dialects: Optional[list[str]] = None,
    *,
    max_workers: int = 1,
) -> tuple[Signal, ...]:
    """Run every pattern family over a snapshot.

    Args:
        snapshot: The issue to scan.
        dialects: Known dialect names. Defaults to the built-in list.
        max_workers: Run the families on a thread pool when greater than 1.

    Returns:
        Signals ordered by family (type, dialect, component), then by the
        order each family found them. Never raises on odd input.
    """
    dialects = [d.lower() for d in (dialects or DEFAULT_DIALECTS)]

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(lambda family: family(snapshot, dialects), FAMILIES))
    else:
        results = [family(snapshot, dialects) for family in FAMILIES]

    return tuple(signal for family_signals in results for signal in family_signals)


@traced_node("extract")
def extract_node(state: TriageState, config: RunnableConfig) -> dict:
    """Extract rule signals, plus any signals from the configured scorer."""
    settings: TriageConfig = config["configurable"]["settings"]
    snapshot = state["snapshot"]

    signals = extract_signals(snapshot, settings.dialects, max_workers=len(FAMILIES))

    scorer = get_scorer(settings)
    if scorer is not None:
        extra = scorer.score(snapshot)
        log_node_event("extract", "scorer signals", count=len(extra))
        signals = signals + tuple(extra)

    log_node_event("extract", "signals extracted", count=len(signals))
    return {"signals": signals}
