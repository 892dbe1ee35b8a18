"""Tests for signal classification."""

import pytest

from sqltriage.nodes.classify import (
    classify,
    resolve_component,
    resolve_dialect,
    resolve_type,
)
from sqltriage.nodes.extract import RULE_CODE_EVIDENCE, extract_signals
from sqltriage.nodes.schemas import Axis, Signal, SignalSource


def _signal(axis, category, weight=1, evidence=None, source=SignalSource.PROSE):
    return Signal(
        axis=axis,
        category=category,
        source=source,
        span=(0, 0),
        weight=weight,
        evidence=evidence,
    )


class TestResolveType:
    """Tests for type resolution."""

    def test_no_signals_is_unknown(self):
        assert resolve_type([]) == "unknown"

    def test_most_matches_wins(self):
        signals = [
            _signal(Axis.TYPE, "question"),
            _signal(Axis.TYPE, "question"),
            _signal(Axis.TYPE, "bug"),
        ]
        assert resolve_type(signals) == "question"

    @pytest.mark.parametrize(
        "categories,expected",
        [
            (["question", "bug"], "bug"),
            (["documentation", "feature"], "feature"),
            (["question", "documentation"], "documentation"),
            (["feature", "bug", "documentation", "question"], "bug"),
        ],
    )
    def test_tie_priority(self, categories, expected):
        signals = [_signal(Axis.TYPE, c) for c in categories]
        assert resolve_type(signals) == expected

    def test_ignores_other_axes(self):
        assert resolve_type([_signal(Axis.COMPONENT, "parser")]) == "unknown"


class TestResolveDialect:
    """Tests for dialect resolution."""

    def test_no_signals_is_unspecified(self):
        assert resolve_dialect([]) == "unspecified"

    def test_heaviest_wins(self):
        signals = [
            _signal(Axis.DIALECT, "mysql", evidence="mention"),
            _signal(Axis.DIALECT, "postgres", weight=2, evidence="syntax"),
        ]
        assert resolve_dialect(signals) == "postgres"

    def test_tie_mention_beats_syntax(self):
        signals = [
            _signal(Axis.DIALECT, "postgres", weight=2, evidence="syntax"),
            _signal(Axis.DIALECT, "tsql", weight=2, evidence="mention"),
        ]
        assert resolve_dialect(signals) == "tsql"

    def test_tie_syntax_beats_config(self):
        signals = [
            _signal(Axis.DIALECT, "ansi", evidence="config"),
            _signal(Axis.DIALECT, "snowflake", evidence="syntax"),
        ]
        assert resolve_dialect(signals) == "snowflake"

    def test_tie_same_evidence_by_name(self):
        signals = [
            _signal(Axis.DIALECT, "snowflake", evidence="mention"),
            _signal(Axis.DIALECT, "bigquery", evidence="mention"),
        ]
        assert resolve_dialect(signals) == "bigquery"

    def test_code_weight_outranks_prose_mention(self, make_snapshot):
        snapshot = make_snapshot(
            "Cast issue",
            "We moved from mysql last year.\n\n```sql\nSELECT id::int FROM t\n```",
        )
        assert classify(extract_signals(snapshot)).dialect == "postgres"


class TestResolveComponent:
    """Tests for component resolution."""

    def test_no_signals_is_unknown(self):
        assert resolve_component([]) == "unknown"

    def test_most_matches_wins(self):
        signals = [
            _signal(Axis.COMPONENT, "templating"),
            _signal(Axis.COMPONENT, "templating"),
            _signal(Axis.COMPONENT, "parser"),
        ]
        assert resolve_component(signals) == "templating"

    def test_tie_priority(self):
        signals = [
            _signal(Axis.COMPONENT, "configuration"),
            _signal(Axis.COMPONENT, "cli"),
        ]
        assert resolve_component(signals) == "cli"

    def test_rule_code_forces_rules(self):
        signals = [_signal(Axis.COMPONENT, "templating", weight=1) for _ in range(5)]
        signals.append(_signal(Axis.COMPONENT, "rules", evidence=RULE_CODE_EVIDENCE))
        assert resolve_component(signals) == "rules"


class TestClassify:
    """End-to-end classification from issue text."""

    def test_empty_issue_is_all_unknown(self, make_snapshot):
        result = classify(extract_signals(make_snapshot("", "")))
        assert result.type == "unknown"
        assert result.dialect == "unspecified"
        assert result.component == "unknown"

    def test_tsql_top_clause(self, make_snapshot):
        snapshot = make_snapshot(
            "TOP clause not parsing in T-SQL",
            "Using sqlfluff 3.0.7 with dialect tsql.\n\n"
            "```sql\nSELECT TOP 10 * FROM users;\n```\n",
        )
        result = classify(extract_signals(snapshot))
        assert result.type == "bug"
        assert result.dialect == "tsql"
        assert result.component == "parser"

    def test_rule_code_overrides_templating(self, make_snapshot):
        snapshot = make_snapshot(
            "Jinja template issue",
            "AL01 gives a false positive in my dbt macros with jinja placeholders.",
        )
        result = classify(extract_signals(snapshot))
        assert result.component == "rules"
        assert result.type == "bug"

    def test_unrecognised_text(self, make_snapshot):
        snapshot = make_snapshot("Lorem ipsum", "dolor sit amet")
        result = classify(extract_signals(snapshot))
        assert result.type == "unknown"
        assert result.component == "unknown"
