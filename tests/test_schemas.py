"""Tests for snapshot and intent schemas."""

import pytest
from pydantic import TypeAdapter, ValidationError

from sqltriage.nodes.schemas import (
    ActionIntent,
    ClassificationResult,
    CodeBlock,
    CommentIntent,
    EscalateIntent,
    EventKind,
    IssueSnapshot,
    LabelDiff,
    NoopIntent,
    UpdateLabelsIntent,
    split_code_blocks,
)


class TestSplitCodeBlocks:
    """Tests for fenced code block extraction."""

    def test_no_fences(self):
        prose, blocks = split_code_blocks("Just some text.")
        assert prose == "Just some text."
        assert blocks == ()

    def test_single_fence_with_language(self):
        body = "Before\n```sql\nSELECT 1;\n```\nAfter"
        prose, blocks = split_code_blocks(body)
        assert len(blocks) == 1
        assert blocks[0].language == "sql"
        assert blocks[0].content == "SELECT 1;\n"
        assert "SELECT" not in prose
        assert "Before" in prose and "After" in prose

    def test_language_is_lowercased(self):
        _, blocks = split_code_blocks("```TSQL\nSELECT 1\n```")
        assert blocks[0].language == "tsql"

    def test_fence_without_language(self):
        _, blocks = split_code_blocks("```\nL:   1 | P:   1 | LT01\n```")
        assert blocks[0].language == ""

    def test_tilde_fence(self):
        _, blocks = split_code_blocks("~~~sql\nSELECT 1\n~~~")
        assert len(blocks) == 1

    def test_multiple_blocks_keep_order(self):
        body = "```sql\nSELECT 1\n```\ntext\n```\nerror output\n```"
        _, blocks = split_code_blocks(body)
        assert [b.content for b in blocks] == ["SELECT 1\n", "error output\n"]

    def test_unterminated_fence_stays_in_prose(self):
        prose, blocks = split_code_blocks("```sql\nSELECT 1")
        assert blocks == ()
        assert "SELECT 1" in prose


class TestIssueSnapshot:
    """Tests for IssueSnapshot construction and immutability."""

    def test_from_markdown_splits_code(self):
        snapshot = IssueSnapshot.from_markdown(
            id=7, title="t", body="hello\n```sql\nSELECT 1\n```\n"
        )
        assert snapshot.id == 7
        assert len(snapshot.code_blocks) == 1
        assert "SELECT" not in snapshot.prose

    def test_crlf_body_is_normalised(self):
        snapshot = IssueSnapshot.from_markdown(
            id=1, title="t", body="hello\r\n```sql\r\nSELECT a FROM b;\r\n```\r\nafter\r\n"
        )
        assert snapshot.code_blocks == (CodeBlock(language="sql", content="SELECT a FROM b;\n"),)
        assert "\r" not in snapshot.body
        assert "SELECT" not in snapshot.prose
        assert "after" in snapshot.prose

    def test_none_body_becomes_empty(self):
        snapshot = IssueSnapshot.from_markdown(id=1, title="t", body=None)
        assert snapshot.body == ""
        assert snapshot.code_blocks == ()

    def test_labels_are_a_tuple(self):
        snapshot = IssueSnapshot.from_markdown(id=1, title="t", body="", labels=["a"])
        assert snapshot.labels == ("a",)

    def test_event_accepts_string(self):
        snapshot = IssueSnapshot.from_markdown(id=1, title="t", body="", event="edited")
        assert snapshot.event == EventKind.EDITED

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError):
            IssueSnapshot.from_markdown(id=1, title="t", body="", event="closed")

    def test_frozen(self):
        snapshot = IssueSnapshot.from_markdown(id=1, title="t", body="")
        with pytest.raises(ValidationError):
            snapshot.title = "changed"

    def test_with_labels_returns_new_snapshot(self):
        snapshot = IssueSnapshot.from_markdown(id=1, title="t", body="", labels=["a"])
        refreshed = snapshot.with_labels(["a", "b"])
        assert refreshed.labels == ("a", "b")
        assert snapshot.labels == ("a",)
        assert refreshed.title == snapshot.title


class TestClassificationResult:
    """Tests for ClassificationResult defaults."""

    def test_defaults_are_unknown(self):
        result = ClassificationResult()
        assert result.type == "unknown"
        assert result.dialect == "unspecified"
        assert result.component == "unknown"
        assert result.completeness == "needs-info"

    def test_invalid_type_rejected(self):
        with pytest.raises(ValidationError):
            ClassificationResult(type="enhancement")


class TestLabelDiff:
    """Tests for LabelDiff."""

    def test_labels_keep_existing_first(self):
        diff = LabelDiff(to_add=("type:bug",), existing=("priority:high",))
        assert diff.labels == ["priority:high", "type:bug"]
        assert len(diff) == 1

    def test_empty_diff(self):
        diff = LabelDiff(existing=("type:bug",))
        assert len(diff) == 0
        assert diff.labels == ["type:bug"]


class TestActionIntent:
    """Tests for the discriminated intent union."""

    adapter = TypeAdapter(ActionIntent)

    def test_comment_by_kind(self):
        intent = self.adapter.validate_python({"kind": "add-comment", "body": "hi"})
        assert isinstance(intent, CommentIntent)

    def test_update_by_kind(self):
        intent = self.adapter.validate_python(
            {"kind": "update-issue", "title": "t", "labels": ["type:bug"]}
        )
        assert isinstance(intent, UpdateLabelsIntent)
        assert intent.added == []

    def test_escalate_by_kind(self):
        intent = self.adapter.validate_python(
            {"kind": "missing-tool", "capability": "update-issue", "reason": "r"}
        )
        assert isinstance(intent, EscalateIntent)

    def test_noop_by_kind(self):
        intent = self.adapter.validate_python({"kind": "noop", "reason": "nothing"})
        assert isinstance(intent, NoopIntent)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            self.adapter.validate_python({"kind": "close-issue"})
