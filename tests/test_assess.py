"""Tests for the completeness checklist."""

from sqltriage.nodes.assess import assess, evidence_present
from sqltriage.nodes.schemas import ClassificationResult

BUG = ClassificationResult(type="bug")
TSQL_BUG = ClassificationResult(type="bug", dialect="tsql")
FEATURE = ClassificationResult(type="feature")


class TestBugChecklist:
    """Tests for bug reports."""

    def test_empty_bug_misses_everything(self, make_snapshot):
        report = assess(make_snapshot("it doesn't work"), BUG)
        assert report.completeness == "needs-info"
        assert report.missing == ("sql-example", "dialect-or-config", "expected-vs-actual")

    def test_complete_bug(self, make_snapshot):
        snapshot = make_snapshot(
            "TOP clause not parsing in T-SQL",
            "```sql\nSELECT TOP 10 * FROM users;\n```",
        )
        report = assess(snapshot, TSQL_BUG)
        assert report.completeness == "complete"
        assert report.missing == ()

    def test_inline_sql_counts_as_example(self, make_snapshot):
        snapshot = make_snapshot("Bug", "Running `select a from b` gives a parse error.")
        report = assess(snapshot, TSQL_BUG)
        assert "sql-example" not in report.missing
        assert report.completeness == "complete"

    def test_code_block_without_sql_is_not_an_example(self, make_snapshot):
        snapshot = make_snapshot("Bug", "```\nsome log output\n```")
        report = assess(snapshot, TSQL_BUG)
        assert "sql-example" in report.missing

    def test_config_snippet_counts_as_dialect_evidence(self, make_snapshot):
        snapshot = make_snapshot(
            "Bug",
            "My .sqlfluff file is attached. I expected no errors.\n"
            "```sql\nSELECT a FROM b\n```",
        )
        report = assess(snapshot, BUG)
        assert report.missing == ()

    def test_expectation_phrase(self, make_snapshot):
        snapshot = make_snapshot("Bug", "It should pass but it reports LT01.")
        report = assess(snapshot, BUG)
        assert "expected-vs-actual" not in report.missing

    def test_lint_output_counts_as_actual(self, make_snapshot):
        snapshot = make_snapshot("Bug", "```\nL:   1 | P:  12 | LT01 | Expected line break\n```")
        report = assess(snapshot, BUG)
        assert "expected-vs-actual" not in report.missing

    def test_missing_items_keep_checklist_order(self, make_snapshot):
        snapshot = make_snapshot("Bug", "```sql\nSELECT 1 FROM t\n```")
        report = assess(snapshot, BUG)
        assert report.missing == ("dialect-or-config", "expected-vs-actual")


class TestFeatureChecklist:
    """Tests for feature requests."""

    def test_missing_use_case(self, make_snapshot):
        report = assess(make_snapshot("Add support for MERGE"), FEATURE)
        assert report.completeness == "needs-info"
        assert report.missing == ("use-case",)

    def test_use_case_phrase(self, make_snapshot):
        snapshot = make_snapshot(
            "Add support for MERGE", "We need this so that our warehouse jobs lint cleanly."
        )
        assert assess(snapshot, FEATURE).completeness == "complete"

    def test_long_description_reads_as_use_case(self, make_snapshot):
        body = " ".join(["word"] * 30)
        assert assess(make_snapshot("New option", body), FEATURE).completeness == "complete"


class TestOtherTypes:
    """Types without mandatory evidence."""

    def test_question_is_complete(self, make_snapshot):
        result = ClassificationResult(type="question")
        report = assess(make_snapshot("How do I set the indent width?"), result)
        assert report.completeness == "complete"
        assert report.missing == ()

    def test_unknown_is_complete(self, make_snapshot):
        report = assess(make_snapshot("Lorem ipsum"), ClassificationResult())
        assert report.completeness == "complete"


class TestEvidencePresent:
    """Tests for optional evidence."""

    def test_version_is_recorded(self, make_snapshot):
        snapshot = make_snapshot("Bug", "Using sqlfluff 3.0.7 on Linux.")
        assert "version" in evidence_present(snapshot, BUG)

    def test_version_never_required(self, make_snapshot):
        snapshot = make_snapshot(
            "TOP clause not parsing in T-SQL",
            "```sql\nSELECT TOP 10 * FROM users;\n```",
        )
        report = assess(snapshot, TSQL_BUG)
        assert "version" not in report.present
        assert report.completeness == "complete"
