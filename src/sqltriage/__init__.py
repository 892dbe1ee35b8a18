"""Rule-based issue triage for a SQL linter."""

__version__ = "0.1.0"
