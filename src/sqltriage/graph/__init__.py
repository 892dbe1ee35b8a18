"""LangGraph workflow for triage runs."""
