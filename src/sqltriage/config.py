"""Configuration and LangSmith setup."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


# Default values
DEFAULT_TRIGGERS = ["opened", "edited"]
DEFAULT_PERMISSIONS = {"contents": "read", "issues": "write", "pull-requests": "read"}
DEFAULT_TOOLS = ["github"]
DEFAULT_MAX_UPDATE_ATTEMPTS = 3
DEFAULT_SCORER = "rules"
DEFAULT_SCORER_MODEL = "claude-haiku-4-5"

# Per-run ceilings; None means unlimited
DEFAULT_SAFE_OUTPUTS: dict[str, Optional[int]] = {
    "add-comment": 1,
    "update-issue": 1,
    "missing-tool": None,
    "noop": None,
}

# Permission each tracker write needs; missing-tool and noop need none
SAFE_OUTPUT_REQUIREMENTS = {
    "add-comment": ("issues", "write"),
    "update-issue": ("issues", "write"),
}
SAFE_OUTPUT_TOOL = "github"

# Dialect names the linter knows about, consumed as a static list
DEFAULT_DIALECTS = [
    "ansi",
    "athena",
    "bigquery",
    "clickhouse",
    "databricks",
    "db2",
    "doris",
    "duckdb",
    "exasol",
    "flink",
    "greenplum",
    "hive",
    "impala",
    "mariadb",
    "materialize",
    "mysql",
    "oracle",
    "postgres",
    "redshift",
    "snowflake",
    "soql",
    "sparksql",
    "sqlite",
    "starrocks",
    "teradata",
    "trino",
    "tsql",
    "vertica",
]

# Config file path
CONFIG_PATH = ".github/sqltriage.yml"


@dataclass
class RetryConfig:
    """Conflict retry policy for label updates."""

    max_update_attempts: int = DEFAULT_MAX_UPDATE_ATTEMPTS


@dataclass
class ScorerConfig:
    """Optional external signal scorer."""

    name: str = DEFAULT_SCORER
    model: str = DEFAULT_SCORER_MODEL


@dataclass
class TriageConfig:
    """Main configuration class."""

    version: str = "1.0"
    triggers: list[str] = field(default_factory=lambda: list(DEFAULT_TRIGGERS))
    permissions: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_PERMISSIONS)
    )
    tools: list[str] = field(default_factory=lambda: list(DEFAULT_TOOLS))
    safe_outputs: dict[str, Optional[int]] = field(
        default_factory=lambda: dict(DEFAULT_SAFE_OUTPUTS)
    )
    dialects: list[str] = field(default_factory=lambda: list(DEFAULT_DIALECTS))
    retry: RetryConfig = field(default_factory=RetryConfig)
    scorer: ScorerConfig = field(default_factory=ScorerConfig)

    def has_permission(self, scope: str, level: str) -> bool:
        """Check whether a permission scope is granted at the given level."""
        granted = self.permissions.get(scope)
        if granted is None:
            return False
        if level == "read":
            return granted in ("read", "write")
        return granted == level

    def quota_limits(self) -> dict[str, Optional[int]]:
        """Per-kind ceilings for declared safe outputs."""
        return dict(self.safe_outputs)

    def missing_capability(self, kind: str) -> Optional[str]:
        """The unmet grant that blocks a safe output, or None.

        This is the kind itself when it is not declared, ``scope: level``
        for a missing permission, or the tool name. Kinds blocked by the same
        grant share one escalation.
        """
        if kind not in self.safe_outputs:
            return kind
        requirement = SAFE_OUTPUT_REQUIREMENTS.get(kind)
        if requirement is None:
            return None
        scope, level = requirement
        if not self.has_permission(scope, level):
            return f"{scope}: {level}"
        if SAFE_OUTPUT_TOOL not in self.tools:
            return SAFE_OUTPUT_TOOL
        return None

    def missing_grant(self, kind: str) -> Optional[str]:
        """Why a safe output cannot run in this configuration, or None."""
        capability = self.missing_capability(kind)
        if capability is None:
            return None
        if capability == kind:
            return f"'{kind}' is not declared under safe-outputs"
        if capability == SAFE_OUTPUT_TOOL:
            return f"'{kind}' needs the '{SAFE_OUTPUT_TOOL}' tool"
        return f"'{kind}' needs the '{capability}' permission"

    def granted_capabilities(self) -> frozenset[str]:
        """Safe-output kinds this run is allowed to execute."""
        return frozenset(
            kind for kind in self.safe_outputs if self.missing_grant(kind) is None
        )


def _parse_safe_outputs(data: dict) -> dict[str, Optional[int]]:
    """Parse the ``safe-outputs`` mapping into per-kind ceilings."""
    outputs: dict[str, Optional[int]] = {}
    for kind, options in data.items():
        options = options or {}
        default = DEFAULT_SAFE_OUTPUTS.get(kind)
        outputs[kind] = options.get("max", default)
    # Escalation and no-op are always available to the host
    outputs.setdefault("missing-tool", None)
    outputs.setdefault("noop", None)
    return outputs


def load_config(repo_path: Optional[Path] = None) -> TriageConfig:
    """Load sqltriage configuration.

    Priority (highest to lowest):
    1. Environment variables (SQLTRIAGE_SCORER, etc.)
    2. Repo config file (.github/sqltriage.yml)
    3. Package defaults

    Args:
        repo_path: Path to repository root. Defaults to current directory.

    Returns:
        TriageConfig instance
    """
    config = TriageConfig()

    if repo_path is None:
        repo_path = Path.cwd()

    config_file = repo_path / CONFIG_PATH
    if config_file.exists():
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}

        config.version = str(data.get("version", config.version))

        # PyYAML reads a bare `on:` key as boolean True
        triggers = data.get("on", data.get(True))
        if triggers is not None:
            if isinstance(triggers, str):
                triggers = [triggers]
            config.triggers = [str(t) for t in triggers]

        if "permissions" in data:
            config.permissions = {
                str(k): str(v) for k, v in (data["permissions"] or {}).items()
            }

        if "tools" in data:
            config.tools = [str(t) for t in data["tools"] or []]

        if "safe-outputs" in data:
            config.safe_outputs = _parse_safe_outputs(data["safe-outputs"] or {})

        if "dialects" in data:
            config.dialects = [str(d).lower() for d in data["dialects"] or []]

        if "retry" in data:
            retry = data["retry"] or {}
            config.retry.max_update_attempts = retry.get(
                "max-update-attempts", DEFAULT_MAX_UPDATE_ATTEMPTS
            )

        if "scorer" in data:
            scorer = data["scorer"] or {}
            config.scorer.name = scorer.get("name", DEFAULT_SCORER)
            config.scorer.model = scorer.get("model", DEFAULT_SCORER_MODEL)

    # Override with environment variables
    if env_scorer := os.environ.get("SQLTRIAGE_SCORER"):
        config.scorer.name = env_scorer
    if env_model := os.environ.get("SQLTRIAGE_MODEL_SCORER"):
        config.scorer.model = env_model
    if env_attempts := os.environ.get("SQLTRIAGE_MAX_UPDATE_ATTEMPTS"):
        config.retry.max_update_attempts = int(env_attempts)

    return config


def setup_langsmith() -> bool:
    """Configure LangSmith tracing if API key is available.

    Returns:
        True if LangSmith is enabled, False otherwise.
    """
    # Check if API key is set
    if not os.environ.get("LANGCHAIN_API_KEY"):
        # Disable tracing if no API key
        os.environ["LANGCHAIN_TRACING_V2"] = "false"
        return False

    # Enable tracing
    os.environ.setdefault("LANGCHAIN_TRACING_V2", "true")
    os.environ.setdefault("LANGCHAIN_PROJECT", "sqltriage")
    return True
