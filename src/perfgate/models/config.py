"""Pipeline configuration model for perfgate.

Captures perfgate.yaml fields: pass count, assertions, report target,
collaborator selection, and per-stage timeouts. Keys may be written in
snake_case or in the camelCase spelling used by Lighthouse CI configs.
The loaded value is frozen and passed explicitly to the orchestrator.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

CONFIG_FILENAME = "perfgate.yaml"

# Lighthouse category ids; any other non-empty id is a user-defined category.
KNOWN_CATEGORIES: tuple[str, ...] = (
    "performance",
    "accessibility",
    "best-practices",
    "seo",
)

_MODEL_CONFIG: dict[str, Any] = {
    "extra": "forbid",
    "frozen": True,
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class Severity(str, Enum):
    """How an unsatisfied assertion affects the gate."""

    blocking = "blocking"
    advisory = "advisory"


class AssertionConfig(BaseModel):
    """Minimum acceptable score for one category."""

    model_config = _MODEL_CONFIG

    category: str = Field(min_length=1)
    severity: Severity = Severity.blocking
    min_score: float = Field(ge=0.0, le=1.0)

    @field_validator("category")
    @classmethod
    def _strip_category(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("category must not be blank")
        return value


class CollaboratorSpec(BaseModel):
    """Selects a collaborator implementation and its constructor options.

    ``use`` is either a builtin name (e.g. "command", "lighthouse") or a
    dotted path to a class deriving from the matching base class.
    """

    model_config = _MODEL_CONFIG

    use: str
    options: dict[str, Any] = Field(default_factory=dict)


class PipelineConfig(BaseModel):
    """Project-level pipeline configuration loaded from perfgate.yaml."""

    model_config = _MODEL_CONFIG

    number_of_passes: int = Field(default=3, ge=1)
    assertions: list[AssertionConfig] = Field(default_factory=list)
    required_categories: list[str] = Field(default_factory=list)
    report_target: str = "store"
    target_name: str = "production"
    max_parallel_passes: int = Field(default=1, ge=1)
    build_timeout_seconds: float = Field(default=600.0, gt=0)
    measure_timeout_seconds: float = Field(default=120.0, gt=0)
    deploy_timeout_seconds: float = Field(default=300.0, gt=0)
    artifact_grace_seconds: float = Field(default=0.0, ge=0)
    storage_dir: str = ".perfgate"
    build: CollaboratorSpec = Field(
        default_factory=lambda: CollaboratorSpec(use="command")
    )
    measure: CollaboratorSpec = Field(
        default_factory=lambda: CollaboratorSpec(use="lighthouse")
    )
    publish: CollaboratorSpec = Field(
        default_factory=lambda: CollaboratorSpec(use="command")
    )

    @field_validator("assertions", mode="before")
    @classmethod
    def _normalize_assertions(cls, value: Any) -> Any:
        from perfgate.evaluation.normalizer import normalize_assertions

        if value is None:
            return []
        return normalize_assertions(value)

    def measured_categories(self) -> list[str]:
        """Categories the audit stage must sample, in first-seen order."""
        seen: dict[str, None] = {}
        for category in self.required_categories:
            seen.setdefault(category, None)
        for assertion in self.assertions:
            seen.setdefault(assertion.category, None)
        return list(seen)


def find_project_root(start: Path | None = None) -> Path:
    """Walk up from start (default: cwd) looking for perfgate.yaml or .perfgate/.

    Args:
        start: Starting path (file or directory). Defaults to cwd.

    Returns:
        Path to the directory containing perfgate.yaml or .perfgate/,
        or cwd if neither is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while current != current.parent:
        if (current / CONFIG_FILENAME).exists() or (current / ".perfgate").exists():
            return current
        current = current.parent
    return Path.cwd()


def load_pipeline_config(project_root: Path | None = None) -> PipelineConfig:
    """Load PipelineConfig from perfgate.yaml. Returns defaults if not found.

    Args:
        project_root: Path to the project root directory. If None,
            uses find_project_root() to locate it.

    Returns:
        Validated PipelineConfig instance.
    """
    if project_root is None:
        project_root = find_project_root()
    config_path = project_root / CONFIG_FILENAME
    if not config_path.exists():
        return PipelineConfig()
    import yaml

    raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if raw is None:
        return PipelineConfig()
    return PipelineConfig.model_validate(raw)
