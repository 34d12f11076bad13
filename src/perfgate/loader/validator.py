"""Config validation pipeline combining YAML parsing with Pydantic validation.

perfgate.yaml is parsed with key positions, then validated against
PipelineConfig. Every error is collected with its source line so a
single ``perfgate validate`` run reports all problems at once.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel, to_snake

from perfgate.loader.yaml_parser import LineMap, YAMLParseError, parse_yaml_file, parse_yaml_with_lines
from perfgate.models.config import AssertionConfig, CollaboratorSpec, PipelineConfig


def _spellings(*models: type[BaseModel]) -> list[str]:
    names: list[str] = []
    for model in models:
        for name in model.model_fields:
            names.append(name)
            camel = to_camel(name)
            if camel != name:
                names.append(camel)
    return names


# Accepted key spellings per nesting level, used for typo suggestions
TOP_LEVEL_KEYS: list[str] = _spellings(PipelineConfig)
NESTED_KEYS: list[str] = _spellings(AssertionConfig, CollaboratorSpec)


@dataclass
class ValidationErrorDetail:
    """A single config problem with its source position.

    Attributes:
        field: Dotted path of the offending key.
        message: Human-readable error description.
        type: Pydantic error type, or a loader type such as 'yaml_syntax_error'.
        line: 1-indexed line in the YAML source, when known.
        col: 1-indexed column in the YAML source, when known.
        suggestion: 'Did you mean X?' hint for unknown keys.
        input_value: The rejected input, if available.
    """

    field: str
    message: str
    type: str
    line: int | None = None
    col: int | None = None
    suggestion: str | None = None
    input_value: Any = field(default=None)


def _locate(loc: tuple[str | int, ...], line_map: LineMap) -> tuple[int | None, int | None]:
    """Find the source position for an error location.

    Pydantic reports camelCase aliases while the file may use either
    spelling, so both are tried before falling back to parent keys.
    """
    parts = [str(part) for part in loc]
    while parts:
        for spelling in (parts, [to_snake(p) if not p.isdigit() else p for p in parts]):
            dotted = ".".join(spelling)
            if dotted in line_map:
                return line_map[dotted]
        parts.pop()
    return None, None


def _suggest(loc: tuple[str | int, ...]) -> str | None:
    if not loc:
        return None
    candidates = TOP_LEVEL_KEYS if len(loc) == 1 else NESTED_KEYS
    matches = difflib.get_close_matches(str(loc[-1]), candidates, n=1, cutoff=0.6)
    if matches:
        return f"Did you mean '{matches[0]}'?"
    return None


def validate_config(
    raw_data: dict[str, Any],
    line_map: LineMap,
) -> tuple[PipelineConfig | None, list[ValidationErrorDetail]]:
    """Validate parsed YAML data against PipelineConfig.

    Returns:
        (config, []) on success, or (None, errors) on failure.
    """
    try:
        return PipelineConfig.model_validate(raw_data), []
    except ValidationError as exc:
        errors: list[ValidationErrorDetail] = []
        for err in exc.errors():
            loc = tuple(err.get("loc", ()))
            error_type = err.get("type", "unknown")
            line, col = _locate(loc, line_map)
            errors.append(
                ValidationErrorDetail(
                    field=".".join(str(part) for part in loc) or "<root>",
                    message=err.get("msg", "Validation error"),
                    type=error_type,
                    line=line,
                    col=col,
                    suggestion=_suggest(loc) if error_type == "extra_forbidden" else None,
                    input_value=err.get("input"),
                )
            )
        return None, errors


def _yaml_failure(exc: YAMLParseError) -> list[ValidationErrorDetail]:
    return [
        ValidationErrorDetail(
            field="<yaml>",
            message=exc.message,
            type="yaml_syntax_error",
            line=exc.line,
            col=exc.column,
        )
    ]


def validate_config_file(
    filepath: Path,
) -> tuple[PipelineConfig | None, list[ValidationErrorDetail]]:
    """Validate a perfgate.yaml file, returning every error found."""
    try:
        raw_data, line_map = parse_yaml_file(filepath)
    except YAMLParseError as exc:
        return None, _yaml_failure(exc)

    if raw_data is None:
        return None, [
            ValidationErrorDetail(
                field="<yaml>",
                message="File is empty or is not a mapping of settings",
                type="empty_file",
            )
        ]
    return validate_config(raw_data, line_map)


def validate_config_string(
    source: str,
    filename: str = "<string>",
) -> tuple[PipelineConfig | None, list[ValidationErrorDetail]]:
    """Validate perfgate.yaml content given as a string."""
    try:
        raw_data, line_map = parse_yaml_with_lines(source, filename=filename)
    except YAMLParseError as exc:
        return None, _yaml_failure(exc)

    if raw_data is None:
        return None, [
            ValidationErrorDetail(
                field="<yaml>",
                message="Input is empty or is not a mapping of settings",
                type="empty_input",
            )
        ]
    return validate_config(raw_data, line_map)
