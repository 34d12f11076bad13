"""Config error formatting, annotated for people or one-line for CI logs."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from rich.console import Console

if TYPE_CHECKING:
    from perfgate.loader.validator import ValidationErrorDetail


ERROR_CODES: dict[str, str] = {
    "extra_forbidden": "C001",
    "missing": "C002",
    "value_error": "C003",
    "less_than_equal": "C003",
    "greater_than_equal": "C003",
    "greater_than": "C003",
    "too_short": "C003",
    "string_too_short": "C003",
    "enum": "C004",
    "yaml_syntax_error": "C005",
    "empty_file": "C006",
    "empty_input": "C006",
}

ERROR_DESCRIPTIONS: dict[str, str] = {
    "C001": "unknown setting",
    "C002": "required setting missing",
    "C003": "invalid value",
    "C004": "unsupported choice",
    "C005": "YAML syntax error",
    "C006": "empty config",
    "C007": "type mismatch",
}


def error_code(error_type: str) -> str:
    if error_type in ERROR_CODES:
        return ERROR_CODES[error_type]
    if error_type.endswith(("_type", "_parsing")):
        return "C007"
    return "C999"


class ErrorFormatter:
    """Renders config errors.

    Human mode shows the offending source line with a caret under the
    key. CI mode prints ``file:line:col -- field: message``. When
    ``ci_mode`` is None it follows the CI environment variable.
    """

    def __init__(self, ci_mode: bool | None = None, console: Console | None = None) -> None:
        if ci_mode is None:
            ci_mode = os.environ.get("CI", "").lower() in ("true", "1", "yes")
        self.ci_mode = ci_mode
        self.console = console or Console(stderr=True, highlight=False)

    def format_error(
        self,
        error: ValidationErrorDetail,
        source_lines: list[str],
        filename: str,
    ) -> str:
        if self.ci_mode:
            hint = f" ({error.suggestion})" if error.suggestion else ""
            return (
                f"{filename}:{error.line or 0}:{error.col or 0} -- "
                f"{error.field}: {error.message}{hint}"
            )

        code = error_code(error.type)
        out = [f"error[{code}]: {ERROR_DESCRIPTIONS.get(code, 'validation error')}"]
        if error.line is None:
            out += [f"  --> {filename}", "   |", f"   | {error.field}: {error.message}"]
        else:
            out += [f"  --> {filename}:{error.line}:{error.col or 1}", "   |"]
            index = error.line - 1
            if 0 <= index < len(source_lines):
                text = source_lines[index].rstrip()
                number = str(error.line)
                gutter = " " * len(number)
                key = error.field.rsplit(".", 1)[-1]
                start = text.find(key)
                out.append(f" {number} | {text}")
                if start >= 0:
                    out.append(f" {gutter} | {' ' * start}{'^' * len(key)} {error.message}")
                else:
                    out.append(f" {gutter} | {error.message}")
            else:
                out.append(f"   | {error.message}")
        out.append("   |")
        if error.suggestion:
            out.append(f"   = help: {error.suggestion}")
        return "\n".join(out)

    def format_all(
        self,
        errors: list[ValidationErrorDetail],
        source: str,
        filename: str,
    ) -> str:
        lines = source.splitlines()
        return "\n\n".join(self.format_error(e, lines, filename) for e in errors)

    def print_errors(
        self,
        errors: list[ValidationErrorDetail],
        source: str,
        filename: str,
    ) -> None:
        self.console.print(self.format_all(errors, source, filename), markup=False)
