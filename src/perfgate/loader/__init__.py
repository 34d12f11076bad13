"""perfgate config loader - parsing, validation, and error reporting."""

from perfgate.loader.errors import ErrorFormatter
from perfgate.loader.validator import (
    ValidationErrorDetail,
    validate_config,
    validate_config_file,
    validate_config_string,
)
from perfgate.loader.yaml_parser import YAMLParseError, parse_yaml_file, parse_yaml_with_lines

__all__ = [
    "ErrorFormatter",
    "ValidationErrorDetail",
    "YAMLParseError",
    "parse_yaml_file",
    "parse_yaml_with_lines",
    "validate_config",
    "validate_config_file",
    "validate_config_string",
]
