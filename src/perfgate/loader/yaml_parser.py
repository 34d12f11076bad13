"""YAML parser with key positions for config error reporting.

A PyYAML SafeLoader subclass records where every mapping key sits in
the source so validation errors can point at the offending line of
perfgate.yaml.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

LineMap = dict[str, tuple[int, int]]


class YAMLParseError(Exception):
    """Raised when the YAML text is not well-formed.

    Attributes:
        message: Description of the syntax problem.
        line: 1-indexed line, when PyYAML reports one.
        column: 1-indexed column, when PyYAML reports one.
        filename: Source name used in messages.
    """

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        filename: str = "<string>",
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.filename = filename
        super().__init__(message)


class PositionTrackingLoader(yaml.SafeLoader):
    """SafeLoader that fills ``positions`` with dotted key path -> (line, col).

    List items contribute their index to the path, so the ``minScore``
    of the second assertion is recorded as ``assertions.1.minScore``.
    """

    def __init__(self, stream: str) -> None:
        super().__init__(stream)
        self.positions: LineMap = {}
        self._path: list[str] = []

    def _descend(self, segment: str, node: yaml.Node) -> Any:
        self._path.append(segment)
        try:
            return self.construct_object(node, deep=True)
        finally:
            self._path.pop()

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        self.flatten_mapping(node)
        result: dict[Any, Any] = {}
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=True)
            if isinstance(key, str):
                dotted = ".".join([*self._path, key])
                mark = key_node.start_mark
                self.positions[dotted] = (mark.line + 1, mark.column + 1)
                result[key] = self._descend(key, value_node)
            else:
                result[key] = self.construct_object(value_node, deep=True)
        return result

    def construct_sequence(self, node: yaml.SequenceNode, deep: bool = False) -> list[Any]:
        return [
            self._descend(str(index), child)
            for index, child in enumerate(node.value)
        ]


def _construct_map(loader: PositionTrackingLoader, node: yaml.MappingNode) -> Any:
    yield loader.construct_mapping(node, deep=True)


def _construct_seq(loader: PositionTrackingLoader, node: yaml.SequenceNode) -> Any:
    yield loader.construct_sequence(node, deep=True)


PositionTrackingLoader.add_constructor("tag:yaml.org,2002:map", _construct_map)
PositionTrackingLoader.add_constructor("tag:yaml.org,2002:seq", _construct_seq)


def parse_yaml_with_lines(
    source: str,
    filename: str = "<string>",
) -> tuple[dict | None, LineMap]:
    """Parse a YAML string and return (data, line_map).

    Returns (None, {}) when the document is empty or not a mapping.

    Raises:
        YAMLParseError: If the YAML contains syntax errors.
    """
    loader = PositionTrackingLoader(source)
    try:
        data = loader.get_single_data()
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        raise YAMLParseError(
            message=str(exc),
            line=mark.line + 1 if mark is not None else None,
            column=mark.column + 1 if mark is not None else None,
            filename=filename,
        ) from exc
    finally:
        loader.dispose()

    if not isinstance(data, dict):
        return None, {}
    return data, loader.positions


def parse_yaml_file(filepath: Path) -> tuple[dict | None, LineMap]:
    """Parse a YAML file and return (data, line_map).

    Raises:
        YAMLParseError: If the file contains YAML syntax errors.
        FileNotFoundError: If the file does not exist.
    """
    content = filepath.read_text(encoding="utf-8")
    return parse_yaml_with_lines(content, filename=str(filepath))
