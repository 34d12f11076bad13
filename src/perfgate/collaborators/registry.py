"""Collaborator registry for resolving builder/engine/publisher specs to instances.

Supports builtin names (e.g. "command", "lighthouse") per collaborator
kind and custom dotted-path imports (e.g. "my.module.MyPublisher").
"""

from __future__ import annotations

import importlib
from typing import TypeVar

from perfgate.collaborators.base import BaseBuilder, BaseMeasurementEngine, BasePublisher
from perfgate.errors import ConfigError
from perfgate.models.config import CollaboratorSpec

T = TypeVar("T")

# Mapping of builtin short names to fully-qualified class paths, per kind.
BUILTIN_COLLABORATORS: dict[str, dict[str, str]] = {
    "build": {
        "command": "perfgate.collaborators.commands.CommandBuilder",
    },
    "measure": {
        "lighthouse": "perfgate.collaborators.lighthouse.LighthouseEngine",
    },
    "publish": {
        "command": "perfgate.collaborators.commands.CommandPublisher",
    },
}

_BASE_CLASSES: dict[str, type] = {
    "build": BaseBuilder,
    "measure": BaseMeasurementEngine,
    "publish": BasePublisher,
}


def resolve_class(kind: str, name: str) -> type:
    """Resolve a builtin name or dotted path to a collaborator class.

    Args:
        kind: One of "build", "measure", "publish".
        name: A builtin name for that kind, or a dotted class path.

    Returns:
        The resolved class, checked against the kind's base class.

    Raises:
        ConfigError: If the name is unknown, cannot be imported, or the
            class does not derive from the expected base class.
    """
    if kind not in _BASE_CLASSES:
        raise ConfigError(f"Unknown collaborator kind '{kind}'")

    builtins = BUILTIN_COLLABORATORS[kind]
    if name in builtins:
        dotted_path = builtins[name]
    elif "." in name:
        dotted_path = name
    else:
        available = ", ".join(sorted(builtins))
        raise ConfigError(
            f"Unknown {kind} collaborator '{name}'. "
            f"Available builtins: {available}. "
            f"For custom collaborators, provide the full dotted path "
            f"(e.g., 'my.module.MyClass')."
        )

    module_path, _, class_name = dotted_path.rpartition(".")
    if not module_path or not class_name:
        raise ConfigError(
            f"Invalid collaborator path '{dotted_path}'. "
            f"Expected format: 'module.path.ClassName'."
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigError(f"Cannot import '{module_path}': {exc}") from exc

    try:
        cls = getattr(module, class_name)
    except AttributeError:
        raise ConfigError(
            f"Module '{module_path}' has no attribute '{class_name}'."
        ) from None

    base = _BASE_CLASSES[kind]
    if not isinstance(cls, type) or not issubclass(cls, base):
        raise ConfigError(
            f"'{dotted_path}' is not a subclass of {base.__name__}."
        )
    return cls


def _instantiate(kind: str, spec: CollaboratorSpec, expected: type[T]) -> T:
    cls = resolve_class(kind, spec.use)
    try:
        return cls(**spec.options)
    except TypeError as exc:
        raise ConfigError(f"Invalid options for {kind} collaborator '{spec.use}': {exc}") from exc


def get_builder(spec: CollaboratorSpec) -> BaseBuilder:
    """Instantiate the builder selected by ``spec``."""
    return _instantiate("build", spec, BaseBuilder)


def get_measurement_engine(spec: CollaboratorSpec) -> BaseMeasurementEngine:
    """Instantiate the measurement engine selected by ``spec``."""
    return _instantiate("measure", spec, BaseMeasurementEngine)


def get_publisher(spec: CollaboratorSpec) -> BasePublisher:
    """Instantiate the publisher selected by ``spec``."""
    return _instantiate("publish", spec, BasePublisher)
