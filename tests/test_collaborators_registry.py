"""Tests for perfgate.collaborators.registry - builtin and dotted-path resolution."""

from __future__ import annotations

import pytest

from perfgate.collaborators.commands import CommandBuilder, CommandPublisher
from perfgate.collaborators.lighthouse import LighthouseEngine
from perfgate.collaborators.registry import (
    get_builder,
    get_measurement_engine,
    get_publisher,
    resolve_class,
)
from perfgate.errors import ConfigError
from perfgate.models.config import CollaboratorSpec


class TestResolveClass:
    """Name resolution and base-class checks."""

    def test_builtin_names(self):
        assert resolve_class("build", "command") is CommandBuilder
        assert resolve_class("measure", "lighthouse") is LighthouseEngine
        assert resolve_class("publish", "command") is CommandPublisher

    def test_dotted_path(self):
        assert (
            resolve_class("publish", "perfgate.collaborators.commands.CommandPublisher")
            is CommandPublisher
        )

    def test_unknown_builtin(self):
        with pytest.raises(ConfigError, match="Available builtins: command"):
            resolve_class("build", "webpack")

    def test_unknown_kind(self):
        with pytest.raises(ConfigError):
            resolve_class("lint", "command")

    def test_missing_module(self):
        with pytest.raises(ConfigError, match="Cannot import"):
            resolve_class("build", "no_such_module_xyz.Builder")

    def test_missing_attribute(self):
        with pytest.raises(ConfigError, match="no attribute"):
            resolve_class("build", "perfgate.collaborators.commands.Nope")

    def test_wrong_base_class(self):
        with pytest.raises(ConfigError, match="not a subclass of BaseBuilder"):
            resolve_class("build", "perfgate.collaborators.commands.CommandPublisher")


class TestFactories:
    """Instantiation with options."""

    def test_builder_with_options(self, tmp_path):
        builder = get_builder(
            CollaboratorSpec(use="command", options={"command": "make", "cwd": str(tmp_path)})
        )
        assert isinstance(builder, CommandBuilder)
        assert builder.command == "make"
        assert builder.cwd == tmp_path

    def test_engine_defaults(self):
        engine = get_measurement_engine(CollaboratorSpec(use="lighthouse"))
        assert isinstance(engine, LighthouseEngine)

    def test_publisher_defaults(self):
        assert isinstance(get_publisher(CollaboratorSpec(use="command")), CommandPublisher)

    def test_bad_option_is_config_error(self):
        with pytest.raises(ConfigError, match="Invalid options"):
            get_publisher(CollaboratorSpec(use="command", options={"colour": "blue"}))
