"""Report sinks -- where a finished run report is sent.

The ``reportTarget`` setting selects a sink: "store" (the project's
RunStore), "stdout" (pure JSON), "none", or a dotted path to a custom
ReportSink subclass constructed with no arguments.
"""

from __future__ import annotations

import importlib
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TextIO

from perfgate.errors import ConfigError
from perfgate.models.result import RunReport
from perfgate.storage.json_store import RunStore


class ReportSink(ABC):
    """Consumes a finished run report."""

    @abstractmethod
    def emit(self, report: RunReport) -> str | None:
        """Send ``report`` to the sink.

        Returns:
            Where the report ended up (path, URL), if meaningful.
        """
        ...


class StoreSink(ReportSink):
    """Persists reports in the RunStore and moves the latest pointer."""

    def __init__(self, store: RunStore) -> None:
        self.store = store

    def emit(self, report: RunReport) -> str | None:
        run_id = self.store.save_report(report)
        self.store.update_latest_symlink(run_id)
        return str(self.store.runs_dir / f"{run_id}.json")


class StdoutSink(ReportSink):
    """Writes the report as pure JSON, for CI pipelines and machine parsing."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def emit(self, report: RunReport) -> str | None:
        stream = self._stream or sys.stdout
        stream.write(report.model_dump_json(indent=2))
        stream.write("\n")
        return None


class NullSink(ReportSink):
    """Discards reports."""

    def emit(self, report: RunReport) -> str | None:
        return None


def get_sink(target: str, project_root: Path, storage_dir: str | None = None) -> ReportSink:
    """Resolve a ``reportTarget`` value to a sink instance.

    Raises:
        ConfigError: If the target is unknown or not a ReportSink subclass.
    """
    if target == "store":
        return StoreSink(RunStore(project_root, storage_dir=storage_dir))
    if target == "stdout":
        return StdoutSink()
    if target == "none":
        return NullSink()

    module_path, _, class_name = target.rpartition(".")
    if not module_path:
        raise ConfigError(
            f"Unknown report target '{target}'. "
            f"Use store, stdout, none, or a dotted path to a ReportSink."
        )
    try:
        cls = getattr(importlib.import_module(module_path), class_name)
    except (ImportError, AttributeError) as exc:
        raise ConfigError(f"Cannot load report target '{target}': {exc}") from exc
    if not isinstance(cls, type) or not issubclass(cls, ReportSink):
        raise ConfigError(f"'{target}' is not a subclass of ReportSink.")
    return cls()
