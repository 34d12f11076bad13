"""On-disk history of perfgate run reports.

Each RunReport is one JSON document under ``<storage_dir>/runs/``. A
revision index and a ``latest`` pointer sit next to them so the report
command can answer "what happened to this revision" and "what was the
last run" without scanning every file.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from perfgate.models.result import RunReport

logger = logging.getLogger(__name__)

LATEST_LINK = "latest"
LATEST_FALLBACK = ".latest"


def _atomic_write(path: Path, content: str) -> None:
    """Write ``content`` next to ``path`` and rename it into place."""
    staging = path.with_name(path.name + ".tmp")
    staging.write_text(content, encoding="utf-8")
    staging.replace(path)


class RunStore:
    """Persist and query RunReport objects.

    Layout::

        <storage_dir>/
            index.json          revision -> [run ids], in save order
            runs/
                <run_id>.json
                latest          symlink to the newest report (.latest on
                                filesystems without symlinks)
    """

    def __init__(self, project_root: Path, storage_dir: str | None = None) -> None:
        self.storage_path = project_root / (storage_dir or ".perfgate")
        self.runs_dir = self.storage_path / "runs"
        self.index_path = self.storage_path / "index.json"

    def ensure_dirs(self) -> None:
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    def _report_path(self, run_id: str) -> Path:
        return self.runs_dir / f"{run_id}.json"

    # -- reports ----------------------------------------------------------

    def save_report(self, report: RunReport) -> str:
        """Write ``report`` and record its run id under its revision.

        Returns:
            The run id the report was stored under.
        """
        self.ensure_dirs()
        _atomic_write(self._report_path(report.run_id), report.model_dump_json(indent=2))

        index = self._read_index()
        run_ids = index.setdefault(report.run.revision, [])
        if report.run_id not in run_ids:
            run_ids.append(report.run_id)
        self._write_index(index)

        logger.debug("Saved run %s for revision %s", report.run_id, report.run.revision)
        return report.run_id

    def load_report(self, run_id: str) -> RunReport:
        """Read one report back.

        Raises:
            FileNotFoundError: If no report exists for ``run_id``.
        """
        payload = self._report_path(run_id).read_text(encoding="utf-8")
        return RunReport.model_validate_json(payload)

    def list_runs(self, revision: str | None = None) -> list[str]:
        """Run ids for one revision in save order, or every run oldest first."""
        if revision is not None:
            return list(self._read_index().get(revision, []))
        if not self.runs_dir.is_dir():
            return []

        def saved_at(path: Path) -> tuple[float, str]:
            return path.stat().st_mtime, path.stem

        return [path.stem for path in sorted(self.runs_dir.glob("*.json"), key=saved_at)]

    def delete_run(self, run_id: str) -> bool:
        """Remove a report and drop it from the index.

        Returns:
            Whether a report file was actually removed.
        """
        path = self._report_path(run_id)
        removed = path.is_file()
        if removed:
            path.unlink()

        index = self._read_index()
        pruned = {
            revision: [rid for rid in run_ids if rid != run_id]
            for revision, run_ids in index.items()
        }
        pruned = {revision: run_ids for revision, run_ids in pruned.items() if run_ids}
        if pruned != index:
            self._write_index(pruned)
        return removed

    # -- latest pointer ---------------------------------------------------

    def update_latest_symlink(self, run_id: str) -> None:
        """Point ``latest`` at ``run_id``'s report.

        The link is created under a temporary name and swapped in with
        os.replace. Where symlinks are unavailable the run id is written
        to a ``.latest`` text file instead.
        """
        self.ensure_dirs()
        link = self.runs_dir / LATEST_LINK
        staging = self.runs_dir / f".{LATEST_LINK}-{run_id}"
        try:
            if staging.is_symlink() or staging.exists():
                staging.unlink()
            os.symlink(f"{run_id}.json", staging)
            os.replace(staging, link)
        except OSError:
            logger.debug("Symlinks unavailable, recording latest run in %s", LATEST_FALLBACK)
            (self.runs_dir / LATEST_FALLBACK).write_text(run_id, encoding="utf-8")

    def latest_run_id(self) -> str | None:
        link = self.runs_dir / LATEST_LINK
        if link.is_symlink():
            return os.readlink(link).removesuffix(".json")
        fallback = self.runs_dir / LATEST_FALLBACK
        if fallback.is_file():
            return fallback.read_text(encoding="utf-8").strip() or None
        return None

    def load_latest_report(self) -> RunReport | None:
        """The report ``latest`` points at, or None if there is none."""
        run_id = self.latest_run_id()
        if run_id is None:
            return None
        try:
            return self.load_report(run_id)
        except FileNotFoundError:
            return None

    # -- index ------------------------------------------------------------

    def _read_index(self) -> dict[str, list[str]]:
        if not self.index_path.is_file():
            return {}
        return json.loads(self.index_path.read_text(encoding="utf-8"))

    def _write_index(self, index: dict[str, list[str]]) -> None:
        self.storage_path.mkdir(parents=True, exist_ok=True)
        _atomic_write(self.index_path, json.dumps(index, indent=2, ensure_ascii=False))
