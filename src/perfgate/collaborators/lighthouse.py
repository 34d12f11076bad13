"""Lighthouse measurement engine.

Serves the run's built artifact on a local port, runs the Lighthouse
CLI against it once per audit pass, and reads every category score
from that pass's JSON report with JMESPath. Audit passes may run
concurrently; each (run, pass) pair triggers exactly one Lighthouse
invocation no matter how many categories are measured from it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shlex
import socket
import sys
from pathlib import Path
from typing import Any

import jmespath
import jmespath.exceptions

from perfgate.collaborators.base import BaseMeasurementEngine
from perfgate.collaborators.process import run_command, start_background, stop_background
from perfgate.errors import MeasurementError
from perfgate.models.run import ArtifactRef, MetricSample

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://127.0.0.1:{port}/"
DEFAULT_SERVE_COMMAND = "{python} -m http.server {port} --bind 127.0.0.1 --directory {location}"
DEFAULT_COMMAND = (
    "npx lighthouse {url} --output=json --output-path=stdout "
    "--quiet --chrome-flags=--headless"
)
DEFAULT_SCORE_EXPRESSION = 'categories."{category}".score'


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class LighthouseEngine(BaseMeasurementEngine):
    """Measurement engine backed by the Lighthouse CLI.

    By default each run's artifact directory is served with
    ``python -m http.server`` on a free local port, and ``url`` points at
    it. Set ``serve_command`` to None to audit a server you run yourself
    (then ``url`` must not reference ``{port}``).

    Args:
        url: Page to audit. May reference ``{port}`` and ``{location}``.
        command: Command template writing a Lighthouse JSON report to stdout.
            May reference ``{url}``, ``{location}`` and ``{pass_index}``.
        score_expression: JMESPath template locating a category score;
            ``{category}`` is substituted before compiling.
        serve_command: Command template serving ``{location}`` on ``{port}``,
            or None.
        serve_timeout: Seconds to wait for the server to accept connections.
        cwd: Working directory for the commands.
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        command: str = DEFAULT_COMMAND,
        score_expression: str = DEFAULT_SCORE_EXPRESSION,
        serve_command: str | None = DEFAULT_SERVE_COMMAND,
        serve_timeout: float = 10.0,
        cwd: str | None = None,
    ) -> None:
        self.url = url
        self.command = command
        self.score_expression = score_expression
        self.serve_command = serve_command
        self.serve_timeout = serve_timeout
        self.cwd = Path(cwd) if cwd else None
        self._reports: dict[tuple[str, int], dict[str, Any]] = {}
        self._locks: dict[tuple[str, int], asyncio.Lock] = {}
        self._servers: dict[str, tuple[asyncio.subprocess.Process, int]] = {}
        self._server_locks: dict[str, asyncio.Lock] = {}

    async def measure(
        self,
        artifact: ArtifactRef,
        category: str,
        pass_index: int,
    ) -> MetricSample | None:
        report = await self._report_for_pass(artifact, pass_index)

        try:
            expression = jmespath.compile(self.score_expression.format(category=category))
            score = expression.search(report)
        except jmespath.exceptions.JMESPathError as exc:
            raise MeasurementError(
                f"Invalid score expression for '{category}': {exc}",
                category=category,
                pass_index=pass_index,
            ) from exc

        if score is None:
            logger.debug("Lighthouse report has no score for '%s' (pass %d)", category, pass_index)
            return None
        if not isinstance(score, (int, float)) or isinstance(score, bool) or not 0.0 <= score <= 1.0:
            raise MeasurementError(
                f"Lighthouse score for '{category}' is not in [0, 1]: {score!r}",
                category=category,
                pass_index=pass_index,
            )
        return MetricSample(category=category, score=float(score), pass_index=pass_index)

    def forget(self, run_id: str) -> None:
        """Stop the run's artifact server and drop its cached reports."""
        server = self._servers.pop(run_id, None)
        if server is not None:
            stop_background(server[0])
            logger.debug("Stopped artifact server for run %s", run_id)
        self._server_locks.pop(run_id, None)
        for key in [k for k in self._reports if k[0] == run_id]:
            del self._reports[key]
        for key in [k for k in self._locks if k[0] == run_id]:
            del self._locks[key]

    async def _report_for_pass(self, artifact: ArtifactRef, pass_index: int) -> dict[str, Any]:
        key = (artifact.run_id, pass_index)
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key not in self._reports:
                self._reports[key] = await self._run_lighthouse(artifact, pass_index)
            return self._reports[key]

    async def _ensure_server(self, artifact: ArtifactRef) -> int | None:
        """Start (once per run) the server for the artifact; returns its port."""
        if self.serve_command is None:
            return None
        lock = self._server_locks.setdefault(artifact.run_id, asyncio.Lock())
        async with lock:
            if artifact.run_id in self._servers:
                return self._servers[artifact.run_id][1]

            port = _free_port()
            command = self.serve_command.format(
                python=shlex.quote(sys.executable),
                port=port,
                location=shlex.quote(artifact.location),
            )
            proc = await start_background(command, cwd=self.cwd)
            self._servers[artifact.run_id] = (proc, port)
            await self._wait_for_port(proc, port)
            logger.info("Serving %s for run %s on port %d", artifact.location, artifact.run_id, port)
            return port

    async def _wait_for_port(self, proc: asyncio.subprocess.Process, port: int) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.serve_timeout
        while True:
            if proc.returncode is not None:
                raise MeasurementError(f"Artifact server exited with {proc.returncode}")
            try:
                _, writer = await asyncio.open_connection("127.0.0.1", port)
            except OSError:
                if loop.time() >= deadline:
                    raise MeasurementError(
                        f"Artifact server did not listen on port {port} "
                        f"within {self.serve_timeout:.0f}s"
                    ) from None
                await asyncio.sleep(0.05)
            else:
                writer.close()
                await writer.wait_closed()
                return

    async def _run_lighthouse(self, artifact: ArtifactRef, pass_index: int) -> dict[str, Any]:
        port = await self._ensure_server(artifact)
        url = self.url.format(location=artifact.location, port=port)
        command = self.command.format(
            url=url,
            location=artifact.location,
            pass_index=pass_index,
        )
        result = await run_command(command, cwd=self.cwd)
        if not result.ok:
            raise MeasurementError(
                f"Lighthouse exited with {result.returncode}: {result.tail()}",
                pass_index=pass_index,
            )

        try:
            report = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise MeasurementError(
                f"Lighthouse output is not valid JSON: {exc}",
                pass_index=pass_index,
            ) from exc
        if not isinstance(report, dict):
            raise MeasurementError("Lighthouse report is not a JSON object", pass_index=pass_index)

        logger.info("Lighthouse pass %d complete for run %s", pass_index, artifact.run_id)
        return report
