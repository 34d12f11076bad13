"""Tests for the shell-command collaborators and the subprocess helper."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from perfgate.collaborators.commands import CommandBuilder, CommandPublisher, digest_tree
from perfgate.collaborators.lighthouse import LighthouseEngine
from perfgate.collaborators.process import CommandResult, run_command
from perfgate.errors import BuildError, MeasurementError, PublishError
from perfgate.models.run import ArtifactRef


def _result(stdout: str = "", returncode: int = 0, stderr: str = "") -> CommandResult:
    return CommandResult(command="cmd", returncode=returncode, stdout=stdout, stderr=stderr)


def _ref(run_id: str = "run-1") -> ArtifactRef:
    return ArtifactRef(run_id=run_id, digest="abc123", location="/srv/dist")


def _external_engine() -> LighthouseEngine:
    return LighthouseEngine(url="http://localhost:4173/", serve_command=None)


def _lighthouse_report(**scores) -> str:
    return json.dumps(
        {"categories": {name.replace("_", "-"): {"score": s} for name, s in scores.items()}}
    )


class TestRunCommand:
    """Real subprocess execution."""

    @pytest.mark.asyncio
    async def test_captures_output_and_env(self, tmp_path: Path):
        script = f'"{sys.executable}" -c "import os; print(os.environ[\'PG_TEST\'])"'
        result = await run_command(script, cwd=tmp_path, env={"PG_TEST": "hello"})
        assert result.ok
        assert result.stdout.strip() == "hello"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        result = await run_command(f'"{sys.executable}" -c "import sys; sys.exit(3)"')
        assert not result.ok
        assert result.returncode == 3

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        task = asyncio.create_task(
            run_command(f'"{sys.executable}" -c "import time; time.sleep(10)"')
        )
        await asyncio.sleep(0.2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    def test_tail_prefers_stderr(self):
        assert _result(stdout="out", stderr="err").tail() == "err"
        assert _result(stdout="x" * 1000).tail(limit=10) == "x" * 10


class TestDigestTree:
    """Content fingerprint of a build output."""

    def test_same_content_same_digest(self, tmp_path: Path):
        for name in ("a", "b"):
            (tmp_path / name / "assets").mkdir(parents=True)
            (tmp_path / name / "index.html").write_text("<html></html>")
            (tmp_path / name / "assets" / "app.js").write_text("console.log(1)")
        assert digest_tree(tmp_path / "a") == digest_tree(tmp_path / "b")

    def test_content_change_changes_digest(self, tmp_path: Path):
        (tmp_path / "index.html").write_text("one")
        before = digest_tree(tmp_path)
        (tmp_path / "index.html").write_text("two")
        assert digest_tree(tmp_path) != before


class TestCommandBuilder:
    """Builds via a shell command."""

    @pytest.mark.asyncio
    async def test_build_returns_digested_output(self, tmp_path: Path):
        (tmp_path / "dist").mkdir()
        (tmp_path / "dist" / "index.html").write_text("<html></html>")
        builder = CommandBuilder(command="npm run build", cwd=str(tmp_path))

        with patch(
            "perfgate.collaborators.commands.run_command",
            new_callable=AsyncMock,
            return_value=_result(),
        ) as mock_run:
            artifact = await builder.build("deadbeef")

        assert artifact.location == str((tmp_path / "dist").resolve())
        assert artifact.digest == digest_tree(tmp_path / "dist")
        assert mock_run.await_args.kwargs["env"] == {"PERFGATE_REVISION": "deadbeef"}

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_build_error(self, tmp_path: Path):
        builder = CommandBuilder(cwd=str(tmp_path))
        with patch(
            "perfgate.collaborators.commands.run_command",
            new_callable=AsyncMock,
            return_value=_result(returncode=1, stderr="Module not found"),
        ):
            with pytest.raises(BuildError, match="Module not found"):
                await builder.build("rev")

    @pytest.mark.asyncio
    async def test_missing_output_dir_is_build_error(self, tmp_path: Path):
        builder = CommandBuilder(cwd=str(tmp_path), output_dir="build")
        with patch(
            "perfgate.collaborators.commands.run_command",
            new_callable=AsyncMock,
            return_value=_result(),
        ):
            with pytest.raises(BuildError, match="not found"):
                await builder.build("rev")


class TestCommandPublisher:
    """Deploys via a shell command."""

    @pytest.mark.asyncio
    async def test_formats_command_and_parses_url(self):
        publisher = CommandPublisher()
        stdout = "Uploading... done\n✨ Deployment complete! https://abc123.site.pages.dev\n"
        with patch(
            "perfgate.collaborators.commands.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout=stdout),
        ) as mock_run:
            result = await publisher.publish(_ref(), "production")

        command = mock_run.await_args.args[0]
        assert "/srv/dist" in command
        assert "--project-name production" in command
        assert result.deployment_id == "https://abc123.site.pages.dev"
        assert result.url == result.deployment_id

    @pytest.mark.asyncio
    async def test_pattern_group_without_url(self):
        publisher = CommandPublisher(
            command="deploy {digest}", deployment_pattern=r"id=(\w+)"
        )
        with patch(
            "perfgate.collaborators.commands.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout="ok id=xyz789"),
        ):
            result = await publisher.publish(_ref(), "staging")
        assert result.deployment_id == "xyz789"
        assert result.url is None

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_publish_error(self):
        with patch(
            "perfgate.collaborators.commands.run_command",
            new_callable=AsyncMock,
            return_value=_result(returncode=1, stderr="auth failed"),
        ):
            with pytest.raises(PublishError, match="auth failed"):
                await CommandPublisher().publish(_ref(), "production")

    @pytest.mark.asyncio
    async def test_no_deployment_id_is_publish_error(self):
        with patch(
            "perfgate.collaborators.commands.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout="done"),
        ):
            with pytest.raises(PublishError, match="deployment id"):
                await CommandPublisher().publish(_ref(), "production")


class TestLighthouseEngine:
    """Score extraction and per-pass caching."""

    @pytest.mark.asyncio
    async def test_one_invocation_per_pass(self):
        engine = _external_engine()
        report = _lighthouse_report(performance=0.91, accessibility=0.88)
        with patch(
            "perfgate.collaborators.lighthouse.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout=report),
        ) as mock_run:
            perf = await engine.measure(_ref(), "performance", 1)
            a11y = await engine.measure(_ref(), "accessibility", 1)
            await engine.measure(_ref(), "performance", 2)

        assert perf.score == 0.91
        assert a11y.score == 0.88
        assert a11y.pass_index == 1
        assert mock_run.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_measurements_share_report(self):
        engine = _external_engine()

        async def slow_run(*args, **kwargs):
            await asyncio.sleep(0.01)
            return _result(stdout=_lighthouse_report(performance=0.9, seo=1.0))

        with patch("perfgate.collaborators.lighthouse.run_command", side_effect=slow_run) as mock_run:
            await asyncio.gather(
                engine.measure(_ref(), "performance", 1),
                engine.measure(_ref(), "seo", 1),
            )
        assert mock_run.call_count == 1

    @pytest.mark.asyncio
    async def test_hyphenated_category(self):
        engine = _external_engine()
        with patch(
            "perfgate.collaborators.lighthouse.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout=_lighthouse_report(best_practices=0.75)),
        ):
            sample = await engine.measure(_ref(), "best-practices", 1)
        assert sample.score == 0.75

    @pytest.mark.asyncio
    async def test_absent_or_null_score_skips(self):
        engine = _external_engine()
        with patch(
            "perfgate.collaborators.lighthouse.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout=_lighthouse_report(performance=None)),
        ):
            assert await engine.measure(_ref(), "performance", 1) is None
            assert await engine.measure(_ref(), "seo", 1) is None

    @pytest.mark.asyncio
    async def test_out_of_range_score_rejected(self):
        engine = _external_engine()
        with patch(
            "perfgate.collaborators.lighthouse.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout=_lighthouse_report(performance=91)),
        ):
            with pytest.raises(MeasurementError, match="not in"):
                await engine.measure(_ref(), "performance", 1)

    @pytest.mark.asyncio
    async def test_invalid_json_rejected(self):
        engine = _external_engine()
        with patch(
            "perfgate.collaborators.lighthouse.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout="Chrome crashed"),
        ):
            with pytest.raises(MeasurementError, match="not valid JSON"):
                await engine.measure(_ref(), "performance", 1)

    @pytest.mark.asyncio
    async def test_nonzero_exit_rejected(self):
        engine = _external_engine()
        with patch(
            "perfgate.collaborators.lighthouse.run_command",
            new_callable=AsyncMock,
            return_value=_result(returncode=1, stderr="no chrome"),
        ):
            with pytest.raises(MeasurementError, match="no chrome"):
                await engine.measure(_ref(), "performance", 1)

    @pytest.mark.asyncio
    async def test_forget_drops_cached_reports(self):
        engine = _external_engine()
        with patch(
            "perfgate.collaborators.lighthouse.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout=_lighthouse_report(performance=0.9)),
        ) as mock_run:
            await engine.measure(_ref("run-1"), "performance", 1)
            engine.forget("run-1")
            await engine.measure(_ref("run-1"), "performance", 1)
        assert mock_run.await_count == 2

    @pytest.mark.asyncio
    async def test_runs_are_cached_separately(self):
        engine = _external_engine()
        with patch(
            "perfgate.collaborators.lighthouse.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout=_lighthouse_report(performance=0.9)),
        ) as mock_run:
            await engine.measure(_ref("run-1"), "performance", 1)
            await engine.measure(_ref("run-2"), "performance", 1)
        assert mock_run.await_count == 2


class TestLighthouseArtifactServer:
    """The built artifact is served locally for the audit."""

    @pytest.mark.asyncio
    async def test_audits_served_artifact(self, tmp_path: Path):
        (tmp_path / "report.json").write_text(_lighthouse_report(performance=0.87))
        fetch = (
            f'"{sys.executable}" -c "import sys, urllib.request; '
            f"sys.stdout.write(urllib.request.urlopen('{{url}}report.json').read().decode())\""
        )
        engine = LighthouseEngine(command=fetch)
        ref = ArtifactRef(run_id="run-1", digest="abc123", location=str(tmp_path))

        sample = await engine.measure(ref, "performance", 1)
        assert sample.score == 0.87

        proc, _ = engine._servers["run-1"]
        engine.forget("run-1")
        await asyncio.wait_for(proc.wait(), timeout=5.0)
        assert "run-1" not in engine._servers

    @pytest.mark.asyncio
    async def test_url_uses_server_port(self, tmp_path: Path):
        engine = LighthouseEngine()
        ref = ArtifactRef(run_id="run-1", digest="abc123", location=str(tmp_path))
        with patch(
            "perfgate.collaborators.lighthouse.run_command",
            new_callable=AsyncMock,
            return_value=_result(stdout=_lighthouse_report(performance=0.9)),
        ) as mock_run:
            await engine.measure(ref, "performance", 1)
            await engine.measure(ref, "performance", 2)
        _, port = engine._servers["run-1"]
        engine.forget("run-1")

        command = mock_run.await_args.args[0]
        assert f"http://127.0.0.1:{port}/" in command
        assert mock_run.await_count == 2

    @pytest.mark.asyncio
    async def test_server_exit_is_measurement_error(self, tmp_path: Path):
        engine = LighthouseEngine(
            serve_command=f'"{sys.executable}" -c "import sys; sys.exit(4)"',
            serve_timeout=5.0,
        )
        ref = ArtifactRef(run_id="run-1", digest="abc123", location=str(tmp_path))
        with pytest.raises(MeasurementError, match="Artifact server"):
            await engine.measure(ref, "performance", 1)
        engine.forget("run-1")
