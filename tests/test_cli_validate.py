"""Tests for the perfgate validate CLI command."""

from pathlib import Path

from typer.testing import CliRunner

from perfgate.cli.main import app

runner = CliRunner()


class TestValidateCommand:
    """Tests for perfgate validate."""

    def test_valid_config_exits_zero(self, tmp_path: Path):
        path = tmp_path / "perfgate.yaml"
        path.write_text("assertions:\n  - category: performance\n    minScore: 0.9\n")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 0
        assert "valid" in result.output
        assert "performance" in result.output

    def test_invalid_config_exits_one(self, tmp_path: Path):
        path = tmp_path / "perfgate.yaml"
        path.write_text("numberOfPass: 3\n")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "1 error(s)" in result.output

    def test_ci_mode_concise_format(self, tmp_path: Path):
        path = tmp_path / "perfgate.yaml"
        path.write_text("numberOfPass: 3\n")
        result = runner.invoke(app, ["validate", "--ci", str(path)])
        assert result.exit_code == 1
        assert f"{path}:1:1 -- numberOfPass:" in result.output

    def test_missing_file(self, tmp_path: Path):
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1

    def test_default_path_is_project_config(self, tmp_path: Path, monkeypatch):
        (tmp_path / "perfgate.yaml").write_text("numberOfPasses: 1\n")
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 0
