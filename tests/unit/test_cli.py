"""Tests for the command-line interface."""

import pytest
from typer.testing import CliRunner

from gitmon import __version__
from gitmon.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep the CLI from reconfiguring logging for the whole test session."""
    monkeypatch.setattr("gitmon.cli.configure_logging", lambda *args, **kwargs: None)
    monkeypatch.delenv("GITMON_CONFIG", raising=False)
    monkeypatch.delenv("GITMON_TOKEN", raising=False)


@pytest.fixture
def config_file(tmp_path, clone_config):
    path = tmp_path / "config.toml"
    path.write_text(
        f"""
cache_dir = "{tmp_path / 'cache'}"

[[repos]]
path = "{clone_config.path}"
name = "clone"
"""
    )
    return path


def test_run_writes_report(config_file, tmp_path, upstream):
    """Test a run that writes the report to a file."""
    output = tmp_path / "out" / "report.html"

    result = runner.invoke(app, ["run", "--config", str(config_file), "--output", str(output)])

    assert result.exit_code == 0, result.output
    html = output.read_text()
    assert "<h2>Repository: clone</h2>" in html
    assert upstream.head() in html
    assert (tmp_path / "cache" / "state.json").exists()


def test_second_run_reports_nothing(config_file, tmp_path):
    """Test that a second run without upstream changes sends nothing."""
    output = tmp_path / "report.html"
    runner.invoke(app, ["run", "-c", str(config_file), "-o", str(output)])
    output.unlink()

    result = runner.invoke(app, ["run", "-c", str(config_file), "-o", str(output)])

    assert result.exit_code == 0, result.output
    assert "No new commits found." in result.output
    assert not output.exists()


def test_run_without_mail_settings_fails(config_file):
    """Test that a report with nowhere to go fails the run."""
    result = runner.invoke(app, ["run", "-c", str(config_file)])

    assert result.exit_code == 1
    assert "No mail settings configured" in result.output


def test_run_with_broken_config(tmp_path):
    """Test that an unparsable config exits with status 1."""
    path = tmp_path / "config.toml"
    path.write_text("repos = [\n")

    result = runner.invoke(app, ["run", "-c", str(path)])

    assert result.exit_code == 1
    assert "Failed to parse config TOML" in result.output


def test_status(config_file, upstream):
    """Test listing stored watermarks."""
    result = runner.invoke(app, ["status", "-c", str(config_file)])
    assert result.exit_code == 0, result.output
    assert "never checked" in result.output

    runner.invoke(app, ["run", "-c", str(config_file), "-o", str(config_file.parent / "r.html")])

    result = runner.invoke(app, ["status", "-c", str(config_file)])
    assert result.exit_code == 0, result.output
    assert "main" in result.output
    assert upstream.head()[:8] in result.output


def test_forget(config_file, tmp_path):
    """Test dropping the watermark of a repository by name."""
    runner.invoke(app, ["run", "-c", str(config_file), "-o", str(tmp_path / "r.html")])

    result = runner.invoke(app, ["forget", "clone", "-c", str(config_file)])
    assert result.exit_code == 0, result.output
    assert "Forgot clone" in result.output

    result = runner.invoke(app, ["forget", "clone", "-c", str(config_file)])
    assert result.exit_code == 1
    assert "No watermark stored" in result.output


def test_version():
    """Test version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output
