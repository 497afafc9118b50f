import json

import pytest
from typer.testing import CliRunner

from moltboot import cli
from moltboot.lib import paths
from moltboot.models import BootReport

runner = CliRunner()


@pytest.fixture
def rooted(layout, monkeypatch):
    monkeypatch.setattr(paths, "layout", lambda cfg=None: layout)
    return layout


def test_no_args_shows_help():
    result = runner.invoke(cli.app, [])
    assert "start" in result.output
    assert "configure" in result.output


def test_start_exits_with_gateway_code(mocker):
    mocker.patch("moltboot.boot.boot", return_value=BootReport(exit_code=7))
    result = runner.invoke(cli.app, ["start"])
    assert result.exit_code == 7


def test_configure_dry_run_prints_redacted(rooted, monkeypatch):
    monkeypatch.setenv("MOONSHOT_API_KEY", "sk-moon")
    result = runner.invoke(cli.app, ["configure", "--dry-run"])
    assert result.exit_code == 0
    assert '"primary": "openai/kimi-k2.5-preview"' in result.stdout
    assert "sk-moon" not in result.stdout
    assert not rooted.config_file.exists()


def test_configure_writes_document(rooted, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
    result = runner.invoke(cli.app, ["configure"])
    assert result.exit_code == 0
    doc = json.loads(rooted.config_file.read_text())
    assert doc["models"]["providers"]["anthropic"]["apiKey"] == "sk-ant"


def test_restore_json_output(rooted):
    result = runner.invoke(cli.app, ["--json", "restore"])
    assert result.exit_code == 0
    stages = [entry["stage"] for entry in json.loads(result.stdout)]
    assert stages == ["migrate", "restore-config", "restore-workspace"]
    assert rooted.legacy_config_dir.is_symlink()


def test_status(mocker):
    running = mocker.patch(
        "moltboot.supervisor.ProcessSupervisor.already_running", return_value=True
    )
    assert runner.invoke(cli.app, ["status"]).exit_code == 0
    running.return_value = False
    result = runner.invoke(cli.app, ["status"])
    assert result.exit_code == 1
    assert "not running" in result.stdout
