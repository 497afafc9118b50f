import subprocess

import pytest

from moltboot.settings import Settings
from moltboot.supervisor import (
    COMMAND_NOT_EXECUTABLE,
    COMMAND_NOT_FOUND,
    ProcessSupervisor,
    exit_status,
    tail,
)


@pytest.fixture
def supervisor(layout, boot_cfg):
    return ProcessSupervisor(layout, Settings(), boot_cfg)


def _completed(code):
    return subprocess.CompletedProcess(args=[], returncode=code)


def test_build_command_without_token(supervisor):
    assert supervisor.build_command() == [
        "clawdbot",
        "gateway",
        "--port",
        "18789",
        "--verbose",
        "--allow-unconfigured",
        "--bind",
        "lan",
    ]


def test_build_command_with_token(layout, boot_cfg):
    supervisor = ProcessSupervisor(layout, Settings(gateway_token="tok"), boot_cfg)
    assert supervisor.build_command()[-2:] == ["--token", "tok"]


def test_already_running_uses_pgrep(supervisor, mocker):
    run = mocker.patch("moltboot.supervisor.subprocess.run", return_value=_completed(0))
    assert supervisor.already_running() is True
    assert run.call_args.args[0] == ["pgrep", "-f", "clawdbot gateway"]

    run.return_value = _completed(1)
    assert supervisor.already_running() is False


def test_already_running_without_pgrep(supervisor, mocker):
    mocker.patch("moltboot.supervisor.subprocess.run", side_effect=FileNotFoundError("pgrep"))
    assert supervisor.already_running() is False


def test_guard_short_circuits(supervisor, mocker):
    mocker.patch.object(supervisor, "already_running", return_value=True)
    spawn = mocker.patch.object(supervisor, "_spawn")

    assert supervisor.run() == 0
    spawn.assert_not_called()


def test_clear_locks(supervisor, layout):
    for lock in layout.lock_files:
        lock.parent.mkdir(parents=True, exist_ok=True)
        lock.write_text("")

    supervisor.clear_locks()

    assert not any(lock.exists() for lock in layout.lock_files)


def test_run_propagates_exit_code_and_tails_log(supervisor, layout, mocker, capsys):
    mocker.patch.object(supervisor, "already_running", return_value=False)

    def fake_run(cmd, stdout=None, stderr=None):
        stdout.write("listening on 18789\ncrashed: bad config\n")
        return _completed(3)

    run = mocker.patch("moltboot.supervisor.subprocess.run", side_effect=fake_run)

    assert supervisor.run() == 3
    assert run.call_args.kwargs["stderr"] is subprocess.STDOUT

    log = layout.gateway_log.read_text().splitlines()
    assert log[0].startswith("=== Gateway starting at ")
    assert log[1:3] == ["listening on 18789", "crashed: bad config"]
    assert log[-1].startswith("=== Gateway exited with code 3 at ")

    err = capsys.readouterr().err
    assert "=== Last 50 lines of gateway output ===" in err
    assert "crashed: bad config" in err


def test_run_removes_stale_locks(supervisor, layout, mocker):
    mocker.patch.object(supervisor, "already_running", return_value=False)
    mocker.patch.object(supervisor, "_spawn", return_value=0)
    stale = layout.lock_files[0]
    stale.parent.mkdir(parents=True, exist_ok=True)
    stale.write_text("")

    assert supervisor.run() == 0
    assert not stale.exists()


def test_missing_binary_returns_127(supervisor, layout, mocker):
    mocker.patch.object(supervisor, "already_running", return_value=False)
    mocker.patch("moltboot.supervisor.subprocess.run", side_effect=FileNotFoundError("clawdbot"))

    assert supervisor.run() == COMMAND_NOT_FOUND
    assert "command not found" in layout.gateway_log.read_text()


def test_unwritable_log_still_launches(supervisor, layout, mocker):
    mocker.patch.object(supervisor, "already_running", return_value=False)
    layout.gateway_log.parent.parent.mkdir(parents=True, exist_ok=True)
    layout.gateway_log.parent.write_text("not a directory")
    run = mocker.patch("moltboot.supervisor.subprocess.run", return_value=_completed(0))

    assert supervisor.run() == 0
    run.assert_called_once_with(supervisor.build_command())


def test_exit_status_maps_signals():
    assert exit_status(0) == 0
    assert exit_status(1) == 1
    assert exit_status(-15) == 143


def test_tail(tmp_path):
    log = tmp_path / "gateway.log"
    log.write_text("".join(f"line {i}\n" for i in range(100)))
    lines = tail(log, 50)
    assert len(lines) == 50
    assert lines[0] == "line 50\n"
    assert tail(tmp_path / "missing.log", 5) == []


def test_tail_lines_configurable(layout, boot_cfg):
    cfg = {**boot_cfg, "gateway": {**boot_cfg["gateway"], "log_tail_lines": 5}}
    assert ProcessSupervisor(layout, Settings(), cfg).tail_lines == 5


def test_non_executable_binary_returns_126(layout, boot_cfg, capsys):
    binary = layout.workspace_dir / "clawdbot"
    binary.parent.mkdir(parents=True)
    binary.write_text("#!/bin/sh\nexit 0\n")
    binary.chmod(0o644)
    cfg = {**boot_cfg, "gateway": {**boot_cfg["gateway"], "command": str(binary)}}
    supervisor = ProcessSupervisor(layout, Settings(), cfg)
    supervisor.already_running = lambda: False

    assert supervisor.run() == COMMAND_NOT_EXECUTABLE

    log = layout.gateway_log.read_text().splitlines()
    assert log[-1].startswith("=== Gateway exited with code 126 at ")
    assert "=== Last 50 lines of gateway output ===" in capsys.readouterr().err


def test_other_launch_errors_return_126(supervisor, layout, mocker):
    mocker.patch.object(supervisor, "already_running", return_value=False)
    mocker.patch("moltboot.supervisor.subprocess.run", side_effect=OSError(8, "Exec format error"))

    assert supervisor.run() == COMMAND_NOT_EXECUTABLE
    assert "Exec format error" in layout.gateway_log.read_text()
