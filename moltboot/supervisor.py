"""Gateway process supervision: singleton guard, launch, log capture, exit status."""

import logging
import subprocess
from collections import deque
from datetime import datetime
from pathlib import Path

import typer

from moltboot.lib import config
from moltboot.lib.errors import GatewayError, log_error
from moltboot.lib.paths import Layout
from moltboot.settings import Settings

logger = logging.getLogger(__name__)

COMMAND_NOT_EXECUTABLE = 126
COMMAND_NOT_FOUND = 127


def _timestamp() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def tail(path: Path, lines: int) -> list[str]:
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return list(deque(f, maxlen=lines))
    except OSError:
        return []


def exit_status(returncode: int) -> int:
    """Map a Popen return code to a shell-style exit status (signals become 128+N)."""
    return 128 - returncode if returncode < 0 else returncode


class ProcessSupervisor:
    def __init__(self, layout: Layout, settings: Settings, cfg: dict | None = None):
        gateway_cfg = (cfg if cfg is not None else config.load_config()).get("gateway", {})
        self.layout = layout
        self.settings = settings
        self.command = gateway_cfg.get("command", "clawdbot")
        self.port = int(gateway_cfg.get("port", 18789))
        self.bind = gateway_cfg.get("bind", "lan")
        self.tail_lines = int(gateway_cfg.get("log_tail_lines", 50))

    @property
    def pattern(self) -> str:
        return f"{self.command} gateway"

    def already_running(self) -> bool:
        """True if a process whose command line matches the gateway invocation is alive."""
        try:
            result = subprocess.run(
                ["pgrep", "-f", self.pattern],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            logger.debug("pgrep not available, assuming gateway is not running")
            return False
        return result.returncode == 0

    def clear_locks(self) -> None:
        for lock in self.layout.lock_files:
            try:
                lock.unlink(missing_ok=True)
            except OSError as e:
                log_error("supervise", e, f"remove {lock}")

    def build_command(self) -> list[str]:
        cmd = [
            self.command,
            "gateway",
            "--port",
            str(self.port),
            "--verbose",
            "--allow-unconfigured",
            "--bind",
            self.bind,
        ]
        if self.settings.gateway_token:
            cmd += ["--token", self.settings.gateway_token]
        return cmd

    def _launch(self, cmd: list[str], **kwargs) -> int:
        """Run cmd to completion. Launch failures map to shell exit statuses 127 and 126."""
        try:
            proc = subprocess.run(cmd, **kwargs)
        except FileNotFoundError as e:
            raise GatewayError(f"{cmd[0]}: command not found", COMMAND_NOT_FOUND) from e
        except OSError as e:
            raise GatewayError(f"{cmd[0]}: {e.strerror or e}", COMMAND_NOT_EXECUTABLE) from e
        return exit_status(proc.returncode)

    def _spawn(self, cmd: list[str], log_path: Path | None) -> int:
        if log_path is None:
            return self._launch(cmd)
        try:
            log = open(log_path, "a", encoding="utf-8")
        except OSError as e:
            log_error("supervise", e, "gateway output will not be captured")
            return self._launch(cmd)
        with log:
            return self._launch(cmd, stdout=log, stderr=subprocess.STDOUT)

    def _append(self, log_path: Path | None, text: str) -> None:
        if log_path is None:
            return
        try:
            with open(log_path, "a", encoding="utf-8") as log:
                log.write(text)
        except OSError as e:
            log_error("supervise", e, f"write {log_path}")

    def run(self) -> int:
        """Launch the gateway and block until it exits. Returns its exit status."""
        if self.already_running():
            logger.info("Gateway is already running, exiting.")
            return 0

        self.clear_locks()
        log_path = self.layout.gateway_log
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_path.write_text(f"=== Gateway starting at {_timestamp()} ===\n", encoding="utf-8")
        except OSError as e:
            log_error("supervise", e, "gateway output will not be captured")
            log_path = None

        logger.info(f"Starting gateway on port {self.port}, bind mode: {self.bind}")
        if self.settings.gateway_token:
            logger.info("Starting gateway with token auth...")
        else:
            logger.info("Starting gateway with device pairing (no token)...")

        try:
            code = self._spawn(self.build_command(), log_path)
        except GatewayError as e:
            log_error("supervise", e)
            code = e.exit_code
            self._append(log_path, f"{e}\n")

        self._append(log_path, f"=== Gateway exited with code {code} at {_timestamp()} ===\n")
        if log_path is not None:
            typer.echo(f"=== Last {self.tail_lines} lines of gateway output ===", err=True)
            for line in tail(log_path, self.tail_lines):
                typer.echo(line, err=True, nl=False)
        return code
