from dataclasses import dataclass, field
from pathlib import Path

from . import config


@dataclass(frozen=True)
class Layout:
    """On-disk locations the boot pipeline reads and writes."""

    config_dir: Path
    legacy_config_dir: Path
    backup_dir: Path
    workspace_dir: Path
    template_file: Path
    gateway_log: Path
    config_file_name: str = "openclaw.json"
    legacy_config_file_name: str = "clawdbot.json"
    lock_files: tuple[Path, ...] = field(default_factory=tuple)

    @property
    def config_file(self) -> Path:
        return self.config_dir / self.config_file_name

    @property
    def local_sync_marker(self) -> Path:
        return self.config_dir / SYNC_MARKER

    @property
    def remote_sync_marker(self) -> Path:
        return self.backup_dir / SYNC_MARKER


SYNC_MARKER = ".last-sync"


def layout(cfg: dict | None = None) -> Layout:
    """Build the Layout from boot config (packaged defaults unless given)."""
    cfg = cfg if cfg is not None else config.load_config()
    p = cfg.get("paths", {})
    config_dir = Path(p["config_dir"])
    lock_files = tuple(
        Path(str(entry).format(config_dir=config_dir)) for entry in p.get("lock_files", [])
    )
    return Layout(
        config_dir=config_dir,
        legacy_config_dir=Path(p["legacy_config_dir"]),
        backup_dir=Path(p["backup_dir"]),
        workspace_dir=Path(p["workspace_dir"]),
        template_file=Path(p["template_file"]),
        gateway_log=Path(p["gateway_log"]),
        config_file_name=p.get("config_file_name", "openclaw.json"),
        legacy_config_file_name=p.get("legacy_config_file_name", "clawdbot.json"),
        lock_files=lock_files,
    )


def rooted(root: Path) -> Layout:
    """Layout with every location under root, mirroring the container paths."""
    config_dir = root / ".openclaw"
    return Layout(
        config_dir=config_dir,
        legacy_config_dir=root / ".clawdbot",
        backup_dir=root / "data" / "moltbot",
        workspace_dir=root / "clawd",
        template_file=root / ".clawdbot-templates" / "moltbot.json.template",
        gateway_log=root / "tmp" / "gateway.log",
        lock_files=(root / "tmp" / "clawdbot-gateway.lock", config_dir / "gateway.lock"),
    )
