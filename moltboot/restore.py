"""Restore gateway config and workspace from the mounted backup volume.

Backup layouts, newest first:

- structured: ``<backup>/config/`` (or ``<backup>/clawdbot/``) and ``<backup>/workspace/``
- legacy flat: the config file directly under ``<backup>/``
- legacy skills-only: ``<backup>/skills/``

Every copy is best-effort. A failed copy degrades the stage but never stops the boot.
"""

import logging
import shutil
from functools import cached_property
from pathlib import Path

from moltboot.lib.errors import RestoreError, log_error
from moltboot.lib.paths import Layout
from moltboot.models import StageResult, StageStatus

from .sync import should_restore

logger = logging.getLogger(__name__)

STRUCTURED_CONFIG_DIRS = ("config", "clawdbot")
WORKSPACE_DIR = "workspace"
SKILLS_DIR = "skills"


def _non_empty_dir(path: Path) -> bool:
    try:
        return path.is_dir() and any(path.iterdir())
    except OSError:
        return False


def copy_tree(src: Path, dst: Path) -> None:
    """Merge src/* into dst, preserving metadata and overwriting existing files."""
    try:
        dst.mkdir(parents=True, exist_ok=True)
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    except OSError as e:
        raise RestoreError(f"copy {src} -> {dst}: {e}") from e


class RestoreEngine:
    def __init__(self, layout: Layout):
        self.layout = layout

    @property
    def backup_dir(self) -> Path:
        return self.layout.backup_dir

    def _has_config(self, directory: Path) -> bool:
        return any(
            (directory / name).is_file()
            for name in (self.layout.legacy_config_file_name, self.layout.config_file_name)
        )

    def structured_config_dir(self) -> Path | None:
        for name in STRUCTURED_CONFIG_DIRS:
            candidate = self.backup_dir / name
            if self._has_config(candidate):
                return candidate
        return None

    @cached_property
    def permitted(self) -> bool:
        """Freshness decision, taken once before anything is copied."""
        return should_restore(self.layout.remote_sync_marker, self.layout.local_sync_marker)

    def run(self) -> list[StageResult]:
        return [self.restore_config(), self.restore_workspace()]

    def restore_config(self) -> StageResult:
        stage = "restore-config"
        structured = self.structured_config_dir()

        if structured is not None:
            if not self.permitted:
                return StageResult(stage, StageStatus.SKIPPED, "local state is current")
            logger.info(f"Restoring from backup at {structured}...")
            result = self._copy(stage, structured, self.layout.config_dir)
            self._rename_legacy_config()
        elif self._has_config(self.backup_dir):
            if not self.permitted:
                return StageResult(stage, StageStatus.SKIPPED, "local state is current")
            logger.info(f"Restoring from legacy backup at {self.backup_dir}...")
            result = self._copy(stage, self.backup_dir, self.layout.config_dir)
        elif self.backup_dir.is_dir():
            logger.info(f"Backup mounted at {self.backup_dir} but no backup data found yet")
            return StageResult(stage, StageStatus.SKIPPED, "mounted, no data yet")
        else:
            logger.info("Backup not mounted, starting fresh")
            return StageResult(stage, StageStatus.SKIPPED, "fresh start")

        self._copy_sync_marker()
        return result

    def restore_workspace(self) -> StageResult:
        stage = "restore-workspace"
        workspace = self.backup_dir / WORKSPACE_DIR
        skills = self.backup_dir / SKILLS_DIR

        if _non_empty_dir(workspace):
            source, target = workspace, self.layout.workspace_dir
        elif _non_empty_dir(skills):
            source, target = skills, self.layout.workspace_dir / SKILLS_DIR
            logger.info("Found legacy skills-only backup")
        else:
            return StageResult(stage, StageStatus.SKIPPED, "no workspace backup")

        if not self.permitted:
            return StageResult(stage, StageStatus.SKIPPED, "local state is current")
        logger.info(f"Restoring workspace from {source}...")
        return self._copy(stage, source, target)

    def _copy(self, stage: str, src: Path, dst: Path) -> StageResult:
        try:
            copy_tree(src, dst)
        except RestoreError as e:
            log_error(stage, e)
            return StageResult(stage, StageStatus.DEGRADED, str(e))
        logger.info(f"Restored {src} -> {dst}")
        return StageResult(stage, StageStatus.OK, str(src))

    def _rename_legacy_config(self) -> None:
        legacy = self.layout.config_dir / self.layout.legacy_config_file_name
        canonical = self.layout.config_file
        if legacy.is_file() and not canonical.exists():
            try:
                legacy.rename(canonical)
            except OSError as e:
                log_error("restore-config", e, f"rename {legacy.name}")

    def _copy_sync_marker(self) -> None:
        try:
            shutil.copy2(self.layout.remote_sync_marker, self.layout.local_sync_marker)
        except OSError as e:
            log_error("restore-config", e, "copy sync marker")


def restore(layout: Layout) -> list[StageResult]:
    return RestoreEngine(layout).run()
