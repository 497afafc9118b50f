"""Canonical config directory with the legacy path kept as a symlink alias."""

import logging
import shutil
from pathlib import Path

from moltboot.lib.errors import log_error
from moltboot.models import StageResult, StageStatus

logger = logging.getLogger(__name__)

STAGE = "migrate"


def _copy_contents(src: Path, dst: Path) -> list[str]:
    """Copy src/* into dst, preserving metadata. Returns entries that failed."""
    failed = []
    for entry in src.iterdir():
        target = dst / entry.name
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.copytree(entry, target, symlinks=True, dirs_exist_ok=True)
            else:
                shutil.copy2(entry, target, follow_symlinks=False)
        except (OSError, shutil.Error) as e:
            log_error(STAGE, e, f"copy {entry}")
            failed.append(entry.name)
    return failed


def ensure_canonical(canonical: Path, legacy: Path) -> StageResult:
    """Ensure canonical exists as a real directory and legacy is a symlink to it.

    A pre-migration legacy directory is copied into canonical (skipping entries that
    fail to copy), removed, then replaced by the symlink. Safe to run on every boot.
    """
    try:
        canonical.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        log_error(STAGE, e, f"create {canonical}")
        return StageResult(STAGE, StageStatus.FAILED, str(e))

    if legacy.is_symlink():
        return StageResult(STAGE, StageStatus.SKIPPED, f"{legacy} already linked")

    failed: list[str] = []
    try:
        if legacy.is_dir():
            logger.info(f"Migrating {legacy} into {canonical}")
            failed = _copy_contents(legacy, canonical)
            shutil.rmtree(legacy)
        elif legacy.exists():
            raise FileExistsError(f"{legacy} exists and is not a directory")
        legacy.parent.mkdir(parents=True, exist_ok=True)
        legacy.symlink_to(canonical, target_is_directory=True)
    except OSError as e:
        log_error(STAGE, e, f"link {legacy} -> {canonical}")
        return StageResult(STAGE, StageStatus.FAILED, str(e))

    if failed:
        return StageResult(STAGE, StageStatus.DEGRADED, f"skipped: {', '.join(failed)}")
    return StageResult(STAGE, StageStatus.OK, f"{legacy} -> {canonical}")
