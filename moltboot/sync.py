"""Freshness comparison between backup and local state via sync marker mtimes."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def should_restore(remote_marker: Path, local_marker: Path) -> bool:
    """True iff the remote marker exists and is strictly newer than the local one.

    Only file modification times are compared; marker contents are never parsed since
    the backup mount may not preserve them faithfully.
    """
    if not remote_marker.is_file():
        logger.info("No backup sync marker found, skipping restore")
        return False

    if not local_marker.is_file():
        logger.info("No local sync marker, will restore from backup")
        return True

    if remote_marker.stat().st_mtime > local_marker.stat().st_mtime:
        logger.info("Backup is newer, will restore")
        return True

    logger.info("Local data is newer or same, skipping restore")
    return False
