"""Boot pipeline: migrate -> restore -> configure -> supervise."""

import logging

from moltboot.lib import config, paths
from moltboot.lib.paths import Layout
from moltboot.models import BootReport, StageResult, StageStatus
from moltboot.settings import Settings

from . import migrate, restore, synth
from .supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


def _log_result(result: StageResult) -> None:
    if result.succeeded:
        logger.info(f"[{result.stage}] {result.status.value} {result.detail}".rstrip())
    else:
        logger.warning(f"[{result.stage}] {result.status.value}: {result.detail}")


def prepare(layout: Layout, report: BootReport) -> None:
    """Canonical directory and backup restore. Never raises on I/O faults."""
    logger.info(f"Config directory: {layout.config_dir}")
    logger.info(f"Backup directory: {layout.backup_dir}")
    _log_result(report.add(migrate.ensure_canonical(layout.config_dir, layout.legacy_config_dir)))
    for result in restore.restore(layout):
        _log_result(report.add(result))


def boot(
    layout: Layout | None = None,
    settings: Settings | None = None,
    cfg: dict | None = None,
) -> BootReport:
    """Run the full pipeline. report.exit_code is the gateway's exit status."""
    cfg = cfg if cfg is not None else config.load_config()
    layout = layout or paths.layout(cfg)
    settings = settings or Settings.from_env()
    report = BootReport()

    supervisor = ProcessSupervisor(layout, settings, cfg)
    if supervisor.already_running():
        logger.info("Gateway is already running, exiting.")
        report.add(StageResult("guard", StageStatus.SKIPPED, "gateway already running"))
        report.exit_code = 0
        return report

    prepare(layout, report)
    _, result = synth.synthesize(layout, settings, cfg)
    _log_result(report.add(result))

    report.exit_code = supervisor.run()
    return report
