import json
import logging

import typer

from moltboot.lib import config, errors, paths
from moltboot.models import BootReport, StageResult
from moltboot.settings import Settings

from . import boot, synth
from .supervisor import ProcessSupervisor

errors.install_error_handler("moltboot")

app = typer.Typer(no_args_is_help=True, add_completion=False)


def _emit(ctx: typer.Context, results: list[StageResult]) -> None:
    if ctx.obj.get("json"):
        typer.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return
    for r in results:
        suffix = f": {r.detail}" if r.detail else ""
        typer.echo(f"{r.stage:<18} {r.status.value}{suffix}")


@app.callback()
def common_options_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format."),
):
    """Restore, configure and supervise the moltbot gateway on container boot."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[moltboot] %(message)s",
    )
    if ctx.obj is None:
        ctx.obj = {}
    ctx.obj["json"] = json_output


@app.command()
def start():
    """Run the full boot pipeline and exit with the gateway's exit code."""
    report = boot.boot()
    raise typer.Exit(report.exit_code or 0)


@app.command()
def restore(ctx: typer.Context):
    """Migrate the legacy config path and restore state from the backup volume."""
    report = BootReport()
    boot.prepare(paths.layout(), report)
    _emit(ctx, report.results)


@app.command()
def configure(
    ctx: typer.Context,
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Print the synthesized config instead of writing it."
    ),
):
    """Synthesize the gateway config from the environment."""
    doc, result = synth.synthesize(paths.layout(), Settings.from_env(), dry_run=dry_run)
    if dry_run:
        typer.echo(json.dumps(synth.redact(doc), indent=2))
        return
    _emit(ctx, [result])


@app.command()
def status():
    """Report whether a gateway instance is running (exit 1 when it is not)."""
    supervisor = ProcessSupervisor(paths.layout(), Settings.from_env(), config.load_config())
    if supervisor.already_running():
        typer.echo("Gateway is running")
        return
    typer.echo("Gateway is not running")
    raise typer.Exit(1)


def main() -> None:
    """Entry point for moltboot command."""
    try:
        app()
    except SystemExit:
        raise
    except BaseException as e:
        raise SystemExit(1) from e
