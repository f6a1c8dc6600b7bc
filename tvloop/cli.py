"""
Command Line Interface (CLI) with Click
"""

import logging
import sys
import time

import click
import schedule
from rich.console import Console

from .cli_config import (
    build_orchestrator,
    load_config_from_args,
    setup_context,
    validate_credentials,
)
from .commands import run_test_command, schedule_command, setup_command, status_command
from .config import Config
from .errors import ConfigurationError
from .utils import setup_logging

logger = logging.getLogger(__name__)
console = Console()

VALID_UNITS = ["seconds", "minutes", "hours", "days", "weeks"]


@click.group()
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="YAML configuration file"
)
@click.option("--root", envvar="TVLOOP_ROOT", help="Library root directory")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
)
@click.pass_context
def cli(ctx, config, root, log_level):
    """tvloop - pseudo-live TV channel builder"""

    # Load configuration
    cfg = load_config_from_args(config, root, log_level)

    # Setup logging
    setup_logging(cfg.log_level)

    # Setup context
    ctx.ensure_object(dict)
    ctx.obj.update(setup_context(cfg))


@cli.command()
@click.option("--resume", "-r", is_flag=True, help="Resume: keep not-found episodes as final")
@click.option("--show", "-s", "show_name", help="Limit to one show (name or TMDB id)")
@click.option("--refresh-catalog", is_flag=True, help="Rebuild episode catalogs from TMDB")
@click.pass_context
def setup(ctx, resume, show_name, refresh_catalog):
    """Acquire every episode of the channel's shows"""

    config: Config = ctx.obj["config"]
    validate_credentials(config)

    try:
        orchestrator = build_orchestrator(config)
        total, downloaded, missing = setup_command(
            config,
            orchestrator,
            show_name=show_name,
            resume=resume,
            refresh_catalog=refresh_catalog,
        )
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    console.print(
        f"\n[bold]Summary:[/bold] {downloaded}/{total} episodes on disk, {missing} missing"
    )


@cli.command()
@click.pass_context
def status(ctx):
    """Show acquisition status (no provider calls)"""
    status_command(ctx.obj["config"], ctx.obj["store"])


@cli.command(name="schedule")
@click.option("--dry-run", "-d", is_flag=True, help="Print the schedule without saving it")
@click.option("--seed", type=int, help="Shuffle seed (overrides configuration)")
@click.pass_context
def schedule_cmd(ctx, dry_run, seed):
    """Generate the looping broadcast schedule"""
    result = schedule_command(
        ctx.obj["config"],
        ctx.obj["store"],
        ctx.obj["paths"],
        dry_run=dry_run,
        seed=seed,
    )
    if result is None:
        sys.exit(1)


@cli.command()
@click.pass_context
def test(ctx):
    """Test connection to TMDB, Prowlarr and Real-Debrid"""
    run_test_command(ctx.obj["config"])


@cli.command()
@click.option("--interval", "-i", type=int, help="Interval between runs")
@click.option(
    "--unit",
    "-u",
    type=click.Choice(VALID_UNITS),
    help="Interval unit",
)
@click.pass_context
def watch(ctx, interval, unit):
    """Resume acquisition then regenerate the schedule, periodically"""

    config: Config = ctx.obj["config"]
    validate_credentials(config)

    # Use command-line args if provided, otherwise use config
    schedule_interval = interval if interval is not None else config.schedule_interval
    schedule_unit = unit if unit is not None else config.schedule_unit

    if schedule_unit not in VALID_UNITS:
        console.print(f"[red]Invalid schedule unit:[/red] {schedule_unit}")
        console.print(f"Valid units: {', '.join(VALID_UNITS)}")
        sys.exit(1)

    console.print("[bold cyan]tvloop - Watch Mode[/bold cyan]")
    console.print(f"Running every {schedule_interval} {schedule_unit}")
    console.print("Press Ctrl+C to stop\n")

    def run_cycle():
        """Resume acquisition, then regenerate the schedule"""
        try:
            console.print(f"\n[bold blue]{'=' * 60}[/bold blue]")
            console.print(
                f"[bold blue]Running scheduled cycle at {time.strftime('%Y-%m-%d %H:%M:%S')}[/bold blue]"
            )
            console.print(f"[bold blue]{'=' * 60}[/bold blue]\n")

            ctx.invoke(setup, resume=True, show_name=None, refresh_catalog=False)
            ctx.invoke(schedule_cmd, dry_run=False, seed=None)

            console.print(f"\n[dim]Next run in {schedule_interval} {schedule_unit}[/dim]")

        except SystemExit:
            console.print("[red]Scheduled cycle aborted[/red]")
        except Exception as e:
            console.print(f"[red]Error during scheduled cycle:[/red] {e}")
            logger.exception("Error during scheduled cycle")

    getattr(schedule.every(schedule_interval), schedule_unit).do(run_cycle)

    # Run immediately on start
    console.print("[yellow]Running initial cycle...[/yellow]")
    run_cycle()

    # Keep running
    try:
        while True:
            schedule.run_pending()
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n\n[yellow]Watch mode stopped by user[/yellow]")
        sys.exit(0)


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
