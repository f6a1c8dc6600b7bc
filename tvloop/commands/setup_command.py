"""
Setup command - acquire every episode of the channel's shows
"""

import logging

from rich.console import Console
from rich.table import Table

from ..config import Config
from ..models import ShowResult
from ..orchestrator import AcquisitionOrchestrator

logger = logging.getLogger(__name__)
console = Console()


def setup_command(
    config: Config,
    orchestrator: AcquisitionOrchestrator,
    show_name: str | None = None,
    resume: bool = False,
    refresh_catalog: bool = False,
):
    """
    Run the tiered acquisition

    Args:
        config: Configuration object
        orchestrator: Wired acquisition pipeline
        show_name: Limit the run to one show (name or id); such a run
            resumes that show's state
        resume: Keep not_found episodes terminal instead of retrying them
        refresh_catalog: Rebuild catalogs from the metadata provider

    Returns:
        Tuple of (total_episodes, downloaded_episodes, missing_episodes)
    """
    total_episodes = 0
    downloaded_episodes = 0
    missing_episodes = 0

    if show_name:
        show = config.find_show(show_name)
        if show is None:
            console.print(f"[red]Unknown show:[/red] {show_name}")
            console.print(
                f"[dim]Known shows: {', '.join(s.title for s in config.show_configs)}[/dim]"
            )
            return total_episodes, downloaded_episodes, missing_episodes
        shows = [show]
        resume = True
    else:
        shows = config.show_configs

    mode = "Resuming" if resume else "Full run"
    console.print(f"[bold cyan]{mode}:[/bold cyan] {len(shows)} show(s)")

    results = orchestrator.run(shows, fresh=not resume, refresh_catalog=refresh_catalog)
    _print_results(results)

    for result in results:
        total_episodes += result.total
        downloaded_episodes += result.downloaded
        missing_episodes += result.still_missing

    return total_episodes, downloaded_episodes, missing_episodes


def _print_results(results: list[ShowResult]):
    table = Table(title="Acquisition Results")
    table.add_column("Show", style="green")
    table.add_column("Episodes", style="cyan")
    table.add_column("Needed", style="yellow")
    table.add_column("Downloaded", style="blue")
    table.add_column("Missing", style="red")
    table.add_column("Combined", style="magenta")

    for result in results:
        table.add_row(
            result.show.title,
            str(result.total),
            str(result.needed),
            str(result.downloaded),
            str(result.still_missing),
            str(result.combined),
        )
    console.print(table)
