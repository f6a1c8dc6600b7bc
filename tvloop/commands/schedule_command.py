"""
Schedule command - build the looping timeline from the files on disk
"""

import logging
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ..blocks import build_blocks
from ..config import Config
from ..downloader_utils import PathManager
from ..inventory import InventoryScanner, MediaProbe
from ..models import Schedule
from ..shuffle import Mulberry32, constrained_shuffle
from ..state import StateStore
from ..timeline import emit_timeline, save_schedule, validate_schedule
from ..utils import format_duration

logger = logging.getLogger(__name__)
console = Console()

DRY_RUN_PREVIEW = 20


def generate_schedule(
    config: Config,
    store: StateStore,
    paths: PathManager,
    seed: int | None = None,
    probe: MediaProbe | None = None,
    now: datetime | None = None,
) -> tuple[Schedule | None, int]:
    """
    Scan, block, shuffle and emit

    Returns:
        (schedule, violations); schedule is None when no file was found
    """
    scanner = InventoryScanner(paths, config.show_configs, store, probe=probe)
    by_show = scanner.scan()
    if not sum(len(entries) for entries in by_show.values()):
        return None, 0

    blocks = build_blocks(by_show)
    rng = Mulberry32(config.shuffle_seed if seed is None else seed)
    ordered = constrained_shuffle(blocks, rng)
    schedule = emit_timeline(ordered, now)
    return schedule, validate_schedule(schedule)


def schedule_command(
    config: Config,
    store: StateStore,
    paths: PathManager,
    dry_run: bool = False,
    seed: int | None = None,
    probe: MediaProbe | None = None,
) -> Schedule | None:
    """
    Generate the schedule and persist it (unless dry_run)

    Args:
        config: Configuration object
        store: State store, source of episode metadata
        paths: Library layout
        dry_run: Print the summary and the first entries without saving
        seed: Shuffle seed, overrides the configured one

    Returns:
        The generated Schedule, None when the library is empty
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Scanning and probing episodes...", total=None)
        schedule, violations = generate_schedule(config, store, paths, seed, probe)
        progress.update(task, completed=True)

    if schedule is None:
        console.print("[red]No episodes found![/red] Run 'tvloop setup' first.")
        return None

    _print_summary(schedule, violations)

    if dry_run:
        _print_preview(schedule)
        console.print("\n[yellow]DRY RUN:[/yellow] schedule not saved")
        return schedule

    save_schedule(schedule, Path(config.schedule_file))
    console.print(f"\n[green]✓ Schedule saved to {config.schedule_file}[/green]")
    return schedule


def _print_summary(schedule: Schedule, violations: int):
    stats: dict[str, list[int]] = {}
    for entry in schedule.entries:
        count_duration = stats.setdefault(entry.show, [0, 0])
        count_duration[0] += 1
        count_duration[1] += entry.duration_ms

    table = Table(title="Schedule Summary")
    table.add_column("Show", style="green")
    table.add_column("Entries", style="cyan")
    table.add_column("Duration", style="blue")
    for show, (count, duration) in stats.items():
        table.add_row(show, str(count), format_duration(duration))
    console.print(table)

    console.print(f"Total entries: {schedule.total_entries}")
    console.print(f"Cycle duration: {format_duration(schedule.cycle_duration_ms)}")
    style = "green" if violations == 0 else "red"
    console.print(f"Constraint violations: [{style}]{violations}[/{style}]")


def _print_preview(schedule: Schedule):
    table = Table(title=f"First {DRY_RUN_PREVIEW} entries")
    table.add_column("#", style="dim")
    table.add_column("Start", style="cyan")
    table.add_column("Show", style="green")
    table.add_column("Episode")
    table.add_column("Title")
    table.add_column("Block", style="dim")
    for entry in schedule.entries[:DRY_RUN_PREVIEW]:
        minutes = entry.start_offset_ms // 60000
        episode = f"S{entry.season:02d}E{entry.episode:02d}"
        if entry.episode_end != entry.episode:
            episode += f"-E{entry.episode_end:02d}"
        table.add_row(
            str(entry.index),
            f"{minutes // 60}:{minutes % 60:02d}",
            entry.show,
            episode,
            entry.title,
            entry.block_id,
        )
    console.print(table)
