"""Status command - current acquisition counts, no provider calls"""

from rich.console import Console
from rich.table import Table

from ..config import Config
from ..state import StateStore

console = Console()


def status_command(config: Config, store: StateStore, show_errors: bool = True):
    """Print per-show counts by status and by source tier

    Args:
        config: Application configuration
        store: State store to read
        show_errors: List every episode in error with its kind and message
    """
    table = Table(title="Download Status")
    table.add_column("Show", style="green")
    table.add_column("Downloaded", style="blue")
    table.add_column("Sources", style="dim")
    table.add_column("Errors", style="red")
    table.add_column("Not found", style="yellow")
    table.add_column("In progress", style="cyan")

    errors: list[tuple[str, str, str, str]] = []
    for show in config.show_configs:
        if not store.path_for(show).exists():
            table.add_row(show.title, "[dim]Not started[/dim]", "", "", "", "")
            continue

        counts = store.load(show).counts()
        total = counts["total"]
        percent = f" ({counts['downloaded'] / total * 100:.0f}%)" if total else ""
        sources = ", ".join(f"{k}: {v}" for k, v in sorted(counts["sources"].items()))
        table.add_row(
            show.title,
            f"{counts['downloaded']}/{total}{percent}",
            sources,
            str(counts["error"]),
            str(counts["not_found"]),
            str(counts["in_progress"]),
        )
        errors.extend((show.title, key, kind, message) for key, kind, message in counts["errors"])

    console.print(table)

    if show_errors and errors:
        console.print("\n[bold red]Errors:[/bold red]")
        for title, key, kind, message in errors:
            console.print(f"  [red]✗[/red] {title} {key} [dim]({kind})[/dim]: {message}")
