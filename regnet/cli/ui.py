"""Console helpers shared by the command groups."""

import typer
from rich.console import Console

from regnet.exceptions import RegnetError
from regnet.network.domain.enums import Status

console = Console()

STATUS_STYLES = {
    Status.STARTED: "green",
    Status.STARTING: "yellow",
    Status.STOPPING: "yellow",
    Status.STOPPED: "dim",
    Status.ERROR: "red",
}


def styled_status(status: Status) -> str:
    style = STATUS_STYLES[status]
    return f"[{style}]{status}[/{style}]"


def fail(error: RegnetError) -> typer.Exit:
    """Print ``error`` and return the exit to raise."""
    console.print(f"[red]❌ {error.message}[/red]")
    return typer.Exit(1)
