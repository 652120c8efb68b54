"""Main CLI entry point for regnet."""

import typer

from regnet import __version__
from regnet.cli.ui import console, fail
from regnet.exceptions import ConfigurationError
from regnet.utils.config import get_settings
from regnet.utils.logging import configure_logging, set_command_id

from .commands import docker, mine, network, node

app = typer.Typer(
    name="regnet",
    help="⚡ Bitcoin and Lightning regtest networks in docker",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]regnet[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output to stderr"),
) -> None:
    """
    regnet - local Bitcoin/Lightning regtest networks.

    Describe a network of bitcoind, LND, Core Lightning and Eclair nodes and
    run it as docker containers.
    """
    try:
        settings = get_settings()
    except ConfigurationError as e:
        raise fail(e) from e
    configure_logging(
        log_level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.json_logs,
        dev_mode=settings.dev_mode,
    )
    set_command_id()


app.add_typer(network.app, name="network", help="🌐 Manage networks")
app.add_typer(node.app, name="node", help="🔗 Manage nodes")
app.add_typer(docker.app, name="docker", help="🐳 Docker runtime")
app.command("mine")(mine.mine)


if __name__ == "__main__":
    app()
