"""Network management commands."""

import typer
from rich.table import Table

from regnet.cli import lifespan
from regnet.cli.ui import console, fail, styled_status
from regnet.exceptions import RegnetError
from regnet.network.application.services import NetworkService
from regnet.network.domain.enums import AutoMineMode
from regnet.network.domain.models import Network
from regnet.utils.async_bridge import run_async

app = typer.Typer(no_args_is_help=True)


def print_network(network: Network) -> None:
    table = Table(title=f"{network.name} (#{network.id}) {styled_status(network.status)}")
    table.add_column("Node", style="cyan")
    table.add_column("Implementation")
    table.add_column("Version")
    table.add_column("Backend")
    table.add_column("Status")

    for node in network.nodes.bitcoin:
        table.add_row(node.name, str(node.implementation), node.version, "", styled_status(node.status))
    for node in network.nodes.lightning:
        table.add_row(
            node.name, str(node.implementation), node.version, node.backend_name, styled_status(node.status)
        )
    console.print(table)


async def follow_mining(service: NetworkService, network: Network, duration: float) -> None:
    """Stay in the foreground while the network mines on its interval."""
    if not service.sync.is_auto_mining(network.id):
        console.print("[yellow]Nothing to follow: auto mining is off or the network is not started[/yellow]")
        return
    console.print(f"[dim]Mining a block every {int(network.auto_mine_mode)}s, press Ctrl-C to stop...[/dim]")
    await service.follow_auto_mining(network.id, duration or None)
    console.print("[green]Stopped following auto mining[/green]")


def print_follow_hint(network: Network) -> None:
    if network.auto_mine_mode != AutoMineMode.AUTO_OFF:
        console.print(
            f"[dim]Auto mining ({int(network.auto_mine_mode)}s) only runs while a command follows the network; "
            "pass --follow to keep mining.[/dim]"
        )


FOLLOW_OPTION = typer.Option(False, "--follow", help="Keep mining on the auto-mine interval until Ctrl-C")
DURATION_OPTION = typer.Option(
    0.0, "--duration", min=0.0, help="Stop following after N seconds (0: until Ctrl-C)"
)


@app.command("list")
def list_networks() -> None:
    """List saved networks."""

    async def _list() -> list[Network]:
        async with lifespan.network_service() as service:
            return list(service.networks)

    try:
        networks = run_async(_list())
    except RegnetError as e:
        raise fail(e) from e

    if not networks:
        console.print("[yellow]No networks yet. Create one with 'regnet network create'.[/yellow]")
        return

    table = Table(title=f"Networks ({len(networks)})")
    table.add_column("ID", style="cyan", width=6)
    table.add_column("Name", style="bold white")
    table.add_column("Nodes", justify="right")
    table.add_column("Auto mine", justify="right")
    table.add_column("Status")
    for network in networks:
        mode = int(network.auto_mine_mode)
        table.add_row(
            str(network.id),
            network.name,
            str(len(network.all_nodes())),
            f"{mode}s" if mode else "off",
            styled_status(network.status),
        )
    console.print(table)


@app.command("create")
def create_network(
    name: str = typer.Argument(..., help="Network name"),
    lnd: int = typer.Option(0, "--lnd", min=0, help="Number of LND nodes"),
    cln: int = typer.Option(0, "--cln", min=0, help="Number of Core Lightning nodes"),
    eclair: int = typer.Option(0, "--eclair", min=0, help="Number of Eclair nodes"),
    bitcoind: int = typer.Option(1, "--bitcoind", min=1, help="Number of bitcoind nodes"),
) -> None:
    """Create a new stopped network."""

    async def _create() -> Network:
        async with lifespan.network_service() as service:
            return await service.add_network(
                name, lnd_nodes=lnd, cln_nodes=cln, eclair_nodes=eclair, bitcoind_nodes=bitcoind
            )

    try:
        network = run_async(_create())
    except RegnetError as e:
        raise fail(e) from e

    console.print(f"[green]✅ Created network '{network.name}' with id {network.id}[/green]")
    print_network(network)


@app.command("show")
def show_network(network_id: int = typer.Argument(..., help="Network id")) -> None:
    """Show a network's nodes."""

    async def _show() -> Network:
        async with lifespan.network_service() as service:
            return service.network_by_id(network_id)

    try:
        network = run_async(_show())
    except RegnetError as e:
        raise fail(e) from e
    print_network(network)


@app.command("start")
def start_network(
    network_id: int = typer.Argument(..., help="Network id"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for nodes and prepare the chain"),
    follow: bool = FOLLOW_OPTION,
    duration: float = DURATION_OPTION,
) -> None:
    """Start every node of a network."""
    following = False

    async def _start() -> Network:
        nonlocal following
        async with lifespan.network_service() as service:
            network = await service.start(network_id)
            if wait:
                console.print("[dim]Waiting for nodes to come online...[/dim]")
                network = await service.monitor_startup(network_id)
            console.print(f"[green]✅ Network '{network.name}' started[/green]")
            print_network(network)
            if follow:
                following = True
                await follow_mining(service, network, duration)
            return network

    try:
        network = run_async(_start())
    except RegnetError as e:
        raise fail(e) from e
    except KeyboardInterrupt:
        if not following:
            raise
        console.print("[green]Stopped following auto mining[/green]")
        return

    if not follow:
        print_follow_hint(network)


@app.command("stop")
def stop_network(network_id: int = typer.Argument(..., help="Network id")) -> None:
    """Stop every node of a network."""

    async def _stop() -> Network:
        async with lifespan.network_service() as service:
            return await service.stop(network_id)

    try:
        network = run_async(_stop())
    except RegnetError as e:
        raise fail(e) from e
    console.print(f"[green]✅ Network '{network.name}' stopped[/green]")


@app.command("delete")
def delete_network(
    network_id: int = typer.Argument(..., help="Network id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a network, its containers and its data folder."""
    if not yes and not typer.confirm(f"Delete network {network_id} and all its data?"):
        raise typer.Exit(0)

    async def _delete() -> None:
        async with lifespan.network_service() as service:
            await service.delete_network(network_id)

    try:
        run_async(_delete())
    except RegnetError as e:
        raise fail(e) from e
    console.print(f"[green]✅ Network {network_id} deleted[/green]")


@app.command("auto-mine")
def auto_mine(
    network_id: int = typer.Argument(..., help="Network id"),
    seconds: int = typer.Argument(..., help="Interval: 0 (off), 30, 60, 300 or 600"),
    follow: bool = FOLLOW_OPTION,
    duration: float = DURATION_OPTION,
) -> None:
    """Set the automatic mining interval."""
    try:
        mode = AutoMineMode(seconds)
    except ValueError as e:
        console.print(f"[red]❌ Unsupported interval {seconds}; use 0, 30, 60, 300 or 600[/red]")
        raise typer.Exit(1) from e

    state = "disabled" if mode == AutoMineMode.AUTO_OFF else f"every {seconds}s"

    async def _set() -> Network:
        async with lifespan.network_service() as service:
            network = await service.set_auto_mine_mode(network_id, mode)
            console.print(f"[green]✅ Auto mining {state}[/green]")
            if follow:
                await follow_mining(service, network, duration)
            return network

    try:
        network = run_async(_set())
    except RegnetError as e:
        raise fail(e) from e
    except KeyboardInterrupt:
        console.print("[green]Stopped following auto mining[/green]")
        return

    if not follow:
        print_follow_hint(network)
