"""Node management commands."""

import typer
from rich.table import Table

from regnet.cli import lifespan
from regnet.cli.ui import console, fail, styled_status
from regnet.exceptions import RegnetError, ValidationError
from regnet.network.domain.enums import NodeImplementation
from regnet.network.domain.models import BitcoinNode, CommonNode, DockerOverride, LightningNode
from regnet.network.domain.topology import find_node
from regnet.utils.async_bridge import run_async

app = typer.Typer(no_args_is_help=True)


@app.command("add")
def add_node(
    network_id: int = typer.Argument(..., help="Network id"),
    implementation: NodeImplementation = typer.Argument(..., help="Node implementation"),
    version: str | None = typer.Option(None, "--version", help="Image version (default: latest known)"),
    backend: str | None = typer.Option(None, "--backend", help="Bitcoin node for a lightning node"),
    image: str = typer.Option("", "--image", help="Custom docker image"),
    command: str = typer.Option("", "--command", help="Custom container command template"),
) -> None:
    """Add a node; it starts right away when the network is running."""

    async def _add() -> CommonNode:
        async with lifespan.network_service() as service:
            return await service.add_node(
                network_id,
                implementation,
                version,
                backend_name=backend,
                docker=DockerOverride(image=image, command=command),
            )

    try:
        node = run_async(_add())
    except RegnetError as e:
        raise fail(e) from e
    console.print(f"[green]✅ Added {node.implementation} node '{node.name}'[/green]")


@app.command("remove")
def remove_node(
    network_id: int = typer.Argument(..., help="Network id"),
    name: str = typer.Argument(..., help="Node name"),
) -> None:
    """Remove a node and its container."""

    async def _remove() -> CommonNode:
        async with lifespan.network_service() as service:
            return await service.remove_node(network_id, name)

    try:
        run_async(_remove())
    except RegnetError as e:
        raise fail(e) from e
    console.print(f"[green]✅ Removed node '{name}'[/green]")


@app.command("start")
def start_node(
    network_id: int = typer.Argument(..., help="Network id"),
    name: str = typer.Argument(..., help="Node name"),
) -> None:
    """Start (or restart) one node."""

    async def _start() -> CommonNode:
        async with lifespan.network_service() as service:
            return await service.start_node(network_id, name)

    try:
        node = run_async(_start())
    except RegnetError as e:
        raise fail(e) from e
    console.print(f"Node '{node.name}' is {styled_status(node.status)}")


@app.command("stop")
def stop_node(
    network_id: int = typer.Argument(..., help="Network id"),
    name: str = typer.Argument(..., help="Node name"),
) -> None:
    """Stop one node."""

    async def _stop() -> CommonNode:
        async with lifespan.network_service() as service:
            return await service.stop_node(network_id, name)

    try:
        node = run_async(_stop())
    except RegnetError as e:
        raise fail(e) from e
    console.print(f"Node '{node.name}' is {styled_status(node.status)}")


@app.command("info")
def node_info(
    network_id: int = typer.Argument(..., help="Network id"),
    name: str = typer.Argument(..., help="Node name"),
) -> None:
    """Show live information from a running node."""

    async def _info() -> dict[str, str]:
        async with lifespan.network_service() as service:
            node = find_node(service.network_by_id(network_id), name)
            if isinstance(node, BitcoinNode):
                state = await service.sync.get_info(node)
                chain, wallet = state.chain_info, state.wallet_info
                return {
                    "Chain": chain.chain if chain else "",
                    "Blocks": str(chain.blocks) if chain else "",
                    "Best block": chain.best_block_hash if chain else "",
                    "Balance (BTC)": f"{wallet.balance:.8f}" if wallet else "",
                }
            lightning_node: LightningNode = node  # type: ignore[assignment]
            lightning = service.lightning_service(lightning_node)
            info = await lightning.get_info(lightning_node)
            balances = await lightning.get_balances(lightning_node)
            return {
                "Pubkey": info.pubkey,
                "Alias": info.alias,
                "URI": info.rpc_url,
                "Synced": "yes" if info.synced_to_chain else "no",
                "Block height": str(info.block_height),
                "Channels": f"{info.num_active_channels} active, {info.num_pending_channels} pending",
                "Balance (sat)": f"{balances.confirmed} confirmed, {balances.unconfirmed} unconfirmed",
            }

    try:
        rows = run_async(_info())
    except RegnetError as e:
        raise fail(e) from e

    table = Table(title=name, show_header=False)
    table.add_column("Field", style="cyan", width=16)
    table.add_column("Value", style="white")
    for field, value in rows.items():
        table.add_row(field, value)
    console.print(table)


@app.command("send")
def send_funds(
    network_id: int = typer.Argument(..., help="Network id"),
    name: str = typer.Argument(..., help="Bitcoin node to send from"),
    address: str = typer.Argument(..., help="Destination address"),
    amount: float = typer.Argument(..., help="Amount in BTC"),
    auto_mine: bool = typer.Option(True, "--auto-mine/--no-auto-mine", help="Confirm with 6 blocks"),
) -> None:
    """Send on-chain funds from a bitcoin node's wallet."""

    async def _send() -> str:
        async with lifespan.network_service() as service:
            node = find_node(service.network_by_id(network_id), name)
            if not isinstance(node, BitcoinNode):
                raise ValidationError(f"'{name}' is not a bitcoin node", field="node", value=name)
            return await service.sync.send_funds(node, address, amount, auto_mine)

    try:
        txid = run_async(_send())
    except RegnetError as e:
        raise fail(e) from e
    console.print(f"[green]✅ Sent {amount} BTC[/green] txid: {txid}")
