"""Block mining command."""

import typer

from regnet.cli import lifespan
from regnet.cli.ui import console, fail
from regnet.exceptions import RegnetError, ValidationError
from regnet.network.domain.models import BitcoinNode
from regnet.network.domain.topology import find_node
from regnet.utils.async_bridge import run_async


def mine(
    network_id: int = typer.Argument(..., help="Network id"),
    blocks: int = typer.Argument(1, help="Number of blocks"),
    node_name: str | None = typer.Option(None, "--node", "-n", help="Bitcoin node (default: the first)"),
) -> None:
    """Mine blocks on a bitcoin node of a running network."""

    async def _mine() -> tuple[str, list[str]]:
        async with lifespan.network_service() as service:
            network = service.network_by_id(network_id)
            if node_name is None:
                if not network.nodes.bitcoin:
                    raise ValidationError(f"Network '{network.name}' has no bitcoin node")
                node = network.nodes.bitcoin[0]
            else:
                found = find_node(network, node_name)
                if not isinstance(found, BitcoinNode):
                    raise ValidationError(f"'{node_name}' is not a bitcoin node", field="node", value=node_name)
                node = found
            return node.name, await service.sync.mine(blocks, node)

    try:
        name, hashes = run_async(_mine())
    except RegnetError as e:
        raise fail(e) from e

    console.print(f"[green]⛏  Mined {len(hashes)} block(s) on {name}[/green]")
    if hashes:
        console.print(f"[dim]Tip: {hashes[-1]}[/dim]")
