"""Container runtime commands."""

import typer

from regnet.cli import lifespan
from regnet.cli.ui import console, fail
from regnet.exceptions import RegnetError
from regnet.network.application.services import ImageService
from regnet.network.domain.models import DockerVersions
from regnet.utils.async_bridge import run_async

app = typer.Typer(no_args_is_help=True)


@app.command("versions")
def versions(
    strict: bool = typer.Option(False, "--strict", help="Fail when docker or compose is unavailable"),
) -> None:
    """Show the docker engine and compose versions."""

    async def _versions() -> DockerVersions:
        return await lifespan.build_docker_service().get_versions(throw_on_error=strict)

    try:
        result = run_async(_versions())
    except Exception as e:
        console.print(f"[red]❌ Docker is not available: {e}[/red]")
        raise typer.Exit(1) from e

    console.print(f"Docker:  {result.docker or '[red]not found[/red]'}")
    console.print(f"Compose: {result.compose or '[red]not found[/red]'}")


@app.command("images")
def images() -> None:
    """List the images already pulled."""
    tags = run_async(lifespan.build_docker_service().get_images())
    if not tags:
        console.print("[yellow]No images found[/yellow]")
        return
    for tag in tags:
        console.print(f"  {tag}")


@app.command("pull")
def pull(network_id: int = typer.Argument(..., help="Network id")) -> None:
    """Pull the images a network needs that are not present locally."""

    async def _pull() -> list[str]:
        async with lifespan.network_service() as service:
            return await ImageService(service.docker).pull_missing(service.network_by_id(network_id))

    try:
        pulled = run_async(_pull())
    except RegnetError as e:
        raise fail(e) from e

    if not pulled:
        console.print("[green]✅ All images are present[/green]")
        return
    for image in pulled:
        console.print(f"[green]✅ Pulled {image}[/green]")
