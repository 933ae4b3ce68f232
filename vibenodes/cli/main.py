"""Extension host command line"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config.loader import load_config
from ..extensions.catalog import CatalogService
from ..extensions.types import ExtensionStatus

console = Console()
app = typer.Typer(help="vibenodes extension host")

STATUS_STYLES = {
    ExtensionStatus.INSTALLED: "cyan",
    ExtensionStatus.ENABLED: "green",
    ExtensionStatus.DISABLED: "yellow",
    ExtensionStatus.ERROR: "red",
}


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _local_catalog(config_path: Optional[Path], extensions_dir: Optional[Path]) -> CatalogService:
    config = load_config(config_path)
    return CatalogService(
        root=extensions_dir or config.resolved_extensions_dir,
        server_url=config.resolved_server_url,
        max_file_size=config.max_file_size,
        watch=False,
    )


@app.command("serve")
def serve(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file (JSON5)"),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Run the extension catalog HTTP server"""
    import uvicorn

    from ..api.server import create_app

    setup_logging(verbose)
    config = load_config(config_path)
    if host:
        config.host = host
    if port:
        config.port = port

    console.print(f"[cyan]Extensions directory:[/cyan] {config.resolved_extensions_dir}")
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)


@app.command("list")
def list_extensions(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file (JSON5)"),
    extensions_dir: Optional[Path] = typer.Option(None, "--dir", help="Install root"),
    json_output: bool = typer.Option(False, "--json", help="Output JSON"),
):
    """List installed extensions"""
    catalog = _local_catalog(config_path, extensions_dir)
    asyncio.run(catalog.rescan())
    entries = catalog.list()

    if json_output:
        import json
        console.print(json.dumps([e.to_payload() for e in entries], indent=2), markup=False, highlight=False)
        return

    if not entries:
        console.print(f"[yellow]No extensions installed in {catalog.get_path()}[/yellow]")
        return

    table = Table(title=f"Extensions - {catalog.get_path()}")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Version", style="blue")
    table.add_column("Author", style="green")
    table.add_column("Status")

    for entry in entries:
        style = STATUS_STYLES.get(entry.status, "white")
        status = entry.status.value
        if entry.error_message:
            status = f"{status}: {entry.error_message}"
        table.add_row(entry.id, entry.name, entry.version, entry.author, f"[{style}]{status}[/{style}]")

    console.print(table)


@app.command("install")
def install_extension(
    archive: Path = typer.Argument(..., exists=True, dir_okay=False, help="Extension ZIP archive"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file (JSON5)"),
    extensions_dir: Optional[Path] = typer.Option(None, "--dir", help="Install root"),
):
    """Install an extension archive into the install root"""
    catalog = _local_catalog(config_path, extensions_dir)

    async def _install():
        await asyncio.to_thread(catalog.get_path().mkdir, parents=True, exist_ok=True)
        return await catalog.install(archive.read_bytes(), archive.name)

    result = asyncio.run(_install())
    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Installed [cyan]{result.extension_id}[/cyan]")


@app.command("remove")
def remove_extension(
    extension_id: str = typer.Argument(..., help="Extension id"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file (JSON5)"),
    extensions_dir: Optional[Path] = typer.Option(None, "--dir", help="Install root"),
):
    """Delete an installed extension"""
    catalog = _local_catalog(config_path, extensions_dir)
    result = asyncio.run(catalog.delete(extension_id))
    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Removed [cyan]{extension_id}[/cyan]")


def _set_remote_status(extension_id: str, status: ExtensionStatus, server: str) -> None:
    from ..client.catalog_client import CatalogClient

    async def _run():
        async with CatalogClient(server) as client:
            return await client.set_status(extension_id, status)

    result = asyncio.run(_run())
    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Extension [cyan]{extension_id}[/cyan] {status.value}")


@app.command("enable")
def enable_extension(
    extension_id: str = typer.Argument(..., help="Extension id"),
    server: str = typer.Option("http://localhost:8888", "--server", help="Running host URL"),
):
    """Enable an extension on a running host"""
    _set_remote_status(extension_id, ExtensionStatus.ENABLED, server)


@app.command("disable")
def disable_extension(
    extension_id: str = typer.Argument(..., help="Extension id"),
    server: str = typer.Option("http://localhost:8888", "--server", help="Running host URL"),
):
    """Disable an extension on a running host"""
    _set_remote_status(extension_id, ExtensionStatus.DISABLED, server)


@app.command("path")
def show_path(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file (JSON5)"),
):
    """Show the extensions install root"""
    config = load_config(config_path)
    path = config.resolved_extensions_dir
    exists = "[green]exists[/green]" if path.exists() else "[yellow]missing[/yellow]"
    console.print(f"{path} ({exists})")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
