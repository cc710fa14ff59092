"""
NFT Indexer CLI entrypoint
"""

import asyncio
import dataclasses
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import uri
from .cache import PersistentCache
from .clients import AiohttpClient, EtherscanClient
from .config import config
from .errors import IdentifierError
from .events import Page, ViewToken
from .indexer import CollectionIndexer, IndexerSnapshot
from .log import configure_logging
from .normalizer import Normalizer
from .notifications import Severity
from .resolvers import ContractResolver, MetadataFetcher
from .utils import format_address, parse_address

app = typer.Typer(help="NFT Indexer - resolve and index NFT collection metadata")
console = Console()

SEVERITY_STYLES = {
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.DANGER: "bold red",
    Severity.NONE: "dim",
}


def notify(message: str, severity: Severity = Severity.NONE) -> None:
    console.print(f"[{SEVERITY_STYLES[severity]}]{message}[/]")


def _build(identifier: str, api_key: Optional[str], cache_type: Optional[str]) -> CollectionIndexer:
    settings = config
    if api_key:
        settings = dataclasses.replace(settings, etherscan_api_key=api_key)
    if cache_type:
        settings = dataclasses.replace(settings, cache_type=cache_type)

    cache = PersistentCache.from_config(settings)
    contracts = ContractResolver(EtherscanClient.from_config(settings))
    metadata = MetadataFetcher(
        AiohttpClient(timeout=settings.timeout), Normalizer(settings.ipfs_gateway)
    )
    return CollectionIndexer(identifier, cache, contracts, metadata, notify=notify, config=settings)


def _print_page(snapshot: IndexerSnapshot) -> None:
    collection = snapshot.collection
    title = (collection.name or collection.key) if collection else "Collection"
    table = Table(title=f"{title} (page {snapshot.page})")
    table.add_column("Token", style="yellow", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Image", style="cyan")
    table.add_column("Attributes", style="magenta")

    for token in snapshot.tokens:
        metadata = token.metadata
        attributes = ", ".join(f"{k}: {v}" for k, v in (a.map() for a in metadata.attributes)) if metadata else ""
        table.add_row(
            str(token.id),
            (metadata.name if metadata else None) or "Unnamed",
            metadata.image if metadata else "",
            attributes[:60] + "..." if len(attributes) > 60 else attributes,
        )

    console.print(table)
    supply = collection.total_supply if collection else None
    console.print(
        f"\n[bold green]{snapshot.indexed} tokens indexed[/bold green]"
        + (f" [dim]of {supply}[/dim]" if supply is not None else "")
    )


@app.command()
def index(
    identifier: str = typer.Argument(..., help="Contract address or encoded metadata url"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page to display"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Explorer API key"),
    cache: Optional[str] = typer.Option("file", "--cache", help="Cache type (memory, redis, file)"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
):
    """Index a collection and show a page of its tokens"""
    configure_logging(log_level)

    async def run():
        indexer = _build(identifier, api_key, cache)
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task(f"Indexing {format_address(identifier)}...", total=None)
                await indexer.start()
                await indexer.settle()
                progress.update(task, completed=True)

            await indexer.dispatch(Page(page))
            _print_page(indexer.snapshot())
        finally:
            await indexer.close()
            await indexer.cache.close()

    asyncio.run(run())


@app.command()
def view(
    identifier: str = typer.Argument(..., help="Contract address or encoded metadata url"),
    token: int = typer.Argument(..., help="Token id"),
    cache: Optional[str] = typer.Option("file", "--cache", help="Cache type (memory, redis, file)"),
):
    """Mark an indexed token as viewed"""

    async def run():
        indexer = _build(identifier, None, cache)
        try:
            # Only cached collections can be viewed, no lookups are started
            collection = await indexer.cache.collections.get(parse_address(identifier) or identifier)
            if collection is None:
                console.print(f"[red]Collection {identifier} has not been indexed[/red]")
                raise typer.Exit(code=1)
            indexer.collection = collection
            await indexer.dispatch(ViewToken(token))
            for item in await indexer.cache.recently_viewed.items():
                console.print(f"{item.name} [dim]{item.route}[/dim]")
        finally:
            await indexer.cache.close()

    asyncio.run(run())


@app.command()
def encode(url: str = typer.Argument(..., help="Metadata base url")):
    """Encode a metadata url as a collection identifier"""
    typer.echo(uri.encode(url))


@app.command()
def decode(identifier: str = typer.Argument(..., help="Encoded collection identifier")):
    """Decode a collection identifier back to its url"""
    try:
        typer.echo(uri.decode(identifier))
    except IdentifierError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
