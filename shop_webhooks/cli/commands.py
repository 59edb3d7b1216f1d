"""CLI commands for shop webhooks."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from shop_webhooks import __version__
from shop_webhooks.webhooks.service import webhook_service_context
from shop_webhooks.webhooks.signature import SignatureCodec

app = typer.Typer(name="shop-webhooks", help="Shop webhook delivery CLI")
console = Console()


def _read_payload(payload: Optional[str], file: Optional[Path]) -> bytes:
    if file is not None:
        return file.read_bytes()
    if payload is None:
        console.print("[red]Provide a payload argument or --file[/red]")
        raise typer.Exit(code=2)
    return payload.encode("utf-8")


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"[bold green]Shop Webhooks v{__version__}[/bold green]")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
) -> None:
    """Start API server."""
    import uvicorn

    console.print(f"[yellow]Starting server on {host}:{port}[/yellow]")
    uvicorn.run("shop_webhooks.api.app:app", host=host, port=port, reload=reload)


@app.command()
def sign(
    payload: Optional[str] = typer.Argument(None, help="Request body"),
    secret: str = typer.Option(..., "--secret", "-s", help="Endpoint secret"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", exists=True, dir_okay=False, help="Read body from file"),
) -> None:
    """Print the signature header value for a payload."""
    body = _read_payload(payload, file)
    typer.echo(SignatureCodec.sign(body, secret))


@app.command()
def verify(
    signature: str = typer.Argument(..., help="Value of X-Webhook-Signature"),
    payload: Optional[str] = typer.Argument(None, help="Request body"),
    secret: str = typer.Option(..., "--secret", "-s", help="Endpoint secret"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", exists=True, dir_okay=False, help="Read body from file"),
) -> None:
    """Check a received signature. Exits with code 1 when it does not match."""
    body = _read_payload(payload, file)
    if SignatureCodec.verify(body, signature, secret):
        console.print("[green]✓ Signature valid[/green]")
        return
    console.print("[red]✗ Signature mismatch[/red]")
    raise typer.Exit(code=1)


@app.command("retry-due")
def retry_due(
    limit: Optional[int] = typer.Option(None, min=1, help="Maximum deliveries to retry"),
) -> None:
    """Retry failed deliveries whose backoff has elapsed."""

    async def run() -> int:
        async with webhook_service_context() as service:
            return await service.retry_due_deliveries(limit)

    retried = asyncio.run(run())
    console.print(f"[green]✓ Retried {retried} deliveries[/green]")


@app.command()
def stats() -> None:
    """Show delivery statistics."""

    async def run():
        async with webhook_service_context() as service:
            return await service.get_webhook_stats()

    result = asyncio.run(run())

    table = Table(title="Webhook statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in result.model_dump(exclude={"by_status"}).items():
        table.add_row(name.replace("_", " "), str(value))
    for endpoint_status, count in sorted(result.by_status.items()):
        table.add_row(f"endpoints {endpoint_status}", str(count))
    console.print(table)


@app.command()
def cleanup(
    retention_days: Optional[int] = typer.Option(None, min=1, help="Days of history to keep"),
) -> None:
    """Delete old events, deliveries and logs."""

    async def run():
        async with webhook_service_context() as service:
            return await service.cleanup_old_data(retention_days)

    result = asyncio.run(run())
    console.print(
        f"[green]✓ Deleted {result.deleted_events} events, "
        f"{result.deleted_deliveries} deliveries, {result.deleted_logs} logs[/green]"
    )


if __name__ == "__main__":
    app()
