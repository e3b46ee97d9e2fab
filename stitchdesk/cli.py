"""StitchDesk CLI.

Commands:
- init: Initialize database schema
- seed-symbols: Insert missing symbol categories and values
- check-symbols: Verify the symbol table against the closed enums
- create-user: Register a portal user
- stats: Show user totals and order and quote counts per status
- web serve: Run the HTTP API
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from stitchdesk.config import get_config
from stitchdesk.db.connection import close_db, get_session, init_db
from stitchdesk.db.seed import seed_symbols
from stitchdesk.db.users import create_user
from stitchdesk.errors import UnknownSymbol
from stitchdesk.models import Actor, Role
from stitchdesk.stats import PortalStats, collect_stats
from stitchdesk.symbols import EXPECTED_SYMBOLS, load_resolver

app = typer.Typer(
    name="stitchdesk",
    help="StitchDesk - order and quote portal for digitizing work",
    no_args_is_help=True,
)

web_cli = typer.Typer(help="Web API")
app.add_typer(web_cli, name="web")

console = Console()

# Local operator commands run with admin visibility
OPERATOR = Actor(user_id=0, role=Role.ADMIN)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
    seed: bool = typer.Option(True, "--seed/--no-seed", help="Seed symbol tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        if drop:
            console.print("[yellow]Dropping existing tables...[/yellow]")
        console.print("[green]Creating tables...[/green]")
        try:
            await init_db(drop=drop)
            if seed:
                async with get_session() as session:
                    inserted = await seed_symbols(session)
                console.print(f"[green]Seeded {inserted} symbol values[/green]")
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="seed-symbols")
def seed_symbols_cmd():
    """Insert missing symbol categories and values (idempotent)."""

    async def _seed() -> int:
        try:
            async with get_session() as session:
                return await seed_symbols(session)
        finally:
            await close_db()

    inserted = asyncio.run(_seed())
    console.print(f"[bold green]✓[/bold green] Inserted {inserted} symbol values")


@app.command(name="check-symbols")
def check_symbols_cmd():
    """Verify every enum value resolves through its category chain."""

    async def _check():
        try:
            async with get_session() as session:
                return await load_resolver(session)
        finally:
            await close_db()

    resolver = asyncio.run(_check())

    table = Table(title="Symbol categories")
    table.add_column("Category", style="cyan")
    table.add_column("Values", style="green")
    for category in resolver.categories():
        table.add_row(category, ", ".join(e.symbol for e in resolver.values(category)))
    console.print(table)

    try:
        resolver.verify(EXPECTED_SYMBOLS)
    except UnknownSymbol as exc:
        console.print(f"[bold red]✗[/bold red] {exc.message}")
        console.print("Run [bold]stitchdesk seed-symbols[/bold] to add the missing values.")
        raise typer.Exit(code=1) from exc

    console.print("[bold green]✓[/bold green] Symbol table is complete")


@app.command(name="create-user")
def create_user_cmd(
    email: str = typer.Argument(..., help="Login email"),
    name: str = typer.Option(..., "--name", help="Display name"),
    role: Role = typer.Option(Role.CUSTOMER, "--role", case_sensitive=False, help="User role"),
    company: str | None = typer.Option(None, "--company", help="Company name"),
):
    """Register a portal user. Credentials are managed by the gateway."""

    async def _create() -> int:
        try:
            async with get_session() as session:
                user = await create_user(session, email, name, role=role, company=company)
                return user.id
        finally:
            await close_db()

    try:
        user_id = asyncio.run(_create())
    except ValueError as exc:
        console.print(f"[bold red]✗[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(f"[bold green]✓[/bold green] Created {role.value} user {email} (id={user_id})")


@app.command()
def stats():
    """Show user totals and order and quote counts per status."""

    async def _stats() -> PortalStats:
        try:
            async with get_session() as session:
                resolver = await load_resolver(session)
                return await collect_stats(session, resolver, OPERATOR)
        finally:
            await close_db()

    result = asyncio.run(_stats())

    table = Table(title="Statistics")
    table.add_column("Kind", style="cyan")
    table.add_column("Status", style="cyan")
    table.add_column("Count", justify="right", style="green")

    table.add_row("User", "total", str(result.users_total))
    table.add_row("User", "active", str(result.users_active))
    table.add_row("Order", "total", str(result.orders_total))
    for order_status, count in result.orders_by_status.items():
        table.add_row("Order", order_status.value, str(count))
    table.add_row("Quote", "total", str(result.quotes_total))
    for quote_status, count in result.quotes_by_status.items():
        table.add_row("Quote", quote_status.value, str(count))

    console.print(table)


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8001, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the FastAPI portal API."""
    import uvicorn

    typer.echo(f"Starting StitchDesk API on http://{host}:{port}")
    uvicorn.run("stitchdesk.web.app:app", host=host, port=port, reload=reload, workers=1)


if __name__ == "__main__":
    app()
