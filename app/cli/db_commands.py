"""CLI commands for database setup."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

db_app = typer.Typer(help="Database commands")
console = Console()


@db_app.command("init")
def init():
    """Create all tables."""
    from app.db import close_db, init_db

    async def _run():
        try:
            await init_db()
        finally:
            await close_db()

    try:
        asyncio.run(_run())
    except Exception as e:
        console.print(f"[red]Database initialization failed: {e}[/red]")
        raise typer.Exit(1)

    console.print("[green]Tables created[/green]")


@db_app.command("seed")
def seed():
    """Load sample schools, programs, news and events."""
    from app.db import close_db, get_session_factory, init_db
    from app.db.seed import seed_content

    async def _run() -> dict[str, int]:
        try:
            await init_db()
            async with get_session_factory()() as session:
                created = await seed_content(session)
                await session.commit()
            return created
        finally:
            await close_db()

    try:
        created = asyncio.run(_run())
    except Exception as e:
        console.print(f"[red]Seeding failed: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Seeded Content")
    table.add_column("Section", style="cyan")
    table.add_column("Created", justify="right", style="green")
    for section, count in created.items():
        table.add_row(section, str(count))

    console.print(table)
