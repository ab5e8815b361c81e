"""CLI commands for inspecting the knowledge base."""

import asyncio

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

kb_app = typer.Typer(help="Knowledge base commands")
console = Console()


def _knowledge_base():
    from app.config import get_settings
    from app.core.knowledge import KnowledgeBase
    from app.db import get_session_factory

    settings = get_settings()
    return KnowledgeBase(
        get_session_factory(),
        news_limit=settings.knowledge_news_limit,
        events_limit=settings.knowledge_events_limit,
        overview_max_chars=settings.knowledge_overview_max_chars,
    )


def _run(coro_factory):
    """Run a coroutine against the database and dispose the engine afterwards."""
    from app.db import close_db

    async def _wrapped():
        try:
            return await coro_factory()
        finally:
            await close_db()

    return asyncio.run(_wrapped())


@kb_app.command("stats")
def stats():
    """Show knowledge section sizes and estimated prompt cost."""
    result = _run(lambda: _knowledge_base().stats())

    table = Table(title="Knowledge Base")
    table.add_column("Section", style="cyan")
    table.add_column("Records", justify="right", style="green")
    for section in ("schools", "programs", "news", "events"):
        table.add_row(section, str(result[section]))

    console.print(table)
    console.print(f"Estimated tokens: [bold]{result['estimated_tokens']}[/bold]")
    console.print(f"[dim]Generated at {result['last_updated'].isoformat()}[/dim]")


@kb_app.command("preview")
def preview(
    section: str | None = typer.Option(
        None, "--section", "-s", help="Only show one section: schools, programs, news, events"
    ),
):
    """Print the formatted knowledge sections."""
    from app.core.knowledge import SECTION_ORDER, Section

    if section is not None and section not in {s.value for s in Section}:
        console.print(f"[red]Unknown section '{section}'[/red]")
        raise typer.Exit(1)

    snapshot = _run(lambda: _knowledge_base().build_snapshot())

    sections = [Section(section)] if section else list(SECTION_ORDER)
    for s in sections:
        text = snapshot.section(s)
        if text:
            console.print(Panel(text.rstrip(), title=s.value))
        else:
            console.print(f"[yellow]{s.value}: no content[/yellow]")


@kb_app.command("prompt")
def prompt(
    message: str = typer.Argument(..., help="Sample user message"),
):
    """Show the system prompt composed for a sample message."""
    from app.config import get_settings
    from app.core.knowledge import SECTION_ORDER, PromptComposer, select_sections

    settings = get_settings()
    composer = PromptComposer(
        assistant_name=settings.assistant_name,
        institution_name=settings.institution_name,
    )

    sections = select_sections(message)
    snapshot = _run(lambda: _knowledge_base().build_snapshot())
    system_prompt = composer.compose(snapshot, sections)

    selected = ", ".join(s.value for s in SECTION_ORDER if s in sections)
    console.print(f"[bold]Sections:[/bold] {selected}")
    console.print(f"[bold]Length:[/bold] {len(system_prompt)} characters")
    console.print(Panel(system_prompt, title="System prompt"))
