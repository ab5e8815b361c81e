"""Campus Assistant CLI application."""

import typer

from app.cli.db_commands import db_app
from app.cli.knowledge_commands import kb_app

app = typer.Typer(
    name="campus-assistant",
    help="Campus Assistant - university chatbot operator CLI",
    no_args_is_help=True,
)

# Register sub-commands
app.add_typer(db_app, name="db", help="Database setup")
app.add_typer(kb_app, name="kb", help="Knowledge base inspection")


@app.command()
def version():
    """Show version information."""
    from app.config import get_settings

    settings = get_settings()
    typer.echo(f"{settings.app_name} v{settings.app_version}")


@app.command()
def info():
    """Show application information."""
    from app.config import get_settings

    settings = get_settings()

    typer.echo(f"Application: {settings.app_name} v{settings.app_version}")
    typer.echo(f"Environment: {settings.env}")
    typer.echo(f"Institution: {settings.institution_name}")
    typer.echo(f"LLM Model: {settings.openai_model}")
    typer.echo(f"AI configured: {'yes' if settings.ai_configured else 'no'}")
    typer.echo(f"Moderation: {'on' if settings.moderation_enabled else 'off'}")


if __name__ == "__main__":
    app()
