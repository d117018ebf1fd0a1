"""Main CLI entry point for Projectdock.

Usage:
    projectdock serve --port 8000
    projectdock init-db
    projectdock issue-token alice client
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from projectdock.config import ProjectdockConfig, load_config
from projectdock.database.connection import create_schema, get_engine
from projectdock.integrations.auth import TokenActorResolver
from projectdock.lifecycle.permissions import ActorRole
from projectdock.logging import setup_logging

app = typer.Typer(
    name="projectdock",
    help="Projectdock: project and phase lifecycle engine",
    no_args_is_help=True,
)

console = Console()

# Loaded once by the callback, shared by the commands
_config: ProjectdockConfig | None = None


def get_config() -> ProjectdockConfig:
    """Return the configuration loaded by the CLI callback.

    Raises:
        RuntimeError: If the callback has not run.
    """
    if _config is None:
        raise RuntimeError("Configuration not loaded. Run through the CLI callback first.")
    return _config


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host to bind to (default from config)"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to bind to (default from config)"),
    ] = None,
) -> None:
    """Start the Projectdock web server."""
    import uvicorn

    from projectdock.web.app import create_app

    config = get_config()
    bind_host = host or config.web.host
    bind_port = port or config.web.port

    console.print("[bold cyan]Starting Projectdock Web Server[/bold cyan]")
    console.print(f"[dim]Host:[/dim] {bind_host}")
    console.print(f"[dim]Port:[/dim] {bind_port}")
    console.print()

    uvicorn.run(
        create_app(config),
        host=bind_host,
        port=bind_port,
        log_level=config.logging.level.lower(),
    )


@app.command("init-db")
def init_db() -> None:
    """Create any missing tables (development databases).

    Production databases are managed with ``alembic upgrade head``.
    """
    config = get_config()

    async def _create() -> None:
        engine = get_engine(config.database)
        try:
            await create_schema(engine)
        finally:
            await engine.dispose()

    try:
        asyncio.run(_create())
    except Exception as e:
        console.print(f"[red]Error creating schema:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print("[green]Database schema is up to date[/green]")


@app.command("issue-token")
def issue_token(
    user_id: Annotated[str, typer.Argument(help="User identifier")],
    role: Annotated[
        str,
        typer.Argument(help="Role: user, client, programmer or admin"),
    ],
    inactive: Annotated[
        bool,
        typer.Option("--inactive", help="Issue a token for a deactivated account"),
    ] = False,
) -> None:
    """Issue a signed bearer token (development and testing)."""
    valid_roles = [r.value for r in ActorRole]
    if role not in valid_roles:
        console.print(f"[red]Invalid role:[/red] {role}. Valid roles: {', '.join(valid_roles)}")
        raise typer.Exit(code=1)

    resolver = TokenActorResolver(get_config().auth.token_secret)
    try:
        token = resolver.issue_token(user_id, role, is_active=not inactive)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    table = Table(show_header=False)
    table.add_row("User", user_id)
    table.add_row("Role", role)
    table.add_row("Active", "no" if inactive else "yes")
    console.print(table)
    # Plain print so the token can be piped
    print(token)


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Load configuration and set up logging.

    Args:
        config_path: Optional path to TOML configuration file
        verbose: Enable debug-level logging
    """
    global _config

    try:
        config = load_config(config_path)
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1) from e

    if verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)
    _config = config

    if verbose:
        console.print("[dim]Debug logging enabled[/dim]")


if __name__ == "__main__":
    app()
