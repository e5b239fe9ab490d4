"""Store server commands for padsync CLI.

Commands:
- server run: Run the reference store server
- server cleanup-changes: Prune old change log entries
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click


@click.group()
def server() -> None:
    """Store server commands.

    These commands run and maintain the padsync store server.
    """


@server.command("run")
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", default=8000, show_default=True, type=int, help="Port to bind.")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: PADSYNC_DB_PATH or ./padsync.db).",
)
@click.option(
    "--token",
    default=None,
    help="Bearer token required from devices (default: PADSYNC_TOKEN).",
)
def run_server(host: str, port: int, db_path: str | None, token: str | None) -> None:
    """Run the store server with uvicorn."""
    import uvicorn

    # The app factory reads its settings from the environment
    if db_path:
        os.environ["PADSYNC_DB_PATH"] = db_path
    if token:
        os.environ["PADSYNC_TOKEN"] = token

    click.echo(f"Starting padsync server on http://{host}:{port}")
    uvicorn.run(
        "padsync.server.app:app_factory",
        factory=True,
        host=host,
        port=port,
    )


@server.command("cleanup-changes")
@click.option(
    "--older-than-days",
    "-d",
    type=int,
    default=None,
    help="Delete entries older than N days (default: server retention).",
)
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: PADSYNC_DB_PATH or ./padsync.db).",
)
def cleanup_changes_cmd(older_than_days: int | None, db_path: str | None) -> None:
    """Prune old change log entries.

    Devices whose feed cursor predates the pruned range refetch every
    record on their next pass.

    Examples:

        # Prune using server defaults (30 days)
        padsync server cleanup-changes

        # Prune entries older than 7 days
        padsync server cleanup-changes --older-than-days 7
    """
    from padsync.server.database import Database
    from padsync.server.scheduler import ChangeLogScheduler

    resolved_db_path = db_path or os.environ.get("PADSYNC_DB_PATH", "padsync.db")
    default_days = int(os.environ.get("PADSYNC_CHANGE_RETENTION_DAYS", "30"))
    days = older_than_days if older_than_days is not None else default_days

    db_file = Path(resolved_db_path)
    if not db_file.exists():
        click.echo(f"Error: Database not found: {db_file}", err=True)
        click.echo("Make sure the server has been run at least once.", err=True)
        sys.exit(1)

    click.echo(f"Database: {db_file}")
    click.echo(f"Pruning change log entries older than {days} days...")

    db = Database(db_file)
    try:
        deleted = ChangeLogScheduler(db, retention_days=days).run_now()
        if deleted > 0:
            click.echo(f"Pruned {deleted} change log entries.")
        else:
            click.echo("Nothing to prune.")
    finally:
        db.close()
