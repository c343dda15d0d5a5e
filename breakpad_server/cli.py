"""CLI entry point for breakpad server management commands."""

import sys

import click

from breakpad_server import create_app
from breakpad_server.database import (
    check_db_connection,
    get_current_revision,
    get_pending_migrations,
    upgrade_database,
)
from breakpad_server.exceptions import StorageException
from breakpad_server.startup import reconcile_storage


@click.group()
def cli() -> None:
    """Breakpad server CLI - Database and storage management commands."""
    pass


@cli.command()
@click.option("--recreate", is_flag=True, help="Drop all tables before upgrading")
@click.option(
    "--yes-i-am-sure",
    is_flag=True,
    help="Required safety flag when using --recreate",
)
def upgrade_db(recreate: bool, yes_i_am_sure: bool) -> None:
    """Upgrade database to latest migration.

    Applies all pending Alembic migrations to bring the database schema up to date.
    Use --recreate to drop all tables first (useful for development).

    Examples:
        breakpad-server-cli upgrade-db                              Apply pending migrations
        breakpad-server-cli upgrade-db --recreate --yes-i-am-sure   Drop all tables and recreate
    """
    if recreate and not yes_i_am_sure:
        click.echo(
            "Error: --recreate requires --yes-i-am-sure flag for safety", err=True
        )
        click.echo(
            "   This will DROP ALL TABLES and recreate from migrations!", err=True
        )
        sys.exit(1)

    app = create_app()

    with app.app_context():
        if not check_db_connection():
            click.echo("Error: Cannot connect to database", err=True)
            sys.exit(1)

        # Let operator know which database is targeted
        click.echo(f"Using database: {app.config['SQLALCHEMY_DATABASE_URI']}")

        if recreate:
            click.echo("WARNING: About to drop all tables and recreate from migrations!")
            click.echo("   This will permanently delete all data in the database.")

        pending = get_pending_migrations()
        if not pending and not recreate:
            click.echo("Database is already up to date")
            return

        if pending:
            click.echo(f"Found {len(pending)} pending migration(s)")

        try:
            if recreate:
                click.echo("Recreating database from scratch...")

            applied = upgrade_database(recreate=recreate)
            if applied:
                click.echo(f"Applied {len(applied)} migration(s):")
                for rev, desc in applied:
                    click.echo(f"  - {rev}: {desc}")
            click.echo("Database upgrade complete")
        except Exception as e:
            click.echo(f"Error during database upgrade: {e}", err=True)
            sys.exit(1)


@cli.command()
def db_status() -> None:
    """Show database migration status.

    Displays current database revision and any pending migrations.
    """
    app = create_app()

    with app.app_context():
        if not check_db_connection():
            click.echo("Error: Cannot connect to database", err=True)
            sys.exit(1)

        current = get_current_revision()
        pending = get_pending_migrations()

        if current:
            click.echo(f"Current revision: {current}")
        else:
            click.echo("No migrations applied yet")

        if pending:
            click.echo(f"Pending migrations: {len(pending)}")
            for rev in pending:
                click.echo(f"  - {rev}")
        else:
            click.echo("No pending migrations")


@cli.command("reconcile-storage")
def reconcile_storage_cmd() -> None:
    """Move symbol file contents to match FILES_IN_DATABASE.

    Prunes symbol text from the database when files live on disk, or
    restores it from disk when files live in the database. The server
    does this on every start; this command runs it on demand.
    """
    app = create_app()

    with app.app_context():
        if get_pending_migrations():
            click.echo("Error: Database has pending migrations, run upgrade-db first", err=True)
            sys.exit(1)

    try:
        summary = reconcile_storage(app)
    except StorageException as e:
        click.echo(f"Error during storage reconciliation: {e}", err=True)
        sys.exit(1)

    click.echo("Storage reconciliation complete")
    click.echo(f"  Pruned from database: {summary.pruned}")
    click.echo(f"  Restored to database: {summary.restored}")
    click.echo(f"  Rewritten to disk: {summary.rewritten}")
    click.echo(f"  Missing on disk: {summary.missing}")
    if summary.compacted:
        click.echo("  Database compacted")


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
