"""Main CLI entry point."""

from dataclasses import replace

import click

from ingestkit.config import Settings
from ingestkit.database.factories import create_sqlite_database
from ingestkit.logging_setup import configure_logging

# Import and register all commands at module level
from ingestkit.cli.commands import (
    account,
    analyze,
    categorize,
    group,
    import_cmd,
    job,
    merchant,
    rule,
    search,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides INGESTKIT_DB_PATH environment variable)",
    envvar="INGESTKIT_DB_PATH",
)
@click.option(
    "--log-level",
    help="Log level name (overrides INGESTKIT_LOG_LEVEL environment variable)",
    envvar="INGESTKIT_LOG_LEVEL",
)
@click.option(
    "--user",
    "user_id",
    default="default",
    show_default=True,
    help="User whose accounts, rules and transactions are used",
    envvar="INGESTKIT_USER",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None, user_id: str):
    """Ingestkit - bank statement ingestion and categorization.

    Import CSV, TSV and XLSX statements with unknown layouts, and categorize
    transactions with your own rules and a merchant catalog.
    """
    ctx.ensure_object(dict)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        raise click.UsageError(str(e))
    if db_path is not None:
        settings = replace(settings, database_path=db_path)
    if log_level is not None:
        settings = replace(settings, log_level=log_level)

    configure_logging(settings.log_level)
    ctx.obj["settings"] = settings
    ctx.obj["user_id"] = user_id

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=settings.database_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
analyze.register_commands(cli)
import_cmd.register_commands(cli)
rule.register_commands(cli)
merchant.register_commands(cli)
categorize.register_commands(cli)
search.register_commands(cli)
group.register_commands(cli)
job.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
