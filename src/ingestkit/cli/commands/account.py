"""Account management commands."""

import click
from ingestkit.domain.account import AccountService


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option("--currency", required=True, help="ISO 4217 currency code, e.g. EUR")
@click.pass_context
def create_account(ctx, name: str, currency: str):
    """Create a new account.

    Transactions imported into the account are stored in its currency.

    Examples:
        ingestkit account create "Checking" --currency EUR
        ingestkit account create "Travel Card" --currency usd
    """
    service = AccountService(ctx.obj["db"])

    try:
        account_id = service.create_account(ctx.obj["user_id"], name=name, currency=currency)
        click.echo(f"Created account '{name.strip()}' (ID: {account_id}, currency: {currency.strip().upper()})")
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


@account_group.command("list")
@click.pass_context
def list_accounts(ctx):
    """List your accounts."""
    service = AccountService(ctx.obj["db"])

    accounts = service.list_accounts(ctx.obj["user_id"])
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 60)
    for acc in accounts:
        click.echo(f"ID: {acc.id:3d} | {acc.name:20s} | Currency: {acc.currency}")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
