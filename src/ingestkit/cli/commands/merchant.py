"""Merchant catalog commands."""

import click

from ingestkit.cli.services import categorization_service


@click.group()
def merchant_group():
    """Manage the merchant catalog."""
    pass


@merchant_group.command("add")
@click.argument("pattern")
@click.argument("name")
@click.option("--category-id", type=int, help="Category assigned to matching transactions")
@click.option("--system", "system_wide", is_flag=True, help="Add for every user instead of only you")
@click.pass_context
def add_merchant(ctx, pattern: str, name: str, category_id: int | None, system_wide: bool):
    """Add a merchant whose descriptions contain PATTERN.

    Examples:
        ingestkit merchant add "PINGO DOCE" "Pingo Doce"
        ingestkit merchant add "SPOTIFY" "Spotify" --system
    """
    service = categorization_service(ctx)
    user_id = None if system_wide else ctx.obj["user_id"]

    try:
        merchant_id = service.create_merchant(pattern, name, user_id=user_id, category_id=category_id)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    scope = "system" if system_wide else "user"
    click.echo(f"Created {scope} merchant '{name.strip()}' (ID: {merchant_id})")


@merchant_group.command("list")
@click.pass_context
def list_merchants(ctx):
    """List merchants visible to you (yours and system-wide)."""
    merchants = categorization_service(ctx).get_merchants(ctx.obj["user_id"])
    if not merchants:
        click.echo("No merchants found. Run 'ingestkit merchant seed' to add the built-in catalog.")
        return

    click.echo("\nMerchants:")
    click.echo("-" * 60)
    for m in merchants:
        scope = "system" if m.is_system else "user"
        click.echo(f"ID: {m.id:3d} | {m.raw_pattern:20s} | {m.clean_name:20s} | {scope}")


@merchant_group.command("seed")
@click.pass_context
def seed_merchants(ctx):
    """Add the built-in system merchant catalog."""
    created = categorization_service(ctx).seed_system_merchants()
    if created:
        click.echo(f"Added {created} system merchant(s)")
    else:
        click.echo("System merchant catalog already present")


def register_commands(cli):
    """Register merchant commands with main CLI."""
    cli.add_command(merchant_group, name="merchant")
