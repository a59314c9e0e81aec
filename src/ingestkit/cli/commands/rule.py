"""Categorization rule commands."""

import click

from ingestkit.cli.services import categorization_service


@click.group()
def rule_group():
    """Manage categorization rules."""
    pass


@rule_group.command("add")
@click.argument("pattern")
@click.option("--name", "clean_name", help="Merchant name assigned to matching transactions")
@click.option("--category-id", type=int, help="Category assigned to matching transactions")
@click.option("--recurring", is_flag=True, help="Mark matching transactions as recurring")
@click.option("--priority", type=int, default=0, show_default=True, help="Priority among your rules")
@click.option("--apply", "apply_to_existing", is_flag=True, help="Also update already imported transactions")
@click.pass_context
def add_rule(
    ctx,
    pattern: str,
    clean_name: str | None,
    category_id: int | None,
    recurring: bool,
    priority: int,
    apply_to_existing: bool,
):
    """Add a rule matching descriptions that contain PATTERN.

    Patterns match case-insensitively anywhere in the description. Your
    rules always win over merchant catalog entries.

    Examples:
        ingestkit rule add "NETFLIX" --name Netflix --category-id 7 --recurring
        ingestkit rule add "continente" --name Continente --apply
    """
    service = categorization_service(ctx)
    user_id = ctx.obj["user_id"]

    try:
        existing = service.db.find_rule_by_pattern(user_id, pattern)
        rule, updated = service.create_rule(
            user_id,
            pattern,
            clean_name=clean_name,
            category_id=category_id,
            is_recurring=recurring,
            priority=priority,
            apply_to_existing=apply_to_existing,
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    if existing is not None:
        click.echo(f"Rule for '{pattern}' already exists (ID: {rule.id})")
        return
    click.echo(f"Created rule '{rule.match_pattern}' (ID: {rule.id})")
    if apply_to_existing:
        click.echo(f"Updated {updated} existing transaction(s)")


@rule_group.command("list")
@click.pass_context
def list_rules(ctx):
    """List your rules in priority order."""
    rules = categorization_service(ctx).get_user_rules(ctx.obj["user_id"])
    if not rules:
        click.echo("No rules found.")
        return

    click.echo("\nRules:")
    click.echo("-" * 70)
    for r in rules:
        category = r.category_id if r.category_id is not None else "-"
        flags = " (recurring)" if r.is_recurring else ""
        click.echo(
            f"ID: {r.id:3d} | {r.match_pattern:20s} | {r.clean_name or '-':20s} | "
            f"Category: {category} | Priority: {r.priority}{flags}"
        )


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
