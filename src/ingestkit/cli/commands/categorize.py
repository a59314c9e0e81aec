"""Description categorization commands."""

import click

from ingestkit.cli.services import categorization_service
from ingestkit.domain.errors import CategorizationError


@click.command("categorize")
@click.argument("descriptions", nargs=-1, required=True)
@click.option("--fuzzy/--exact", default=True, show_default=True, help="Fall back to approximate matching")
@click.option("--threshold", type=click.IntRange(0, 100), help="Minimum fuzzy score (0-100)")
@click.pass_context
def categorize_descriptions(ctx, descriptions: tuple[str, ...], fuzzy: bool, threshold: int | None):
    """Show how transaction descriptions would be categorized.

    Examples:
        ingestkit categorize "COMPRA NETFLIX.COM 1234"
        ingestkit categorize "NETFLX" "SPOTIFY AB" --threshold 70
    """
    service = categorization_service(ctx)
    user_id = ctx.obj["user_id"]

    for description in descriptions:
        if fuzzy:
            result = service.categorize_with_fallback(user_id, description, threshold)
        else:
            result = service.categorize(user_id, description)

        if result.rule_id is not None:
            source = f"rule {result.rule_id}"
        elif result.merchant_id is not None:
            source = f"merchant {result.merchant_id}"
        else:
            source = "no match"
        category = result.category_id if result.category_id is not None else "-"
        recurring = " (recurring)" if result.is_recurring else ""
        click.echo(f"{description} -> {result.clean_merchant_name} | Category: {category} | {source}{recurring}")


@click.command("suggest")
@click.argument("description")
@click.option("--limit", type=int, default=5, show_default=True, help="Maximum number of suggestions")
@click.pass_context
def suggest_matches(ctx, description: str, limit: int):
    """List the closest rules and merchants for DESCRIPTION."""
    service = categorization_service(ctx)

    try:
        matches = service.suggest_merchant_matches(ctx.obj["user_id"], description, limit)
    except CategorizationError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    if not matches:
        click.echo("No suggestions.")
        return
    for m in matches:
        kind = "rule" if m.is_rule else "merchant"
        click.echo(f"{m.score:3d} | {m.clean_name:20s} | {m.pattern:20s} | {kind}")


def register_commands(cli):
    """Register categorization commands with main CLI."""
    cli.add_command(categorize_descriptions)
    cli.add_command(suggest_matches)
