"""Rule and merchant search command."""

import click

from ingestkit.cli.services import categorization_service
from ingestkit.domain.search import DEFAULT_LIMIT

MODES = ("text", "prefix", "fuzzy", "advanced")


@click.command("search")
@click.argument("query", required=False, default="")
@click.option(
    "--mode",
    type=click.Choice(MODES),
    default="text",
    show_default=True,
    help="text: relevance with typo tolerance; prefix: autocomplete; fuzzy: single term; advanced: +must -not field:value",
)
@click.option("--fuzziness", type=click.IntRange(0, 2), default=1, show_default=True, help="Edits allowed in fuzzy mode")
@click.option("--category-id", type=int, help="List everything assigned to this category instead")
@click.option("--limit", type=int, default=DEFAULT_LIMIT, show_default=True, help="Maximum number of results")
@click.pass_context
def search_catalog(ctx, query: str, mode: str, fuzziness: int, category_id: int | None, limit: int):
    """Search your rules and the merchant catalog.

    Examples:
        ingestkit search netflix
        ingestkit search star --mode prefix
        ingestkit search "+coffee -airport" --mode advanced
        ingestkit search --category-id 7
    """
    if category_id is None and not query.strip():
        click.echo("Error: Provide a QUERY or --category-id", err=True)
        ctx.exit(1)

    service = categorization_service(ctx, with_search=True)
    service.rebuild_search_index(ctx.obj["user_id"])

    if category_id is not None:
        results = service.search_by_category(category_id, limit)
    elif mode == "prefix":
        results = service.search_merchants_with_prefix(query, limit)
    elif mode == "fuzzy":
        results = service.search_merchants_fuzzy(query, fuzziness, limit)
    elif mode == "advanced":
        results = service.search_merchants_advanced(query, limit)
    else:
        results = service.search_merchants(query, limit)

    if not results:
        click.echo("No matches.")
        return

    for hit in results:
        doc = hit.document
        category = hit.category_id if hit.category_id is not None else "-"
        click.echo(f"{hit.score:6.2f} | {doc.type:8s} | {doc.clean_name:20s} | {doc.pattern:20s} | Category: {category}")


def register_commands(cli):
    """Register search command with main CLI."""
    cli.add_command(search_catalog)
