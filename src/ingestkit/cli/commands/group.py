"""Similar description grouping command."""

import click

from ingestkit.cli.services import categorization_service


@click.command("group")
@click.argument("descriptions", nargs=-1, required=True)
@click.option("--threshold", type=click.IntRange(0, 100), help="Minimum similarity (0-100)")
@click.pass_context
def group_descriptions(ctx, descriptions: tuple[str, ...], threshold: int | None):
    """Group descriptions that likely belong to the same merchant.

    Example:
        ingestkit group "STARBUCKS 123" "STARBUCKS 456" "NETFLIX"
    """
    groups = categorization_service(ctx).group_similar_merchants(descriptions, threshold)
    for leader, members in groups.items():
        click.echo(f"{leader}:")
        for member in members:
            click.echo(f"  {member}")


def register_commands(cli):
    """Register group command with main CLI."""
    cli.add_command(group_descriptions)
