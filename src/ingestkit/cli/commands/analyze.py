"""File analysis command."""

from pathlib import Path

import click

from ingestkit.cli.error_handling import domain_errors
from ingestkit.cli.services import import_service
from ingestkit.domain.entities import DetectOptions

ROLE_LABELS = (
    ("date_col", "Date"),
    ("desc_col", "Description"),
    ("amount_col", "Amount"),
    ("debit_col", "Debit"),
    ("credit_col", "Credit"),
    ("category_col", "Category"),
)


def describe_column(headers, index: int) -> str:
    if index < 0:
        return "-"
    if index < len(headers):
        return f"{index} ({headers[index]})"
    return str(index)


@click.command("analyze")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--header-row", type=int, help="1-based line number of the header row")
@click.option("--delimiter", help="Field delimiter (auto-detected by default)")
@click.pass_context
def analyze_file(ctx, file: str, header_row: int | None, delimiter: str | None):
    """Detect the layout of a statement file.

    Shows the delimiter, header row, suggested columns, regional format and
    whether a saved mapping exists for this layout.

    Examples:
        ingestkit analyze statement.csv
        ingestkit analyze export.csv --header-row 3 --delimiter ";"
    """
    options = DetectOptions(
        header_row_index=header_row - 1 if header_row and header_row > 0 else None,
        delimiter=delimiter or None,
    )
    service = import_service(ctx)
    try:
        with domain_errors(ctx):
            result = service.analyze(ctx.obj["user_id"], Path(file).read_bytes(), options)
    finally:
        service.close()

    config = result.file_config
    click.echo(f"\nFile: {file}")
    click.echo(f"  Type: {'Excel' if result.is_excel else 'Delimited text'}")
    if not result.is_excel:
        click.echo(f"  Delimiter: {config.delimiter!r}")
    click.echo(f"  Header line: {config.skip_lines + 1}")
    click.echo(f"  Fingerprint: {config.fingerprint}")
    click.echo(f"  Headers: {', '.join(config.headers)}")

    click.echo("\nSuggested columns:")
    for attr, label in ROLE_LABELS:
        click.echo(f"  {label:12s} {describe_column(config.headers, getattr(result.suggestions, attr))}")
    if result.suggestions.is_double_entry:
        click.echo("  (separate debit and credit columns)")

    dialect = result.dialect
    click.echo("\nRegional format:")
    click.echo(f"  Decimal separator: {dialect.decimal_separator!r}")
    click.echo(f"  Date format: {dialect.date_format}")
    if dialect.currency_hint:
        click.echo(f"  Currency: {dialect.currency_hint}")
    click.echo(f"  Confidence: {dialect.confidence:.0%}")

    if result.mapping_found:
        bank = result.mapping.bank_name or "unnamed"
        click.echo(f"\nSaved mapping found ({bank}); import with --saved-mapping.")
    else:
        click.echo("\nNo saved mapping for this layout.")


def register_commands(cli):
    """Register analyze command with main CLI."""
    cli.add_command(analyze_file)
