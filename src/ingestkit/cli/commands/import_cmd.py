"""Statement import command."""

from pathlib import Path

import click

from ingestkit.cli.account_resolution import resolve_account_or_exit
from ingestkit.cli.error_handling import domain_errors
from ingestkit.cli.services import import_service
from ingestkit.domain.entities import ColumnMapping, ImportOptions
from ingestkit.domain.import_service import detect_options_for, resolve_mapping

MAX_ERRORS_SHOWN = 20

NUMBER_FORMATS = {"auto": None, "european": True, "us": False}


def column_option(name: str, role: str):
    return click.option(name, type=int, default=-1, show_default=False, help=f"0-based index of the {role} column")


@click.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--account", help="Account name or ID; its currency is used for all rows")
@column_option("--date-col", "date")
@column_option("--desc-col", "description")
@column_option("--amount-col", "amount")
@column_option("--debit-col", "debit")
@column_option("--credit-col", "credit")
@column_option("--category-col", "category")
@click.option("--date-format", default="", help="Date format such as DD/MM/YYYY (auto-detected by default)")
@click.option(
    "--number-format",
    type=click.Choice(list(NUMBER_FORMATS)),
    default="auto",
    show_default=True,
    help="european: 1.234,56; us: 1,234.56; auto: detect from the file",
)
@click.option("--header-row", type=int, default=0, help="1-based line number of the header row")
@click.option("--timezone", default="", help="IANA timezone for naive dates, e.g. Europe/Lisbon")
@click.option("--institution", default="", help="Institution name recorded on the import")
@click.option("--save-mapping", is_flag=True, help="Remember this column mapping for files with the same headers")
@click.option("--bank-name", help="Label stored with a saved mapping")
@click.option("--saved-mapping", is_flag=True, help="Use the mapping saved for this file layout")
@click.pass_context
def import_file(
    ctx,
    file: str,
    account: str | None,
    date_col: int,
    desc_col: int,
    amount_col: int,
    debit_col: int,
    credit_col: int,
    category_col: int,
    date_format: str,
    number_format: str,
    header_row: int,
    timezone: str,
    institution: str,
    save_mapping: bool,
    bank_name: str | None,
    saved_mapping: bool,
):
    """Import transactions from a CSV, TSV or XLSX statement.

    Columns, delimiter, header row and number format are detected from the
    file unless given explicitly. Rows already imported into the same
    account are skipped as duplicates.

    Examples:
        ingestkit import statement.csv --account Checking
        ingestkit import export.csv --account 2 --date-col 0 --desc-col 2 --amount-col 4
        ingestkit import extrato.xlsx --account "Conta" --number-format european --save-mapping --bank-name "My Bank"
        ingestkit import statement.csv --account Checking --saved-mapping
    """
    user_id = ctx.obj["user_id"]
    account_id = resolve_account_or_exit(ctx, account) if account else None
    data = Path(file).read_bytes()

    mapping = ColumnMapping(
        date_col=date_col,
        desc_col=desc_col,
        amount_col=amount_col,
        debit_col=debit_col,
        credit_col=credit_col,
        category_col=category_col,
        is_european_format=NUMBER_FORMATS[number_format],
        date_format=date_format,
        timezone=timezone,
    )
    options = ImportOptions(header_rows=header_row, timezone=timezone, institution_name=institution)

    service = import_service(ctx)
    try:
        with domain_errors(ctx):
            if saved_mapping:
                result = service.import_with_saved_mapping(user_id, data, account_id=account_id, options=options)
            else:
                result = service.import_file(user_id, data, mapping=mapping, options=options, account_id=account_id)

            if save_mapping and not saved_mapping:
                analysis = service.analyze(user_id, data, detect_options_for(mapping, options))
                resolved = resolve_mapping(analysis.file_config, mapping)
                service.save_mapping(
                    user_id,
                    analysis.file_config.fingerprint,
                    resolved,
                    bank_name=bank_name,
                    file_config=analysis.file_config,
                )
                click.echo("Saved column mapping for this file layout.")
        service.wait_for_insights(ctx.obj["settings"].insights_timeout)
    finally:
        service.close()

    click.echo(f"\nImport complete (job {result.job_id}):")
    click.echo(f"  Rows: {result.rows_total}")
    click.echo(f"  Imported: {result.rows_imported} transactions")
    click.echo(f"  Skipped: {result.rows_duplicate} duplicates")
    if result.rows_failed:
        click.echo(f"  Errors: {result.rows_failed}")
        for error in result.errors[:MAX_ERRORS_SHOWN]:
            click.echo(f"    {error}", err=True)
        if len(result.errors) > MAX_ERRORS_SHOWN:
            click.echo(f"    ... and {len(result.errors) - MAX_ERRORS_SHOWN} more", err=True)


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_file)
