"""CLI error handling helpers."""

from contextlib import contextmanager
from typing import Iterator

import click

from ingestkit.domain.errors import (
    CurrencyResolutionError,
    DomainError,
    FormatError,
    MappingError,
)
from ingestkit.logging_setup import get_logger

logger = get_logger(__name__)

HINTS = {
    FormatError: "Check that the file is a CSV, TSV or XLSX bank statement.",
    MappingError: "Pass the column indices explicitly (see --date-col, --desc-col, --amount-col).",
    CurrencyResolutionError: "Import into an account with --account so its currency is used.",
}


def hint_for(error: Exception) -> str | None:
    for error_type, hint in HINTS.items():
        if isinstance(error, error_type):
            return hint
    return None


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error, with a hint where one applies, and exit with failure."""
    logger.debug("command failed: %r", error)
    click.echo(f"Error: {error}", err=True)
    hint = hint_for(error)
    if hint:
        click.echo(f"Hint: {hint}", err=True)
    ctx.exit(1)


@contextmanager
def domain_errors(ctx: click.Context) -> Iterator[None]:
    """Turn ValueError (and so every DomainError) raised in the block into a CLI error."""
    try:
        yield
    except ValueError as e:
        handle_domain_error(ctx, e)
