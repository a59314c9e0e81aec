"""CLI helpers for account resolution."""

from __future__ import annotations

import click

from ingestkit.domain.account import AccountService


def resolve_account_or_exit(ctx: click.Context, account: str | int) -> int:
    """Resolve the current user's account name or ID, or exit with a CLI error."""
    service = AccountService(ctx.obj["db"])
    try:
        return service.resolve_account(ctx.obj["user_id"], account)
    except ValueError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(1)
