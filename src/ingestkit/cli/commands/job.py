"""Import job and data source health commands."""

import click


def format_minor(amount_minor: int) -> str:
    sign = "-" if amount_minor < 0 else ""
    whole, cents = divmod(abs(amount_minor), 100)
    return f"{sign}{whole}.{cents:02d}"


@click.group()
def job_group():
    """Inspect import jobs."""
    pass


@job_group.command("show")
@click.argument("job_id", type=int)
@click.pass_context
def show_job(ctx, job_id: int):
    """Show the status, counters and insights of an import job."""
    db = ctx.obj["db"]
    job = db.get_import_job(job_id)
    if job is None or job.user_id != ctx.obj["user_id"]:
        click.echo(f"Error: Import job {job_id} not found", err=True)
        ctx.exit(1)

    click.echo(f"\nImport job {job.id}: {job.status}")
    if job.institution_name:
        click.echo(f"  Institution: {job.institution_name}")
    click.echo(f"  Imported: {job.rows_imported}")
    click.echo(f"  Failed: {job.rows_failed}")
    click.echo(f"  Duplicates: {job.rows_duplicate}")
    if job.error_message:
        click.echo(f"  Error: {job.error_message}")

    insights = db.get_import_insights(job_id)
    if insights is None:
        return
    click.echo("\nInsights:")
    click.echo(f"  Currency: {insights.currency_code}")
    click.echo(f"  Categorized: {insights.categorization_rate:.0%}")
    click.echo(f"  Income: {format_minor(insights.total_income)}")
    click.echo(f"  Expenses: {format_minor(insights.total_expenses)}")
    if insights.earliest_date and insights.latest_date:
        click.echo(f"  Period: {insights.earliest_date:%Y-%m-%d} to {insights.latest_date:%Y-%m-%d}")
    for issue in insights.issues:
        click.echo(f"  Issue: {issue.type} ({issue.affected_rows} rows) - {issue.suggestion}")


@click.command("health")
@click.pass_context
def show_health(ctx):
    """Show data quality per institution."""
    rows = ctx.obj["db"].list_data_source_health(ctx.obj["user_id"])
    if not rows:
        click.echo("No imported data yet.")
        return

    click.echo("\nData sources:")
    click.echo("-" * 70)
    for h in rows:
        last = f"{h.last_import:%Y-%m-%d}" if h.last_import else "-"
        click.echo(
            f"{h.institution_name:20s} | {h.transaction_count:6d} txns | "
            f"{h.categorization_rate:4.0%} categorized | Last import: {last}"
        )


def register_commands(cli):
    """Register job commands with main CLI."""
    cli.add_command(job_group, name="job")
    cli.add_command(show_health)
