"""CLI helpers that build domain services from the click context."""

from __future__ import annotations

import click

from ingestkit.domain.categorization import CategorizationService
from ingestkit.domain.import_service import ImportService
from ingestkit.domain.insights import DatabaseInsightsSink
from ingestkit.domain.search import SearchIndex


def categorization_service(ctx: click.Context, with_search: bool = False) -> CategorizationService:
    """Categorization service on the context database.

    The search index lives in memory, so it is only created when asked for.
    """
    settings = ctx.obj["settings"]
    return CategorizationService(
        ctx.obj["db"],
        search_index=SearchIndex() if with_search else None,
        fuzzy_threshold=settings.fuzzy_threshold,
    )


def import_service(ctx: click.Context) -> ImportService:
    settings = ctx.obj["settings"]
    db = ctx.obj["db"]
    return ImportService(
        db,
        categorization=categorization_service(ctx),
        insights=DatabaseInsightsSink(db),
        batch_size=settings.batch_size,
        workers=settings.workers,
        insights_timeout=settings.insights_timeout,
    )
