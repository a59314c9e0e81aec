"""Domain layer for ingestkit application."""

__all__ = ["CategorizationService", "ImportService"]


# Services import the database layer, which imports domain entities, so
# they are resolved lazily to avoid a circular import.
def __getattr__(name):
    if name == "CategorizationService":
        from ingestkit.domain.categorization import CategorizationService
        return CategorizationService
    if name == "ImportService":
        from ingestkit.domain.import_service import ImportService
        return ImportService
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
