"""Bank statement ingestion and transaction categorization."""

__version__ = "0.1.0"


def __getattr__(name):
    # The CLI pulls in every domain module; load it only when asked for.
    if name == "main":
        from ingestkit.cli.main import main
        return main
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
