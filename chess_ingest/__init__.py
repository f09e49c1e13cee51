"""Chess tournament calendar ingestion and enrichment."""

__version__ = "0.3.0"
