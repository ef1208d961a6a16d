"""DocVault — document ingestion and keyword search service."""

__version__ = "1.0.0"
