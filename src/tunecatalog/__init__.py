"""tunecatalog - local music catalog reconciliation and metadata enrichment."""

__version__ = "0.1.0"
