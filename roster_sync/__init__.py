"""Daily roster → record store reconciliation."""

__version__ = "1.0.0"
