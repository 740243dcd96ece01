"""Intelligence extraction and knowledge reconciliation engine."""

__version__ = "0.1.0"
