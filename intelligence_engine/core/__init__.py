"""Core configuration, database and exception modules."""
