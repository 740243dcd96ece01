"""Extraction and knowledge services."""
