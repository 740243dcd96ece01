"""Pydantic schemas for payloads exchanged with collaborators."""

from intelligence_engine.schemas.document_analysis import DocumentAnalysis, DocumentEntities

__all__ = ["DocumentAnalysis", "DocumentEntities"]
