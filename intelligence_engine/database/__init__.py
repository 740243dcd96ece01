"""Database module for SQLAlchemy models."""

from intelligence_engine.core.database import Base, engine, async_session_maker
from intelligence_engine.database.models import Document, KnowledgeItem, KnowledgeStatus

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "Document",
    "KnowledgeItem",
    "KnowledgeStatus",
]
