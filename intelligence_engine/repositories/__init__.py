"""Repository layer modules."""

from intelligence_engine.repositories.document_repository import DocumentRepository
from intelligence_engine.repositories.knowledge_item_repository import KnowledgeItemRepository

__all__ = [
    "DocumentRepository",
    "KnowledgeItemRepository",
]
