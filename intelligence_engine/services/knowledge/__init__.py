"""Reconciliation of extracted fields into the knowledge store."""

from intelligence_engine.services.knowledge.document_intelligence_service import (
    DocumentIntelligenceResult,
    DocumentIntelligenceService,
)
from intelligence_engine.services.knowledge.knowledge_reconciliation_service import (
    KnowledgeReconciliationService,
    ReconciliationResult,
)

__all__ = [
    "DocumentIntelligenceResult",
    "DocumentIntelligenceService",
    "KnowledgeReconciliationService",
    "ReconciliationResult",
]
