"""Document intelligence service.

Runs extraction and reconciliation for one stored document.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from intelligence_engine.core.exceptions import DocumentNotFoundError, ValidationError
from intelligence_engine.repositories.document_repository import DocumentRepository
from intelligence_engine.schemas.document_analysis import DocumentAnalysis
from intelligence_engine.services.extraction.contracts import ExtractedField
from intelligence_engine.services.extraction.intelligence_extractor import IntelligenceExtractor
from intelligence_engine.services.knowledge.knowledge_reconciliation_service import (
    KnowledgeReconciliationService,
    ReconciliationResult,
)
from intelligence_engine.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class DocumentIntelligenceResult:
    """Outcome of processing one document."""
    document_id: uuid.UUID
    fields: List[ExtractedField] = field(default_factory=list)
    reconciliation: ReconciliationResult = field(default_factory=ReconciliationResult)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": str(self.document_id),
            "fields": [extracted.to_dict() for extracted in self.fields],
            "added": self.reconciliation.added,
            "updated": self.reconciliation.updated,
            "skipped": self.reconciliation.skipped,
            "failed": self.reconciliation.failed,
            "errors": list(self.reconciliation.errors),
        }


class DocumentIntelligenceService:
    """Extracts knowledge from a document's analysis and stores it."""

    def __init__(
        self,
        session: AsyncSession,
        extractor: IntelligenceExtractor = None,
        reconciler: KnowledgeReconciliationService = None,
        document_repository: DocumentRepository = None,
    ):
        self.session = session
        self.document_repository = document_repository or DocumentRepository(session)
        self.extractor = extractor or IntelligenceExtractor()
        self.reconciler = reconciler or KnowledgeReconciliationService(
            session, document_repository=self.document_repository
        )

    async def process_document(
        self,
        document_id: uuid.UUID,
        document_analysis: Union[DocumentAnalysis, Dict[str, Any]],
    ) -> DocumentIntelligenceResult:
        """Extract fields from a document analysis and reconcile them.

        Args:
            document_id: Stored document the analysis belongs to
            document_analysis: Analysis payload, as a model or camelCase dict

        Returns:
            DocumentIntelligenceResult with the extracted fields and counts

        Raises:
            DocumentNotFoundError: If the document does not exist
            ValidationError: If the payload does not match DocumentAnalysis
        """
        document = await self.document_repository.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        if not isinstance(document_analysis, DocumentAnalysis):
            try:
                document_analysis = DocumentAnalysis.model_validate(document_analysis or {})
            except PydanticValidationError as e:
                raise ValidationError(
                    f"Invalid document analysis for document {document_id}",
                    original_error=e,
                ) from e

        has_project_context = document.project_id is not None
        fields = self.extractor.extract(
            document_analysis,
            has_project_context=has_project_context,
            document_category=document.category,
        )

        reconciliation = await self.reconciler.reconcile(document_id, fields)

        LOGGER.info(
            f"Processed document {document_id} into the knowledge store",
            extra={
                "document_id": str(document_id),
                "field_count": len(fields),
                "added": reconciliation.added,
                "updated": reconciliation.updated,
                "failed": reconciliation.failed,
            }
        )
        return DocumentIntelligenceResult(
            document_id=document_id,
            fields=fields,
            reconciliation=reconciliation,
        )
