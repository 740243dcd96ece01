"""Knowledge reconciliation service.

Merges extracted fields from one source document into the knowledge store.
Each field is reconciled independently, in its own transaction:

1. Same-source update: the document already produced this field path, so
   the existing row is patched in place (re-extraction, not a new fact).
2. Cross-source conflict: an active row exists for the key with a strictly
   lower confidence, so it is superseded by a new active row.
3. No active row for the key: a new row is inserted.
4. Otherwise the field is discarded.

A failure on one field is rolled back, logged and counted; it never stops
the remaining fields.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from intelligence_engine.core.config import settings
from intelligence_engine.core.exceptions import DocumentNotFoundError, ReconciliationError
from intelligence_engine.database.models import KnowledgeItem, KnowledgeStatus
from intelligence_engine.repositories.document_repository import DocumentRepository
from intelligence_engine.repositories.knowledge_item_repository import KnowledgeItemRepository
from intelligence_engine.services.extraction.contracts import ExtractedField
from intelligence_engine.services.extraction.label_canonicalization_service import SCOPE_PROJECT
from intelligence_engine.services.knowledge.key_locks import KeyedLockRegistry, key_locks, knowledge_key
from intelligence_engine.utils.logging import get_logger

LOGGER = get_logger(__name__)

OUTCOME_ADDED = "added"
OUTCOME_UPDATED = "updated"
OUTCOME_SKIPPED = "skipped"


@dataclass
class ReconciliationResult:
    """Counts from reconciling one document's fields."""
    added: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def record(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)


@dataclass(frozen=True)
class _SourceDocument:
    id: uuid.UUID
    client_id: Optional[uuid.UUID]
    project_id: Optional[uuid.UUID]
    name: Optional[str]


def _to_decimal(confidence: float) -> Decimal:
    return Decimal(str(round(confidence, 4)))


class KnowledgeReconciliationService:
    """Reconciles extracted fields into the knowledge store.

    Attributes:
        session: Async session; committed once per field
        knowledge_repository: Repository for knowledge items
        document_repository: Repository for source documents
        locks: In-process lock registry keyed by knowledge key
        baseline_confidence: Confidence assumed for items stored without one
    """

    def __init__(
        self,
        session: AsyncSession,
        knowledge_repository: KnowledgeItemRepository = None,
        document_repository: DocumentRepository = None,
        locks: KeyedLockRegistry = None,
        baseline_confidence: Optional[float] = None,
    ):
        self.session = session
        self.knowledge_repository = knowledge_repository or KnowledgeItemRepository(session)
        self.document_repository = document_repository or DocumentRepository(session)
        self.locks = locks or key_locks
        if baseline_confidence is None:
            baseline_confidence = settings.intelligence.baseline_confidence
        self.baseline_confidence = baseline_confidence
        self.source_type = settings.intelligence.source_type

    async def reconcile(
        self,
        document_id: uuid.UUID,
        fields: List[ExtractedField],
        client_id: Optional[uuid.UUID] = None,
        project_id: Optional[uuid.UUID] = None,
    ) -> ReconciliationResult:
        """Reconcile a document's extracted fields into the knowledge store.

        Args:
            document_id: Source document of the fields
            fields: Fields produced by the extractor
            client_id: Client to attach client-scoped fields to (defaults to the document's)
            project_id: Project to attach project-scoped fields to (defaults to the document's)

        Returns:
            ReconciliationResult with per-outcome counts

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self.document_repository.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        # Plain copy: rollbacks below expire the ORM instance
        source = _SourceDocument(
            id=document.id,
            client_id=document.client_id,
            project_id=document.project_id,
            name=document.document_name,
        )

        LOGGER.info(
            f"Reconciling {len(fields)} fields for document {document_id}",
            extra={"document_id": str(document_id), "field_count": len(fields)}
        )

        result = ReconciliationResult()
        for extracted in fields:
            try:
                outcome = await self._reconcile_field(source, extracted, client_id, project_id)
            except Exception as e:
                await self.session.rollback()
                result.failed += 1
                result.errors.append({"field_path": extracted.field_path, "error": str(e)})
                LOGGER.error(
                    f"Failed to reconcile field {extracted.field_path}: {str(e)}",
                    exc_info=True,
                    extra={"document_id": str(document_id), "field_path": extracted.field_path}
                )
                continue
            result.record(outcome)

        await self.document_repository.mark_added_to_intelligence(document_id)
        await self.session.commit()

        LOGGER.info(
            "Reconciliation completed",
            extra={
                "document_id": str(document_id),
                "added": result.added,
                "updated": result.updated,
                "skipped": result.skipped,
                "failed": result.failed,
            }
        )
        return result

    def _resolve_target(
        self,
        extracted: ExtractedField,
        source: _SourceDocument,
        client_id: Optional[uuid.UUID] = None,
        project_id: Optional[uuid.UUID] = None,
    ) -> Tuple[Optional[uuid.UUID], Optional[uuid.UUID]]:
        """Pick the (client_id, project_id) key a field is stored under.

        Project-scoped fields fall back to the client when no project is known.
        """
        if extracted.scope == SCOPE_PROJECT:
            target_project = project_id or source.project_id
            if target_project is not None:
                return None, target_project

        target_client = client_id or source.client_id
        if target_client is None:
            raise ReconciliationError(
                f"No client or project to attach {extracted.field_path} to",
                field_path=extracted.field_path,
            )
        return target_client, None

    async def _reconcile_field(
        self,
        source: _SourceDocument,
        extracted: ExtractedField,
        client_id: Optional[uuid.UUID],
        project_id: Optional[uuid.UUID],
    ) -> str:
        target_client, target_project = self._resolve_target(extracted, source, client_id, project_id)
        lock_key = knowledge_key(extracted.field_path, target_client, target_project)

        async with self.locks.hold(lock_key):
            await self.knowledge_repository.acquire_key_lock(lock_key)
            outcome = await self._apply(source, extracted, target_client, target_project)
            await self.session.commit()

        LOGGER.debug(
            f"Field {extracted.field_path} {outcome}",
            extra={"document_id": str(source.id), "lock_key": lock_key}
        )
        return outcome

    async def _apply(
        self,
        source: _SourceDocument,
        extracted: ExtractedField,
        target_client: Optional[uuid.UUID],
        target_project: Optional[uuid.UUID],
    ) -> str:
        repository = self.knowledge_repository

        previous = await repository.get_by_source_and_field(
            source.id,
            extracted.field_path,
            client_id=target_client,
            project_id=target_project,
        )
        if previous is not None:
            if previous.status == KnowledgeStatus.ACTIVE:
                await repository.patch_item(
                    previous,
                    value=extracted.value,
                    value_type=extracted.value_type,
                    label=extracted.label,
                    original_label=extracted.label,
                    source_text=extracted.source_text,
                    normalization_confidence=_to_decimal(extracted.confidence),
                    tags=list(extracted.tags),
                )
            return OUTCOME_UPDATED

        active = await repository.get_active_for_key(
            extracted.field_path,
            client_id=target_client,
            project_id=target_project,
            for_update=True,
        )
        if active is None:
            await repository.add(self._build_item(source, extracted, target_client, target_project))
            return OUTCOME_ADDED

        existing_confidence = active.confidence
        if existing_confidence is None:
            existing_confidence = self.baseline_confidence
        if extracted.confidence <= existing_confidence:
            return OUTCOME_SKIPPED

        now = datetime.now(timezone.utc)
        await repository.mark_superseded(active, now)
        successor = await repository.add(
            self._build_item(source, extracted, target_client, target_project, now)
        )
        await repository.link_successor(active, successor.id)

        LOGGER.info(
            f"Superseded {extracted.field_path}",
            extra={
                "superseded_id": str(active.id),
                "successor_id": str(successor.id),
                "previous_confidence": existing_confidence,
                "confidence": extracted.confidence,
            }
        )
        return OUTCOME_UPDATED

    def _build_item(
        self,
        source: _SourceDocument,
        extracted: ExtractedField,
        target_client: Optional[uuid.UUID],
        target_project: Optional[uuid.UUID],
        now: Optional[datetime] = None,
    ) -> KnowledgeItem:
        now = now or datetime.now(timezone.utc)
        return KnowledgeItem(
            id=uuid.uuid4(),
            client_id=target_client,
            project_id=target_project,
            field_path=extracted.field_path,
            is_canonical=extracted.is_canonical,
            category=extracted.category,
            label=extracted.label,
            value=extracted.value,
            value_type=extracted.value_type,
            tags=list(extracted.tags),
            status=KnowledgeStatus.ACTIVE,
            source_type=self.source_type,
            source_document_id=source.id,
            source_document_name=source.name,
            source_text=extracted.source_text,
            original_label=extracted.label,
            normalization_confidence=_to_decimal(extracted.confidence),
            added_at=now,
            updated_at=now,
        )
