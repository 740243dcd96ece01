"""Repository for the source documents feeding the knowledge store."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from intelligence_engine.database.models import Document
from intelligence_engine.repositories.base_repository import BaseRepository


class DocumentRepository(BaseRepository[Document]):
    """Repository for managing Document records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Document)

    async def mark_added_to_intelligence(self, document_id: UUID) -> Optional[Document]:
        """Flag a document as having contributed to the knowledge store.

        Idempotent: documents already flagged are returned unchanged.
        """
        document = await self.get_by_id(document_id)
        if document is None:
            return None

        if not document.added_to_intelligence:
            document.added_to_intelligence = True
            await self.session.flush()
            self.logger.debug(
                "Document flagged as added to intelligence",
                extra={"document_id": str(document_id)}
            )

        return document
