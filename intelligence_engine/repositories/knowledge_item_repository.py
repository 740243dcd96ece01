"""Repository for knowledge items: reconciliation lookups and read queries."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from intelligence_engine.database.models import KnowledgeItem, KnowledgeStatus
from intelligence_engine.repositories.base_repository import BaseRepository


class KnowledgeItemRepository(BaseRepository[KnowledgeItem]):
    """Repository for managing KnowledgeItem records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, KnowledgeItem)

    @staticmethod
    def _key_filter(client_id: Optional[uuid.UUID], project_id: Optional[uuid.UUID]):
        """Build the (client|project) filter for a reconciliation key."""
        if project_id is not None:
            return KnowledgeItem.project_id == project_id
        if client_id is not None:
            return KnowledgeItem.client_id == client_id
        raise ValueError("Either client_id or project_id is required")

    # ------------------------------------------------------------------
    # Reconciliation support
    # ------------------------------------------------------------------

    async def acquire_key_lock(self, lock_key: str) -> None:
        """Serialize writers of one (owner, field path) key across processes.

        Takes a transaction-scoped advisory lock on PostgreSQL; other
        dialects rely on the in-process lock and the partial unique indexes.
        """
        bind = self.session.get_bind()
        if bind.dialect.name != "postgresql":
            return
        await self.session.execute(
            select(func.pg_advisory_xact_lock(func.hashtext(lock_key)))
        )

    async def get_by_source_and_field(
        self,
        source_document_id: uuid.UUID,
        field_path: str,
        client_id: Optional[uuid.UUID] = None,
        project_id: Optional[uuid.UUID] = None,
    ) -> Optional[KnowledgeItem]:
        """Get the item a document previously produced for a field path, any status.

        When a client or project id is given, only rows stored under that key
        are considered.
        """
        try:
            conditions = [
                KnowledgeItem.source_document_id == source_document_id,
                KnowledgeItem.field_path == field_path,
            ]
            if client_id is not None or project_id is not None:
                conditions.append(self._key_filter(client_id, project_id))

            query = (
                select(KnowledgeItem)
                .where(*conditions)
                .order_by(KnowledgeItem.added_at.desc())
                .limit(1)
            )
            result = await self.session.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving knowledge item for document {source_document_id} "
                f"and field {field_path}: {str(e)}",
                exc_info=True
            )
            raise

    async def get_active_for_key(
        self,
        field_path: str,
        client_id: Optional[uuid.UUID] = None,
        project_id: Optional[uuid.UUID] = None,
        for_update: bool = False,
    ) -> Optional[KnowledgeItem]:
        """Get the active item for a (client|project, field path) key."""
        try:
            query = select(KnowledgeItem).where(
                self._key_filter(client_id, project_id),
                KnowledgeItem.field_path == field_path,
                KnowledgeItem.status == KnowledgeStatus.ACTIVE,
            )
            if for_update:
                query = query.with_for_update()
            result = await self.session.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error retrieving active knowledge item for {field_path}: {str(e)}",
                exc_info=True
            )
            raise

    async def patch_item(self, item: KnowledgeItem, **changes: Any) -> KnowledgeItem:
        """Patch an item in place and bump updated_at."""
        for key, value in changes.items():
            setattr(item, key, value)
        item.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return item

    async def mark_superseded(self, item: KnowledgeItem, now: datetime) -> KnowledgeItem:
        """Flip an active item to superseded.

        Flushed before the successor is inserted so the active-item unique
        index never sees two active rows for the key.
        """
        item.status = KnowledgeStatus.SUPERSEDED
        item.updated_at = now
        await self.session.flush()
        return item

    async def link_successor(self, item: KnowledgeItem, successor_id: uuid.UUID) -> KnowledgeItem:
        """Point a superseded item at the item that replaced it."""
        item.superseded_by = successor_id
        await self.session.flush()
        return item

    # ------------------------------------------------------------------
    # Read queries
    # ------------------------------------------------------------------

    async def get_active_by_document(self, document_id: uuid.UUID) -> Sequence[KnowledgeItem]:
        """Get the active items a source document contributed."""
        query = (
            select(KnowledgeItem)
            .where(
                KnowledgeItem.source_document_id == document_id,
                KnowledgeItem.status == KnowledgeStatus.ACTIVE,
            )
            .order_by(KnowledgeItem.category, KnowledgeItem.field_path)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_by_client(
        self,
        client_id: uuid.UUID,
        category: Optional[str] = None,
        status: str = KnowledgeStatus.ACTIVE,
    ) -> Sequence[KnowledgeItem]:
        """Get a client's items, optionally narrowed to one category."""
        query = select(KnowledgeItem).where(
            KnowledgeItem.client_id == client_id,
            KnowledgeItem.status == status,
        )
        if category:
            query = query.where(KnowledgeItem.category == category)
        query = query.order_by(KnowledgeItem.category, KnowledgeItem.field_path)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_by_project(
        self,
        project_id: uuid.UUID,
        category: Optional[str] = None,
        status: str = KnowledgeStatus.ACTIVE,
    ) -> Sequence[KnowledgeItem]:
        """Get a project's items, optionally narrowed to one category."""
        query = select(KnowledgeItem).where(
            KnowledgeItem.project_id == project_id,
            KnowledgeItem.status == status,
        )
        if category:
            query = query.where(KnowledgeItem.category == category)
        query = query.order_by(KnowledgeItem.category, KnowledgeItem.field_path)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_field_history(
        self,
        field_path: str,
        client_id: Optional[uuid.UUID] = None,
        project_id: Optional[uuid.UUID] = None,
    ) -> list[KnowledgeItem]:
        """Get every version of a field, active first, then newest first."""
        query = select(KnowledgeItem).where(
            self._key_filter(client_id, project_id),
            KnowledgeItem.field_path == field_path,
        )
        result = await self.session.execute(query)
        items = list(result.scalars().all())
        items.sort(key=lambda item: item.added_at, reverse=True)
        items.sort(key=lambda item: item.status != KnowledgeStatus.ACTIVE)
        return items

    async def has_field_history(
        self,
        field_path: str,
        client_id: Optional[uuid.UUID] = None,
        project_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """Check whether a field has at least one superseded version."""
        query = (
            select(KnowledgeItem.id)
            .where(
                self._key_filter(client_id, project_id),
                KnowledgeItem.field_path == field_path,
                KnowledgeItem.status == KnowledgeStatus.SUPERSEDED,
            )
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalars().first() is not None

    async def get_stats(
        self,
        client_id: Optional[uuid.UUID] = None,
        project_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """Summarize active items for a client or project by category."""
        query = select(KnowledgeItem).where(
            self._key_filter(client_id, project_id),
            KnowledgeItem.status == KnowledgeStatus.ACTIVE,
        )
        result = await self.session.execute(query)
        items = result.scalars().all()

        by_category: Dict[str, Dict[str, int]] = {}
        for item in items:
            bucket = by_category.setdefault(item.category, {"total": 0, "canonical": 0, "custom": 0})
            bucket["total"] += 1
            bucket["canonical" if item.is_canonical else "custom"] += 1

        canonical = sum(1 for item in items if item.is_canonical)
        return {
            "total_active": len(items),
            "canonical": canonical,
            "custom": len(items) - canonical,
            "by_category": by_category,
        }
