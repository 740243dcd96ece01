"""SQLAlchemy models for the knowledge store."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    text,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from intelligence_engine.core.database import Base


class KnowledgeStatus:
    """Lifecycle states of a knowledge item."""

    ACTIVE = "active"
    SUPERSEDED = "superseded"


class Document(Base):
    """Source document whose analysis feeds the knowledge store.

    Only the columns the engine reads or writes are modelled here; the
    surrounding document management system owns the rest.
    """

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    client_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    project_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )
    document_name: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Filing category, e.g. 'KYC', 'Appraisal', 'Valuation'"
    )
    added_to_intelligence: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), onupdate=datetime.utcnow
    )

    knowledge_items: Mapped[list["KnowledgeItem"]] = relationship(
        "KnowledgeItem", back_populates="source_document"
    )


class KnowledgeItem(Base):
    """A single canonical fact about a client or a project.

    Exactly one of client_id / project_id is set. Rows are never deleted:
    a replaced fact is flipped to 'superseded' and linked to its successor
    through superseded_by.
    """

    __tablename__ = "knowledge_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    client_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    project_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    field_path: Mapped[str] = mapped_column(
        String, nullable=False, comment="Canonical dot path, e.g. financials.gdv"
    )
    is_canonical: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    label: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[Any] = mapped_column(JSONB, nullable=True)
    value_type: Mapped[str] = mapped_column(
        String, nullable=False,
        comment="string | number | currency | date | percentage | array | text | boolean"
    )
    tags: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=KnowledgeStatus.ACTIVE
    )  # active | superseded

    # Provenance
    source_type: Mapped[str] = mapped_column(String, nullable=False, default="ai_extraction")
    source_document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="SET NULL"), nullable=True
    )
    source_document_name: Mapped[str | None] = mapped_column(String, nullable=True)
    source_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_label: Mapped[str | None] = mapped_column(String, nullable=True)
    normalization_confidence: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 4), nullable=True, comment="Confidence of the producing extraction (0.0-1.0)"
    )

    superseded_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("knowledge_items.id", ondelete="SET NULL"), nullable=True
    )
    added_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )

    source_document: Mapped["Document | None"] = relationship(
        "Document", back_populates="knowledge_items"
    )

    __table_args__ = (
        Index("ix_knowledge_items_client_field", "client_id", "field_path"),
        Index("ix_knowledge_items_project_field", "project_id", "field_path"),
        Index("ix_knowledge_items_source_document", "source_document_id", "field_path"),
        # At most one active item per key
        Index(
            "uq_knowledge_items_active_client_field",
            "client_id",
            "field_path",
            unique=True,
            postgresql_where=text("status = 'active' AND client_id IS NOT NULL"),
        ),
        Index(
            "uq_knowledge_items_active_project_field",
            "project_id",
            "field_path",
            unique=True,
            postgresql_where=text("status = 'active' AND project_id IS NOT NULL"),
        ),
        {"comment": "Provenance-tracked client/project facts with supersession chain"},
    )

    @property
    def confidence(self) -> float | None:
        """Normalization confidence as a float."""
        if self.normalization_confidence is None:
            return None
        return float(self.normalization_confidence)
