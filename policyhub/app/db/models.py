"""SQLAlchemy ORM models for legal policy documents."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func, text

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class LegalDocument(Base):
    """Legal document table - one row per policy slug."""

    __tablename__ = "legal_documents"
    __table_args__ = (Index("idx_legal_documents_status", "status", "category"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    region: Mapped[str] = mapped_column(Text, nullable=False, default="global")
    default_locale: Mapped[str] = mapped_column(Text, nullable=False, default="en")
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    audience_roles: Mapped[list[str]] = mapped_column(JsonColumn, nullable=False, default=list)
    editor_roles: Mapped[list[str]] = mapped_column(JsonColumn, nullable=False, default=list)
    tags: Mapped[list[str]] = mapped_column(JsonColumn, nullable=False, default=list)
    # "metadata" is reserved on declarative classes
    attributes: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JsonColumn, nullable=False, default=dict
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft")
    active_version_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    retired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    versions: Mapped[list["LegalDocumentVersion"]] = relationship(
        "LegalDocumentVersion", back_populates="document", cascade="all, delete-orphan"
    )


class LegalDocumentVersion(Base):
    """Version table - one row per (document, locale, version)."""

    __tablename__ = "legal_document_versions"
    __table_args__ = (
        UniqueConstraint(
            "document_id", "locale", "version", name="uq_legal_document_versions_number"
        ),
        # At most one active version per (document, locale)
        Index(
            "uq_legal_document_versions_active",
            "document_id",
            "locale",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("legal_documents.id", ondelete="CASCADE"), nullable=False
    )
    locale: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    external_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    effective_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    document: Mapped["LegalDocument"] = relationship("LegalDocument", back_populates="versions")


class LocaleActivationToken(Base):
    """Activation token table - compare-and-swap revision per (document, locale)."""

    __tablename__ = "legal_document_locale_tokens"

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("legal_documents.id", ondelete="CASCADE"), primary_key=True
    )
    locale: Mapped[str] = mapped_column(Text, primary_key=True)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class LegalDocumentAuditEvent(Base):
    """Audit event table - append-only, ordered by sequence."""

    __tablename__ = "legal_document_audit_events"
    __table_args__ = (Index("idx_legal_audit_document_seq", "document_id", "sequence"),)

    sequence: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True
    )
    id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, unique=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("legal_documents.id", ondelete="CASCADE"), nullable=False
    )
    version_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    actor_id: Mapped[str] = mapped_column(Text, nullable=False)
    actor_type: Mapped[str] = mapped_column(Text, nullable=False, default="admin")
    attributes: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JsonColumn, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
