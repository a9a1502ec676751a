"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates:
- legal_documents
- legal_document_versions (number and active-marker uniqueness)
- legal_document_locale_tokens
- legal_document_audit_events
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

json_type = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Create all tables."""
    # legal_documents table
    op.create_table(
        "legal_documents",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("region", sa.Text(), nullable=False, server_default="global"),
        sa.Column("default_locale", sa.Text(), nullable=False, server_default="en"),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("audience_roles", json_type, nullable=False),
        sa.Column("editor_roles", json_type, nullable=False),
        sa.Column("tags", json_type, nullable=False),
        sa.Column("metadata", json_type, nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("active_version_id", sa.Uuid(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("slug", name="uq_legal_documents_slug"),
    )
    op.create_index("idx_legal_documents_status", "legal_documents", ["status", "category"])

    # legal_document_versions table
    op.create_table(
        "legal_document_versions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("locale", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("change_summary", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("external_url", sa.Text(), nullable=True),
        sa.Column("effective_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["legal_documents.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "document_id", "locale", "version", name="uq_legal_document_versions_number"
        ),
    )
    op.create_index(
        "uq_legal_document_versions_active",
        "legal_document_versions",
        ["document_id", "locale"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active = 1"),
    )

    # legal_document_locale_tokens table
    op.create_table(
        "legal_document_locale_tokens",
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("locale", sa.Text(), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["document_id"], ["legal_documents.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("document_id", "locale"),
    )

    # legal_document_audit_events table
    op.create_table(
        "legal_document_audit_events",
        sa.Column(
            "sequence",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("version_id", sa.Uuid(), nullable=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("actor_id", sa.Text(), nullable=False),
        sa.Column("actor_type", sa.Text(), nullable=False, server_default="admin"),
        sa.Column("metadata", json_type, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["legal_documents.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("id", name="uq_legal_document_audit_events_id"),
    )
    op.create_index(
        "idx_legal_audit_document_seq", "legal_document_audit_events", ["document_id", "sequence"]
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_legal_audit_document_seq", table_name="legal_document_audit_events")
    op.drop_table("legal_document_audit_events")
    op.drop_table("legal_document_locale_tokens")
    op.drop_index("uq_legal_document_versions_active", table_name="legal_document_versions")
    op.drop_table("legal_document_versions")
    op.drop_index("idx_legal_documents_status", table_name="legal_documents")
    op.drop_table("legal_documents")
