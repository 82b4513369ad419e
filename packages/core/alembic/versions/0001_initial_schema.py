"""Initial award catalogue schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_NOW = sa.text("now()")


def upgrade() -> None:
    op.create_table(
        "award_organization",
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=256), nullable=False, unique=True),
        sa.Column("short_name", sa.String(length=64), nullable=True),
        sa.Column("country", sa.String(length=64), nullable=True),
        sa.Column("established_year", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
    )

    op.create_table(
        "award_category",
        sa.Column("category_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("award_organization.organization_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("short_name", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.UniqueConstraint("organization_id", "short_name", name="uq_award_category_org_short_name"),
    )

    op.create_table(
        "ceremony_unit",
        sa.Column("ceremony_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("award_organization.organization_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("organization_id", "year", name="uq_ceremony_unit_org_year"),
    )
    op.create_index("ix_ceremony_unit_org_sequence", "ceremony_unit", ["organization_id", "sequence_number"])

    op.create_table(
        "canonical_work",
        sa.Column("work_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("external_id", sa.Integer(), nullable=True, unique=True),
        sa.Column("external_alternate_id", sa.String(length=32), nullable=True, unique=True),
        sa.Column("original_language", sa.String(length=16), nullable=False, server_default="en"),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "localized_text",
        sa.Column("text_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "work_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("canonical_work.work_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(length=16), nullable=False, server_default="title"),
        sa.Column("language_code", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("work_id", "kind", "language_code", name="uq_localized_text_owner_kind_lang"),
    )
    op.create_index("ix_localized_text_lookup", "localized_text", ["kind", "language_code", "content"])

    op.create_table(
        "artwork_reference",
        sa.Column("artwork_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "work_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("canonical_work.work_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("language_code", sa.String(length=16), nullable=True),
        sa.Column("country_code", sa.String(length=16), nullable=True),
        sa.Column("source_type", sa.String(length=16), nullable=False, server_default="tmdb"),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.UniqueConstraint(
            "work_id", "width", "height", "language_code", "country_code", name="uq_artwork_reference_variant"
        ),
    )
    op.create_index("ix_artwork_reference_work", "artwork_reference", ["work_id"])

    op.create_table(
        "source_reference",
        sa.Column("reference_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "work_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("canonical_work.work_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("source_type", sa.String(length=16), nullable=False),
        sa.Column("language_code", sa.String(length=16), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("work_id", "source_type", "language_code", name="uq_source_reference_owner_type_lang"),
    )

    op.create_table(
        "nomination_fact",
        sa.Column("nomination_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "work_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("canonical_work.work_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "ceremony_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("ceremony_unit.ceremony_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("award_category.category_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_winner", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("special_mention", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("work_id", "ceremony_id", "category_id", name="uq_nomination_fact_natural_key"),
    )
    op.create_index("ix_nomination_fact_ceremony", "nomination_fact", ["ceremony_id"])

    op.create_table(
        "ingest_run",
        sa.Column("ingest_run_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("source_key", sa.String(length=64), nullable=False),
        sa.Column("mode", sa.String(length=16), nullable=False, server_default="full"),
        sa.Column("params", sa.JSON(), nullable=False, server_default=sa.text("'{}'::json")),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="started"),
        sa.Column("units_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("entries_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("winners", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON(), nullable=False, server_default=sa.text("'[]'::json")),
        sa.Column("error_log", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("ingest_run")
    op.drop_index("ix_nomination_fact_ceremony", table_name="nomination_fact")
    op.drop_table("nomination_fact")
    op.drop_table("source_reference")
    op.drop_index("ix_artwork_reference_work", table_name="artwork_reference")
    op.drop_table("artwork_reference")
    op.drop_index("ix_localized_text_lookup", table_name="localized_text")
    op.drop_table("localized_text")
    op.drop_table("canonical_work")
    op.drop_index("ix_ceremony_unit_org_sequence", table_name="ceremony_unit")
    op.drop_table("ceremony_unit")
    op.drop_table("award_category")
    op.drop_table("award_organization")
