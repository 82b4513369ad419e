from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from laurels_core.db.base import Base
from laurels_core.db.enums import ArtworkSource, RunMode, RunStatus, SourceType, TextKind

_NOW = text("CURRENT_TIMESTAMP")


class AwardOrganization(Base):
    __tablename__ = "award_organization"

    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    short_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    established_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=_NOW)


class AwardCategory(Base):
    __tablename__ = "award_category"

    category_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("award_organization.organization_id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    short_name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=_NOW)

    organization: Mapped[AwardOrganization] = relationship()

    __table_args__ = (UniqueConstraint("organization_id", "short_name", name="uq_award_category_org_short_name"),)


class CeremonyUnit(Base):
    __tablename__ = "ceremony_unit"

    ceremony_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("award_organization.organization_id", ondelete="CASCADE"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    # year - first ceremony year + 1; recomputed on every upsert.
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=_NOW)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "year", name="uq_ceremony_unit_org_year"),
        Index("ix_ceremony_unit_org_sequence", "organization_id", "sequence_number"),
    )


class CanonicalWork(Base):
    __tablename__ = "canonical_work"

    work_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Metadata-service id (TMDB). Write-once.
    external_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)
    # Cross-catalog id (IMDb "tt..."). Write-once.
    external_alternate_id: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)
    original_language: Mapped[str] = mapped_column(String(16), nullable=False, default="en")
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=_NOW)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    texts: Mapped[list[LocalizedText]] = relationship(back_populates="work", cascade="all, delete-orphan")


class LocalizedText(Base):
    __tablename__ = "localized_text"

    text_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    work_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("canonical_work.work_id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[TextKind] = mapped_column(Enum(TextKind, native_enum=False), nullable=False, default=TextKind.title)
    language_code: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=_NOW)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    work: Mapped[CanonicalWork] = relationship(back_populates="texts")

    __table_args__ = (
        UniqueConstraint("work_id", "kind", "language_code", name="uq_localized_text_owner_kind_lang"),
        Index("ix_localized_text_lookup", "kind", "language_code", "content"),
    )


class ArtworkReference(Base):
    __tablename__ = "artwork_reference"

    artwork_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    work_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("canonical_work.work_id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    language_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    country_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    source_type: Mapped[ArtworkSource] = mapped_column(
        Enum(ArtworkSource, native_enum=False), nullable=False, default=ArtworkSource.tmdb
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=_NOW)

    __table_args__ = (
        UniqueConstraint(
            "work_id", "width", "height", "language_code", "country_code", name="uq_artwork_reference_variant"
        ),
        Index("ix_artwork_reference_work", "work_id"),
    )


class SourceReference(Base):
    __tablename__ = "source_reference"

    reference_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    work_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("canonical_work.work_id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    source_type: Mapped[SourceType] = mapped_column(Enum(SourceType, native_enum=False), nullable=False)
    language_code: Mapped[str] = mapped_column(String(16), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=_NOW)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("work_id", "source_type", "language_code", name="uq_source_reference_owner_type_lang"),
    )


class NominationFact(Base):
    __tablename__ = "nomination_fact"

    nomination_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    work_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("canonical_work.work_id", ondelete="CASCADE"), nullable=False
    )
    ceremony_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("ceremony_unit.ceremony_id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("award_category.category_id", ondelete="CASCADE"), nullable=False
    )
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    special_mention: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=_NOW)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("work_id", "ceremony_id", "category_id", name="uq_nomination_fact_natural_key"),
        Index("ix_nomination_fact_ceremony", "ceremony_id"),
    )


class IngestRun(Base):
    __tablename__ = "ingest_run"

    ingest_run_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    source_key: Mapped[str] = mapped_column(String(64), nullable=False)
    mode: Mapped[RunMode] = mapped_column(Enum(RunMode, native_enum=False), nullable=False, default=RunMode.full)
    params: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[RunStatus] = mapped_column(
        Enum(RunStatus, native_enum=False), nullable=False, default=RunStatus.started
    )
    units_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    entries_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    error_log: Mapped[str | None] = mapped_column(Text, nullable=True)
