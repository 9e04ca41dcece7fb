"""SQLAlchemy models for scans and their matches."""

import uuid
from datetime import datetime

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from originality.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class OriginalityScan(Base):
    """One pipeline run over one document version."""

    __tablename__ = "originality_scans"
    __table_args__ = (
        Index("ix_originality_scans_owner_hash", "owner_id", "content_hash"),
        Index("ix_originality_scans_subject_owner", "subject_id", "owner_id"),
    )

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    subject_id: Mapped[str] = mapped_column(String, nullable=False)
    owner_id: Mapped[str] = mapped_column(String, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | processing | completed | failed
    overall_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    classification: Mapped[str] = mapped_column(
        String, nullable=False, default="safe"
    )  # safe | review | action_required
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    scanned_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    words_scanned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    match_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scanned_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    matches: Mapped[list["SimilarityMatch"]] = relationship(
        "SimilarityMatch",
        back_populates="scan",
        cascade="all, delete-orphan",
        order_by="SimilarityMatch.position_start",
    )


class SimilarityMatch(Base):
    """A flagged span of a scan and the source it matched."""

    __tablename__ = "similarity_matches"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=_uuid)
    scan_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("originality_scans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sentence_text: Mapped[str] = mapped_column(Text, nullable=False)
    position_start: Mapped[int] = mapped_column(Integer, nullable=False)
    position_end: Mapped[int] = mapped_column(Integer, nullable=False)
    matched_source: Mapped[str] = mapped_column(Text, nullable=False)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_database: Mapped[str] = mapped_column(String, nullable=False, default="web")
    similarity_score: Mapped[float] = mapped_column(Float, nullable=False)
    classification: Mapped[str] = mapped_column(String, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )

    scan: Mapped["OriginalityScan"] = relationship("OriginalityScan", back_populates="matches")
