"""Repositories for scans and matches, and the SQL-backed result store."""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from originality.core.exceptions import ScanNotFoundError
from originality.database.models import OriginalityScan, SimilarityMatch
from originality.repositories.base_repository import BaseRepository
from originality.schemas.scan import (
    MatchClassification,
    MatchRecord,
    ScanClassification,
    ScanRecord,
    ScanStatus,
    SourceKind,
)
from originality.services.originality.store import (
    check_accepts_matches,
    check_update_fields,
)


class ScanRepository(BaseRepository[OriginalityScan]):
    """Repository for OriginalityScan records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, OriginalityScan)

    async def find_completed_by_owner_hash(self, owner_id: str, content_hash: str) -> Optional[OriginalityScan]:
        try:
            query = (
                select(OriginalityScan)
                .where(
                    OriginalityScan.owner_id == owner_id,
                    OriginalityScan.content_hash == content_hash,
                    OriginalityScan.status == ScanStatus.COMPLETED.value,
                )
                .order_by(OriginalityScan.completed_at.desc())
                .limit(1)
            )
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._fail("looking up completed", e) from e

    async def list_by_subject(self, subject_id: str, owner_id: str) -> list[OriginalityScan]:
        try:
            query = (
                select(OriginalityScan)
                .where(OriginalityScan.subject_id == subject_id, OriginalityScan.owner_id == owner_id)
                .order_by(OriginalityScan.scanned_at.desc())
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing subject", e) from e


class MatchRepository(BaseRepository[SimilarityMatch]):
    """Repository for SimilarityMatch records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SimilarityMatch)

    async def list_by_scan(self, scan_id: str) -> list[SimilarityMatch]:
        try:
            query = (
                select(SimilarityMatch)
                .where(SimilarityMatch.scan_id == scan_id)
                .order_by(SimilarityMatch.position_start, SimilarityMatch.position_end)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e

    async def delete_by_scan(self, scan_id: str) -> int:
        try:
            result = await self.session.execute(delete(SimilarityMatch).where(SimilarityMatch.scan_id == scan_id))
            await self.session.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise self._fail("deleting", e) from e


def match_to_record(row: SimilarityMatch) -> MatchRecord:
    return MatchRecord(
        id=str(row.id),
        scan_id=str(row.scan_id),
        sentence_text=row.sentence_text,
        position_start=row.position_start,
        position_end=row.position_end,
        matched_source=row.matched_source,
        source_url=row.source_url,
        source_database=SourceKind(row.source_database),
        similarity_score=row.similarity_score,
        classification=MatchClassification(row.classification),
        confidence=row.confidence,
        created_at=row.created_at,
    )


def scan_to_record(row: OriginalityScan, matches: list[SimilarityMatch]) -> ScanRecord:
    return ScanRecord(
        id=str(row.id),
        subject_id=row.subject_id,
        owner_id=row.owner_id,
        content_hash=row.content_hash,
        status=ScanStatus(row.status),
        overall_score=row.overall_score,
        classification=ScanClassification(row.classification),
        error_message=row.error_message,
        scanned_content=row.scanned_content,
        words_scanned=row.words_scanned or 0,
        match_count=row.match_count or 0,
        scanned_at=row.scanned_at,
        completed_at=row.completed_at,
        matches=[match_to_record(m) for m in matches],
    )


def _column_value(value):
    return value.value if hasattr(value, "value") else value


class SqlResultStore:
    """``ResultStore`` over PostgreSQL; one short-lived session per call."""

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def _load(self, session: AsyncSession, row: OriginalityScan) -> ScanRecord:
        matches = await MatchRepository(session).list_by_scan(str(row.id))
        return scan_to_record(row, matches)

    async def create_scan(self, scan: ScanRecord) -> ScanRecord:
        async with self.session_maker() as session:
            row = await ScanRepository(session).create(
                id=scan.id,
                subject_id=scan.subject_id,
                owner_id=scan.owner_id,
                content_hash=scan.content_hash,
                status=scan.status.value,
                overall_score=scan.overall_score,
                classification=scan.classification.value,
                error_message=scan.error_message,
                scanned_content=scan.scanned_content,
                words_scanned=scan.words_scanned,
                match_count=scan.match_count,
                scanned_at=scan.scanned_at,
                completed_at=scan.completed_at,
            )
            return scan_to_record(row, [])

    async def get_scan(self, scan_id: str) -> Optional[ScanRecord]:
        async with self.session_maker() as session:
            row = await ScanRepository(session).get_by_id(scan_id)
            return await self._load(session, row) if row else None

    async def update_scan(self, scan_id: str, **fields) -> ScanRecord:
        async with self.session_maker() as session:
            repo = ScanRepository(session)
            row = await repo.get_by_id(scan_id)
            if row is None:
                raise ScanNotFoundError(f"Scan {scan_id} not found")
            current = await self._load(session, row)
            check_update_fields(current, fields)

            # Validate the resulting record before it is written
            data = current.model_dump()
            data.update(fields)
            ScanRecord.model_validate(data)

            row = await repo.update(scan_id, **{k: _column_value(v) for k, v in fields.items()})
            return await self._load(session, row)

    async def find_completed_by_owner_hash(self, owner_id: str, content_hash: str) -> Optional[ScanRecord]:
        async with self.session_maker() as session:
            row = await ScanRepository(session).find_completed_by_owner_hash(owner_id, content_hash)
            return await self._load(session, row) if row else None

    async def list_scans_by_subject(self, subject_id: str, owner_id: str) -> list[ScanRecord]:
        async with self.session_maker() as session:
            rows = await ScanRepository(session).list_by_subject(subject_id, owner_id)
            return [await self._load(session, row) for row in rows]

    async def create_match(self, match: MatchRecord) -> MatchRecord:
        async with self.session_maker() as session:
            row = await ScanRepository(session).get_by_id(match.scan_id)
            check_accepts_matches(scan_to_record(row, []) if row else None, match.scan_id)
            created = await MatchRepository(session).create(
                id=match.id,
                scan_id=match.scan_id,
                sentence_text=match.sentence_text,
                position_start=match.position_start,
                position_end=match.position_end,
                matched_source=match.matched_source,
                source_url=match.source_url,
                source_database=match.source_database.value,
                similarity_score=match.similarity_score,
                classification=match.classification.value,
                confidence=match.confidence,
                created_at=match.created_at,
            )
            return match_to_record(created)

    async def list_matches(self, scan_id: str) -> list[MatchRecord]:
        async with self.session_maker() as session:
            return [match_to_record(m) for m in await MatchRepository(session).list_by_scan(scan_id)]

    async def delete_matches(self, scan_id: str) -> int:
        async with self.session_maker() as session:
            row = await ScanRepository(session).get_by_id(scan_id)
            if row is not None:
                # Terminal scans keep their matches
                check_accepts_matches(scan_to_record(row, []), scan_id)
            return await MatchRepository(session).delete_by_scan(scan_id)
