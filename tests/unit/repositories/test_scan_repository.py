"""Tests for scan repositories and the SQL result store, with mocked sessions."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from originality.core.exceptions import DatabaseError, ScanNotFoundError, ScanNotProcessingError
from originality.database.models import OriginalityScan, SimilarityMatch
from originality.repositories.scan_repository import (
    MatchRepository,
    ScanRepository,
    SqlResultStore,
    match_to_record,
    scan_to_record,
)
from originality.schemas.scan import (
    MatchClassification,
    MatchRecord,
    ScanClassification,
    ScanStatus,
    SourceKind,
)

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def _make_scan_row(status: str = "processing") -> OriginalityScan:
    return OriginalityScan(
        id="11111111-1111-1111-1111-111111111111",
        subject_id="doc-1",
        owner_id="owner-1",
        content_hash="a" * 64,
        status=status,
        overall_score=0.0,
        classification="safe",
        scanned_at=NOW,
    )


def _make_match_row() -> SimilarityMatch:
    return SimilarityMatch(
        id="22222222-2222-2222-2222-222222222222",
        scan_id="11111111-1111-1111-1111-111111111111",
        sentence_text="A flagged sentence.",
        position_start=10,
        position_end=29,
        matched_source="Biology 101",
        source_url="https://example.org",
        source_database="journal",
        similarity_score=82.5,
        classification="needs_citation",
        confidence=70.0,
        created_at=NOW,
    )


class _SessionContext:
    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc):
        return False


def _make_session_maker(session) -> MagicMock:
    return MagicMock(side_effect=lambda: _SessionContext(session))


def _result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalars.return_value.all.return_value = value if isinstance(value, list) else []
    return result


class TestConverters:
    """ORM rows to pipeline records."""

    def test_match_to_record(self):
        record = match_to_record(_make_match_row())

        assert record.source_database == SourceKind.JOURNAL
        assert record.classification == MatchClassification.NEEDS_CITATION
        assert record.span_length == 19

    def test_scan_to_record(self):
        record = scan_to_record(_make_scan_row(), [_make_match_row()])

        assert record.status == ScanStatus.PROCESSING
        assert record.classification == ScanClassification.SAFE
        assert len(record.matches) == 1
        assert (record.words_scanned, record.match_count) == (0, 0)

    def test_scan_to_record_keeps_scanned_content(self):
        row = _make_scan_row(status="completed")
        row.scanned_content = "A flagged sentence. Another one."
        row.words_scanned = 5
        row.match_count = 1

        record = scan_to_record(row, [_make_match_row()])

        assert record.scanned_content[0:19] == "A flagged sentence."
        assert (record.words_scanned, record.match_count) == (5, 1)


class TestRepositoryErrors:
    """SQLAlchemy failures surface as DatabaseError."""

    async def test_lookup_failure(self):
        session = AsyncMock()
        session.execute.side_effect = SQLAlchemyError("connection reset")

        with pytest.raises(DatabaseError):
            await ScanRepository(session).find_completed_by_owner_hash("owner-1", "hash")

    async def test_delete_failure_rolls_back(self):
        session = AsyncMock()
        session.execute.side_effect = SQLAlchemyError("deadlock")

        with pytest.raises(DatabaseError):
            await MatchRepository(session).delete_by_scan("scan-1")

        session.rollback.assert_awaited_once()


class TestSqlResultStore:
    """Lifecycle checks applied before writes."""

    def setup_method(self):
        self.session = AsyncMock()
        self.session.add = MagicMock()
        self.store = SqlResultStore(_make_session_maker(self.session))

    async def test_get_missing_scan(self):
        self.session.execute.return_value = _result(None)

        assert await self.store.get_scan("missing") is None

    async def test_update_missing_scan(self):
        self.session.execute.return_value = _result(None)

        with pytest.raises(ScanNotFoundError):
            await self.store.update_scan("missing", status=ScanStatus.PROCESSING)

    async def test_match_rejected_for_completed_scan(self):
        self.session.execute.return_value = _result(_make_scan_row(status="completed"))
        match = MatchRecord(
            scan_id="11111111-1111-1111-1111-111111111111",
            sentence_text="A flagged sentence.",
            position_start=0,
            position_end=19,
            matched_source="Biology 101",
            similarity_score=80.0,
            classification=MatchClassification.NEEDS_CITATION,
            confidence=60.0,
        )

        with pytest.raises(ScanNotProcessingError):
            await self.store.create_match(match)

        self.session.add.assert_not_called()
