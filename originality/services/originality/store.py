"""Lifecycle rules shared by result stores, and the in-memory store."""

import asyncio
from typing import Optional

from originality.core.exceptions import (
    InvalidScanTransitionError,
    ScanNotFoundError,
    ScanNotProcessingError,
)
from originality.schemas.scan import ALLOWED_TRANSITIONS, MatchRecord, ScanRecord, ScanStatus

# Fields of a scan that may change after creation
MUTABLE_SCAN_FIELDS = frozenset(
    {"status", "overall_score", "classification", "error_message", "completed_at", "match_count"}
)


def check_transition(current: ScanStatus, new: ScanStatus) -> None:
    """Raise unless ``current -> new`` is a lifecycle edge. Same-state updates pass."""
    if current == new and not current.is_terminal:
        return
    if new not in ALLOWED_TRANSITIONS[current]:
        raise InvalidScanTransitionError(f"Scan cannot move from {current.value} to {new.value}")


def check_update_fields(scan: ScanRecord, fields: dict) -> None:
    unknown = set(fields) - MUTABLE_SCAN_FIELDS
    if unknown:
        raise ValueError(f"Scan fields cannot be updated: {', '.join(sorted(unknown))}")
    new_status = fields.get("status")
    if new_status is not None:
        check_transition(scan.status, ScanStatus(new_status))
    elif scan.status.is_terminal:
        raise InvalidScanTransitionError(f"Scan {scan.id} is {scan.status.value} and can no longer change")


def check_accepts_matches(scan: Optional[ScanRecord], scan_id: str) -> None:
    if scan is None:
        raise ScanNotFoundError(f"Scan {scan_id} not found")
    if scan.status != ScanStatus.PROCESSING:
        raise ScanNotProcessingError(
            f"Matches can only be added while the scan is processing (scan {scan_id} is {scan.status.value})"
        )


class InMemoryResultStore:
    """Process-local ``ResultStore`` for tests and single-process use.

    Records are copied on the way in and out so callers never hold a live
    reference into the store.
    """

    def __init__(self):
        self._scans: dict[str, ScanRecord] = {}
        self._matches: dict[str, list[MatchRecord]] = {}
        self._lock = asyncio.Lock()

    def _with_matches(self, scan: ScanRecord) -> ScanRecord:
        matches = sorted(self._matches.get(scan.id, []), key=lambda m: (m.position_start, m.position_end))
        return scan.model_copy(update={"matches": list(matches)})

    async def create_scan(self, scan: ScanRecord) -> ScanRecord:
        async with self._lock:
            if scan.id in self._scans:
                raise ValueError(f"Scan {scan.id} already exists")
            stored = scan.model_copy(update={"matches": []})
            self._scans[scan.id] = stored
            self._matches[scan.id] = []
            return self._with_matches(stored)

    async def get_scan(self, scan_id: str) -> Optional[ScanRecord]:
        scan = self._scans.get(scan_id)
        return self._with_matches(scan) if scan else None

    async def update_scan(self, scan_id: str, **fields) -> ScanRecord:
        async with self._lock:
            scan = self._scans.get(scan_id)
            if scan is None:
                raise ScanNotFoundError(f"Scan {scan_id} not found")
            check_update_fields(scan, fields)
            data = scan.model_dump()
            data.update(fields)
            # Re-validate so the failed-score sentinel stays consistent
            updated = ScanRecord.model_validate(data)
            self._scans[scan_id] = updated
            return self._with_matches(updated)

    async def find_completed_by_owner_hash(self, owner_id: str, content_hash: str) -> Optional[ScanRecord]:
        completed = [
            scan
            for scan in self._scans.values()
            if scan.owner_id == owner_id and scan.content_hash == content_hash and scan.status == ScanStatus.COMPLETED
        ]
        if not completed:
            return None
        latest = max(completed, key=lambda s: s.completed_at or s.scanned_at)
        return self._with_matches(latest)

    async def list_scans_by_subject(self, subject_id: str, owner_id: str) -> list[ScanRecord]:
        scans = [s for s in self._scans.values() if s.subject_id == subject_id and s.owner_id == owner_id]
        scans.sort(key=lambda s: s.scanned_at, reverse=True)
        return [self._with_matches(s) for s in scans]

    async def create_match(self, match: MatchRecord) -> MatchRecord:
        async with self._lock:
            check_accepts_matches(self._scans.get(match.scan_id), match.scan_id)
            self._matches[match.scan_id].append(match)
            return match

    async def list_matches(self, scan_id: str) -> list[MatchRecord]:
        return sorted(self._matches.get(scan_id, []), key=lambda m: (m.position_start, m.position_end))

    async def delete_matches(self, scan_id: str) -> int:
        async with self._lock:
            scan = self._scans.get(scan_id)
            if scan is not None:
                # Terminal scans keep their matches
                check_accepts_matches(scan, scan_id)
            removed = len(self._matches.get(scan_id, []))
            self._matches[scan_id] = []
            return removed
