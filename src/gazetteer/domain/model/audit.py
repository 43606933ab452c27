"""Audit and review records: merges, the manual review queue, ingestion runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import IngestionStatus, MergeReason, ReviewStatus
from .primitives import utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import ReviewKind
    from .primitives import PlaceId


@dataclass(eq=False, kw_only=True)
class PlaceMerge:
    """Audit record for folding a duplicate place into the surviving one."""

    kept_id: PlaceId
    removed_id: PlaceId
    reason: MergeReason = MergeReason.MANUAL
    created_at: datetime = field(default_factory=utcnow)
    created_by: str | None = None
    id: int | None = None


@dataclass(eq=False, kw_only=True)
class ReviewItem:
    """A decision parked for a human, such as an identifier conflict or a weak match."""

    kind: ReviewKind
    place_id: PlaceId
    other_place_id: PlaceId | None = None
    source: str | None = None
    external_id: str | None = None
    detail: str | None = None
    status: ReviewStatus = ReviewStatus.OPEN
    created_at: datetime = field(default_factory=utcnow)
    resolved_at: datetime | None = None
    id: int | None = None

    def resolve(self) -> None:
        self.status = ReviewStatus.RESOLVED
        self.resolved_at = utcnow()


@dataclass(eq=False, kw_only=True)
class IngestionRun:
    source: str
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    status: IngestionStatus = IngestionStatus.RUNNING
    processed: int = 0
    created: int = 0
    matched: int = 0
    weak_matched: int = 0
    conflicts: int = 0
    skipped: int = 0
    error_message: str | None = None
    id: int | None = None

    def complete(self) -> None:
        self.status = IngestionStatus.COMPLETED
        self.completed_at = utcnow()

    def fail(self, message: str) -> None:
        self.status = IngestionStatus.FAILED
        self.error_message = message
        self.completed_at = utcnow()
