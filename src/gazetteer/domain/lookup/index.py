"""In-memory lookup index answering name and URL-segment queries.

Readers take the current :class:`IndexSnapshot` reference and never lock;
rebuilds and per-place patches construct a new snapshot and swap it in with a
single attribute assignment. Patch writers serialize among themselves.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gazetteer.domain.errors import IndexUnavailable, StaleIndexRead
from gazetteer.domain.model import utcnow
from gazetteer.domain.normalize import normalize_text, to_slug

from .snapshot import IndexSnapshot, rank_key

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime, timedelta

    from gazetteer.domain.model import PlaceId

    from .snapshot import IndexedPlace
    from .source import IndexSource


log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class IndexStats:
    place_count: int
    name_count: int
    slug_count: int
    last_build_duration_ms: float
    generation: int
    built_at: datetime | None
    stale_reads: int


class LookupIndex:
    """Owned lookup index with an explicit build/swap lifecycle."""

    def __init__(
        self,
        source: IndexSource,
        *,
        freshness_bound: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.source = source
        self.freshness_bound = freshness_bound
        self._clock = clock
        self._snapshot: IndexSnapshot | None = None
        self._write_lock = threading.Lock()
        self._metrics_lock = threading.Lock()
        self._stale_reads = 0

    @property
    def is_built(self) -> bool:
        return self._snapshot is not None

    def rebuild(self, source: IndexSource | None = None) -> IndexStats:
        """Full scan of the store; the previous snapshot survives a failed build."""

        selected = source or self.source
        started = time.perf_counter()
        with self._write_lock:
            try:
                entries = selected.load_entries()
            except Exception:
                log.warning("Index rebuild failed; keeping previous snapshot", exc_info=True)
                raise
            previous = self._snapshot
            snapshot = IndexSnapshot.from_entries(
                entries,
                generation=(previous.generation + 1) if previous else 1,
                built_at=self._clock(),
                build_duration_ms=(time.perf_counter() - started) * 1000.0,
            )
            self._snapshot = snapshot
        log.info(
            "Built lookup index generation %s: %s places, %s names in %.1f ms",
            snapshot.generation,
            len(snapshot.entries),
            len(snapshot.by_normalized),
            snapshot.build_duration_ms,
        )
        return self.stats()

    def update_place(self, place_id: PlaceId) -> None:
        """Re-read one place and patch only the keys it held or now holds."""

        with self._write_lock:
            current = self._require_snapshot()
            entry = self.source.load_entry(place_id)
            self._snapshot = current.patched(place_id, entry, patched_at=self._clock())
        log.debug("Patched lookup index for place %s", place_id)

    def remove_place(self, place_id: PlaceId) -> None:
        with self._write_lock:
            current = self._require_snapshot()
            if place_id not in current.entries:
                return
            self._snapshot = current.patched(place_id, None, patched_at=self._clock())
        log.debug("Removed place %s from lookup index", place_id)

    def lookup_by_normalized(self, text: str) -> tuple[IndexedPlace, ...]:
        snapshot = self._read_snapshot()
        key = normalize_text(text)
        if key is None:
            return ()
        return snapshot.by_normalized.get(key, ())

    def lookup_by_slug(self, segment: str) -> tuple[IndexedPlace, ...]:
        snapshot = self._read_snapshot()
        key = to_slug(segment)
        if not key:
            return ()
        return snapshot.by_slug.get(key, ())

    def find_all(self, text: str) -> tuple[IndexedPlace, ...]:
        """Every place ``text`` could refer to, best candidate first."""

        return self.lookup_by_normalized(text)

    def find_best(self, text: str, *, country_code: str | None = None) -> IndexedPlace | None:
        snapshot = self._read_snapshot()
        key = normalize_text(text)
        if key is None:
            return None
        candidates = snapshot.by_normalized.get(key, ())
        if country_code is not None:
            wanted = country_code.strip().upper()
            candidates = tuple(item for item in candidates if item.country_code == wanted)
        if not candidates:
            return None
        alias_targets = snapshot.alias_by_normalized.get(key, frozenset())
        alias_hits = [item for item in candidates if item.place_id in alias_targets]
        if alias_hits:
            return min(alias_hits, key=rank_key)
        return min(candidates, key=rank_key)

    def stats(self) -> IndexStats:
        snapshot = self._snapshot
        with self._metrics_lock:
            stale_reads = self._stale_reads
        if snapshot is None:
            return IndexStats(
                place_count=0,
                name_count=0,
                slug_count=0,
                last_build_duration_ms=0.0,
                generation=0,
                built_at=None,
                stale_reads=stale_reads,
            )
        return IndexStats(
            place_count=len(snapshot.entries),
            name_count=len(snapshot.by_normalized),
            slug_count=len(snapshot.by_slug),
            last_build_duration_ms=snapshot.build_duration_ms,
            generation=snapshot.generation,
            built_at=snapshot.built_at,
            stale_reads=stale_reads,
        )

    def assert_fresh(self) -> None:
        """Raise :class:`StaleIndexRead` if the snapshot exceeds the freshness bound."""

        snapshot = self._require_snapshot()
        if self.freshness_bound is None:
            return
        age = self._clock() - snapshot.built_at
        if age > self.freshness_bound:
            raise StaleIndexRead(age, self.freshness_bound)

    def _require_snapshot(self) -> IndexSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise IndexUnavailable("Lookup index has not been built yet")
        return snapshot

    def _read_snapshot(self) -> IndexSnapshot:
        snapshot = self._require_snapshot()
        if self.freshness_bound is not None:
            age = self._clock() - snapshot.built_at
            if age > self.freshness_bound:
                with self._metrics_lock:
                    self._stale_reads += 1
                log.debug("Stale index read: snapshot is %s old", age)
        return snapshot
