"""Per-key mutual exclusion for reconciliation buckets and attribute keys."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gazetteer.domain.errors import ReconciliationRaceLost

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable, Iterator

type LockKey = tuple[Hashable, ...]

log = logging.getLogger(__name__)


@dataclass(slots=True)
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


@dataclass(slots=True)
class KeyedLocks:
    """Refcounted ``threading.Lock`` per key; entries vanish once unused.

    :meth:`hold` acquires every requested key in a canonical order under one
    deadline, so two callers asking for overlapping key sets cannot deadlock.
    """

    default_timeout: float = 0.05
    _entries: dict[LockKey, _Entry] = field(default_factory=dict[LockKey, _Entry], init=False)
    _guard: threading.Lock = field(default_factory=threading.Lock, init=False)

    @contextmanager
    def hold(self, keys: Iterable[LockKey], *, timeout: float | None = None) -> Iterator[None]:
        ordered = sorted(set(keys), key=repr)
        wait_seconds = self.default_timeout if timeout is None else timeout
        deadline = time.monotonic() + wait_seconds
        acquired: list[LockKey] = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not entry.lock.acquire(timeout=remaining):
                    self._release_entry(key, locked=False)
                    log.debug("Lock deadline exceeded for %r", key)
                    raise ReconciliationRaceLost(
                        f"Lock on {key!r} not acquired within {wait_seconds:.3f}s"
                    )
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._release_entry(key, locked=True)

    def held_keys(self) -> int:
        """Number of keys currently checked out (held or waited on)."""

        with self._guard:
            return len(self._entries)

    def _checkout(self, key: LockKey) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.holders += 1
            return entry

    def _release_entry(self, key: LockKey, *, locked: bool) -> None:
        with self._guard:
            entry = self._entries[key]
            if locked:
                entry.lock.release()
            entry.holders -= 1
            if entry.holders == 0:
                del self._entries[key]
