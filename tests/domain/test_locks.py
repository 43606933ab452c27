from __future__ import annotations

import threading

import pytest

from gazetteer.domain.errors import ReconciliationRaceLost
from gazetteer.domain.locks import KeyedLocks


def test_entries_are_released_after_use() -> None:
    locks = KeyedLocks()

    with locks.hold([("name", "paris", "FR"), ("identifier", "geonames", "1")]):
        assert locks.held_keys() == 2

    assert locks.held_keys() == 0


def test_duplicate_keys_are_acquired_once() -> None:
    locks = KeyedLocks()

    with locks.hold([("name", "paris", "FR"), ("name", "paris", "FR")]):
        assert locks.held_keys() == 1


def test_contended_key_times_out_as_lost_race() -> None:
    locks = KeyedLocks(default_timeout=0.01)
    held = threading.Event()
    release = threading.Event()

    def holder() -> None:
        with locks.hold([("name", "paris", "FR")]):
            held.set()
            release.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert held.wait(timeout=5)
        with pytest.raises(ReconciliationRaceLost), locks.hold([("name", "paris", "FR")]):
            pass
    finally:
        release.set()
        thread.join()

    assert locks.held_keys() == 0


def test_disjoint_keys_do_not_block() -> None:
    locks = KeyedLocks(default_timeout=0.01)
    held = threading.Event()
    release = threading.Event()

    def holder() -> None:
        with locks.hold([("name", "paris", "FR")]):
            held.set()
            release.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert held.wait(timeout=5)
        with locks.hold([("name", "paris", "US")]):
            assert locks.held_keys() == 2
    finally:
        release.set()
        thread.join()


def test_lock_is_released_when_body_raises() -> None:
    locks = KeyedLocks()

    with pytest.raises(RuntimeError), locks.hold([("admin", "country", "FR", "", "")]):
        raise RuntimeError("boom")

    with locks.hold([("admin", "country", "FR", "", "")], timeout=0.01):
        pass
