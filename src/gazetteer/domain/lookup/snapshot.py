"""Immutable lookup snapshot and its building blocks."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from gazetteer.domain.model import CountryCode, PlaceId, PlaceKind


@dataclass(frozen=True, slots=True, kw_only=True)
class IndexedPlace:
    """Read-only view of a place as served to lookup callers."""

    place_id: PlaceId
    kind: PlaceKind
    name: str
    slug: str
    country_code: CountryCode | None = None
    adm1_code: str | None = None
    population: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    timezone: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class PlaceEntry:
    """Everything the index needs about one place: its view and its keys."""

    place: IndexedPlace
    normalized_names: frozenset[str]
    slugs: frozenset[str]
    alias_names: frozenset[str] = frozenset()
    alias_slugs: frozenset[str] = frozenset()


def rank_key(place: IndexedPlace) -> tuple[bool, int, PlaceId]:
    """Population descending with unknown population last, then lowest id."""

    return (place.population is None, -(place.population or 0), place.place_id)


def order_places(
    places: Iterable[IndexedPlace], alias_targets: frozenset[PlaceId]
) -> tuple[IndexedPlace, ...]:
    """Alias targets first, each group ranked by :func:`rank_key`."""

    return tuple(
        sorted(places, key=lambda item: (item.place_id not in alias_targets, *rank_key(item)))
    )


type KeyMap = Mapping[str, tuple[IndexedPlace, ...]]
type TargetMap = Mapping[str, frozenset[PlaceId]]


def _frozen[K, V](mapping: dict[K, V]) -> Mapping[K, V]:
    return MappingProxyType(mapping)


@dataclass(frozen=True, slots=True, kw_only=True)
class IndexSnapshot:
    """Point-in-time index state; never mutated after construction."""

    by_normalized: KeyMap
    by_slug: KeyMap
    alias_by_normalized: TargetMap
    alias_by_slug: TargetMap
    entries: Mapping[PlaceId, PlaceEntry]
    generation: int
    built_at: datetime
    build_duration_ms: float
    patched_at: datetime | None = None

    @classmethod
    def from_entries(
        cls,
        entries: Iterable[PlaceEntry],
        *,
        generation: int,
        built_at: datetime,
        build_duration_ms: float = 0.0,
    ) -> IndexSnapshot:
        by_place: dict[PlaceId, PlaceEntry] = {}
        normalized: dict[str, list[IndexedPlace]] = {}
        slugs: dict[str, list[IndexedPlace]] = {}
        alias_normalized: dict[str, set[PlaceId]] = {}
        alias_slugs: dict[str, set[PlaceId]] = {}

        for entry in entries:
            place = entry.place
            by_place[place.place_id] = entry
            for key in entry.normalized_names | entry.alias_names:
                normalized.setdefault(key, []).append(place)
            for key in entry.slugs | entry.alias_slugs:
                slugs.setdefault(key, []).append(place)
            # aliases index last and override both maps for their exact text
            for key in entry.alias_names:
                alias_normalized.setdefault(key, set()).add(place.place_id)
            for key in entry.alias_slugs:
                alias_slugs.setdefault(key, set()).add(place.place_id)

        frozen_alias_normalized = {key: frozenset(ids) for key, ids in alias_normalized.items()}
        frozen_alias_slugs = {key: frozenset(ids) for key, ids in alias_slugs.items()}
        return cls(
            by_normalized=_frozen(
                {
                    key: order_places(places, frozen_alias_normalized.get(key, frozenset()))
                    for key, places in normalized.items()
                }
            ),
            by_slug=_frozen(
                {
                    key: order_places(places, frozen_alias_slugs.get(key, frozenset()))
                    for key, places in slugs.items()
                }
            ),
            alias_by_normalized=_frozen(frozen_alias_normalized),
            alias_by_slug=_frozen(frozen_alias_slugs),
            entries=_frozen(by_place),
            generation=generation,
            built_at=built_at,
            build_duration_ms=build_duration_ms,
        )

    def patched(
        self,
        place_id: PlaceId,
        entry: PlaceEntry | None,
        *,
        patched_at: datetime,
    ) -> IndexSnapshot:
        """Copy of this snapshot with ``place_id`` replaced by ``entry`` (or dropped).

        Only the keys the place held before or holds now are recomputed.
        """

        previous = self.entries.get(place_id)
        by_normalized = dict(self.by_normalized)
        by_slug = dict(self.by_slug)
        alias_by_normalized = dict(self.alias_by_normalized)
        alias_by_slug = dict(self.alias_by_slug)
        entries = dict(self.entries)

        _patch_aliases(
            alias_by_normalized,
            place_id,
            old=previous.alias_names if previous else frozenset(),
            new=entry.alias_names if entry else frozenset(),
        )
        _patch_aliases(
            alias_by_slug,
            place_id,
            old=previous.alias_slugs if previous else frozenset(),
            new=entry.alias_slugs if entry else frozenset(),
        )
        _patch_keys(
            by_normalized,
            alias_by_normalized,
            place_id,
            old=(previous.normalized_names | previous.alias_names) if previous else frozenset(),
            new=(entry.normalized_names | entry.alias_names) if entry else frozenset(),
            place=entry.place if entry else None,
        )
        _patch_keys(
            by_slug,
            alias_by_slug,
            place_id,
            old=(previous.slugs | previous.alias_slugs) if previous else frozenset(),
            new=(entry.slugs | entry.alias_slugs) if entry else frozenset(),
            place=entry.place if entry else None,
        )
        if entry is None:
            entries.pop(place_id, None)
        else:
            entries[place_id] = entry

        return IndexSnapshot(
            by_normalized=_frozen(by_normalized),
            by_slug=_frozen(by_slug),
            alias_by_normalized=_frozen(alias_by_normalized),
            alias_by_slug=_frozen(alias_by_slug),
            entries=_frozen(entries),
            generation=self.generation + 1,
            built_at=self.built_at,
            build_duration_ms=self.build_duration_ms,
            patched_at=patched_at,
        )


def _patch_aliases(
    targets: dict[str, frozenset[PlaceId]],
    place_id: PlaceId,
    *,
    old: frozenset[str],
    new: frozenset[str],
) -> None:
    for key in old - new:
        remaining = targets.get(key, frozenset()) - {place_id}
        if remaining:
            targets[key] = remaining
        else:
            targets.pop(key, None)
    for key in new - old:
        targets[key] = targets.get(key, frozenset()) | {place_id}


def _patch_keys(
    key_map: dict[str, tuple[IndexedPlace, ...]],
    alias_targets: Mapping[str, frozenset[PlaceId]],
    place_id: PlaceId,
    *,
    old: frozenset[str],
    new: frozenset[str],
    place: IndexedPlace | None,
) -> None:
    for key in old | new:
        others = [item for item in key_map.get(key, ()) if item.place_id != place_id]
        if place is not None and key in new:
            others.append(place)
        if others:
            key_map[key] = order_places(others, alias_targets.get(key, frozenset()))
        else:
            key_map.pop(key, None)
