"""Index sources: where lookup snapshots read reconciled places from."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from gazetteer.domain.normalize import to_slug

from .snapshot import IndexedPlace, PlaceEntry

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from gazetteer.domain.model import AliasMapping, NameVariant, Place, PlaceId
    from gazetteer.domain.ports import GazetteerRepositories, UnitOfWorkFactory


class IndexSource(Protocol):
    def load_entries(self) -> Sequence[PlaceEntry]: ...

    def load_entry(self, place_id: PlaceId) -> PlaceEntry | None: ...


@dataclass(slots=True)
class StoreIndexSource:
    """Reads places, names and aliases from the reconciled store."""

    uow_factory: UnitOfWorkFactory

    def load_entries(self) -> list[PlaceEntry]:
        with self.uow_factory() as uow:
            repos = uow.repositories
            names: defaultdict[PlaceId, list[NameVariant]] = defaultdict(list)
            for name in repos.names.list_all():
                names[name.place_id].append(name)
            aliases: defaultdict[PlaceId, list[AliasMapping]] = defaultdict(list)
            for alias in repos.aliases.list_all():
                aliases[alias.place_id].append(alias)
            places = list(repos.places.list_all())
        entries: list[PlaceEntry] = []
        for place in places:
            place_id = place.require_id()
            entry = build_entry(place, names.get(place_id, ()), aliases.get(place_id, ()))
            if entry is not None:
                entries.append(entry)
        return entries

    def load_entry(self, place_id: PlaceId) -> PlaceEntry | None:
        with self.uow_factory() as uow:
            return load_entry_in(uow.repositories, place_id)


def load_entry_in(repos: GazetteerRepositories, place_id: PlaceId) -> PlaceEntry | None:
    place = repos.places.get(place_id)
    if place is None:
        return None
    return build_entry(
        place,
        repos.names.list_for_place(place_id),
        repos.aliases.list_for_place(place_id),
    )


def build_entry(
    place: Place,
    names: Iterable[NameVariant],
    aliases: Iterable[AliasMapping],
) -> PlaceEntry | None:
    """Index entry for ``place``; ``None`` until it has a canonical name."""

    name_list = list(names)
    canonical = next((name for name in name_list if name.id == place.canonical_name_id), None)
    if place.canonical_name_id is None or canonical is None:
        return None
    alias_list = list(aliases)
    return PlaceEntry(
        place=IndexedPlace(
            place_id=place.require_id(),
            kind=place.kind,
            name=canonical.text,
            slug=canonical.slug,
            country_code=place.country_code,
            adm1_code=place.adm1_code,
            population=place.population,
            latitude=place.latitude,
            longitude=place.longitude,
            timezone=place.timezone,
        ),
        normalized_names=frozenset(name.normalized_text for name in name_list),
        slugs=frozenset(slug for slug in (name.slug for name in name_list) if slug),
        alias_names=frozenset(alias.normalized_text for alias in alias_list),
        alias_slugs=frozenset(slug for slug in (to_slug(a.text) for a in alias_list) if slug),
    )
