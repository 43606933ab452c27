"""External identifiers cross-referencing a place in a provider's id scheme.

``(source, external_id)`` is globally unique and a place holds at most one
identifier per source. Reconciliation tries identifiers in
:data:`IDENTIFIER_PRIORITY` order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from gazetteer.domain.model.enums import Provider
from gazetteer.domain.model.primitives import utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from gazetteer.domain.model.primitives import PlaceId


type Source = str | Provider

# cross-knowledge-graph id, primary-provider id, map-data id
IDENTIFIER_PRIORITY: Final[tuple[Provider, ...]] = (
    Provider.WIKIDATA,
    Provider.GEONAMES,
    Provider.OSM,
)


def identifier_rank(source: Source) -> int:
    """Position of ``source`` in the identifier priority; unranked sources sort last."""

    try:
        return IDENTIFIER_PRIORITY.index(Provider(source))
    except ValueError:
        return len(IDENTIFIER_PRIORITY)


@dataclass(eq=False, kw_only=True)
class ExternalIdentifier:
    place_id: PlaceId
    source: Source
    external_id: str
    id: int | None = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, str]:
        return (str(self.source), self.external_id)
