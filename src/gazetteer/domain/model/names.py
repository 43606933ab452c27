"""Name variants and manual alias mappings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gazetteer.domain.model.enums import NameKind
from gazetteer.domain.model.primitives import utcnow
from gazetteer.domain.normalize import normalize_text, to_slug

if TYPE_CHECKING:
    from datetime import datetime

    from gazetteer.domain.model.primitives import PlaceId


@dataclass(eq=False, kw_only=True)
class NameVariant:
    """One name form of a place.

    ``normalized_text`` is derived from ``text``; change both through
    :meth:`set_text`.
    """

    place_id: PlaceId
    text: str
    language_code: str | None = None
    name_kind: NameKind = NameKind.OFFICIAL
    is_preferred: bool = False
    source: str | None = None
    id: int | None = None
    created_at: datetime = field(default_factory=utcnow)
    normalized_text: str = field(init=False)

    def __post_init__(self) -> None:
        self.set_text(self.text)

    def set_text(self, text: str) -> None:
        normalized = normalize_text(text)
        if normalized is None:
            raise ValueError(f"Name has no matchable characters: {text!r}")
        self.text = text
        self.normalized_text = normalized

    @property
    def slug(self) -> str:
        return to_slug(self.text)

    @property
    def dedupe_key(self) -> tuple[str, str | None, NameKind]:
        return (self.normalized_text, self.language_code, self.name_kind)


@dataclass(eq=False, kw_only=True)
class AliasMapping:
    """Manual override mapping an arbitrary string straight to a place."""

    text: str
    place_id: PlaceId
    note: str | None = None
    id: int | None = None
    created_at: datetime = field(default_factory=utcnow)
    normalized_text: str = field(init=False)

    def __post_init__(self) -> None:
        normalized = normalize_text(self.text)
        if normalized is None:
            raise ValueError(f"Alias has no matchable characters: {self.text!r}")
        self.normalized_text = normalized
