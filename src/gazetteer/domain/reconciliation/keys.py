"""Bucket keys that serialize reconciliation of overlapping candidates."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gazetteer.domain.model import PlaceKind

if TYPE_CHECKING:
    from gazetteer.domain.candidates import CandidateRecord
    from gazetteer.domain.locks import LockKey


def identifier_key(source: str, external_id: str) -> LockKey:
    return ("identifier", str(source), external_id)


def name_key(normalized_text: str, country_code: str | None) -> LockKey:
    return ("name", normalized_text, country_code or "")


def admin_key(candidate: CandidateRecord) -> LockKey | None:
    if candidate.country_code is None:
        return None
    if candidate.kind == PlaceKind.COUNTRY:
        return ("admin", str(candidate.kind), candidate.country_code, "", "")
    if candidate.kind == PlaceKind.REGION and candidate.adm1_code:
        return (
            "admin",
            str(candidate.kind),
            candidate.country_code,
            candidate.adm1_code,
            candidate.adm2_code or "",
        )
    return None


def bucket_keys(candidate: CandidateRecord) -> list[LockKey]:
    """Every bucket a candidate could match in; held for match-decide-attach."""

    keys: list[LockKey] = [
        identifier_key(str(identifier.source), identifier.external_id)
        for identifier in candidate.identifiers
    ]
    for name in candidate.names:
        normalized = name.normalized_text
        if normalized is not None:
            keys.append(name_key(normalized, candidate.country_code))
    admin = admin_key(candidate)
    if admin is not None:
        keys.append(admin)
    return keys
