from __future__ import annotations

import re

import pytest

from gazetteer.domain.normalize import normalize_text, strip_diacritics, to_slug


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("São Paulo", "sao paulo"),
        ("  Köln  ", "koln"),
        ("Saint-Étienne", "saint etienne"),
        ("L'Aquila", "l aquila"),
        ("St. Louis", "st louis"),
        ("MÜNCHEN", "munchen"),
        ("New   York", "new york"),
    ],
)
def test_normalize_text(raw: str, expected: str) -> None:
    assert normalize_text(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "...", "-'-", None])
def test_normalize_text_returns_none_when_nothing_matchable(raw: str | None) -> None:
    assert normalize_text(raw) is None


def test_hyphen_and_space_forms_share_a_key() -> None:
    assert normalize_text("Stratford-upon-Avon") == normalize_text("stratford upon avon")


def test_strip_diacritics_keeps_base_letters() -> None:
    assert strip_diacritics("Zürich Ångström") == "Zurich Angstrom"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("São Paulo", "sao-paulo"),
        ("Saint-Étienne", "saint-etienne"),
        ("  --New   York!!", "new-york"),
        ("Washington, D.C.", "washington-d-c"),
        ("Straße", "strasse"),
    ],
)
def test_to_slug(raw: str, expected: str) -> None:
    assert to_slug(raw) == expected


@pytest.mark.parametrize(
    "raw", ["São Paulo", "Ōsaka", "'s-Hertogenbosch", "Łódź", "東京", "a--b", "-x-"]
)
def test_to_slug_is_idempotent_and_url_safe(raw: str) -> None:
    slug = to_slug(raw)
    assert to_slug(slug) == slug
    assert re.fullmatch(r"([a-z0-9]+(-[a-z0-9]+)*)?", slug)
