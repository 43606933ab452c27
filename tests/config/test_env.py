from __future__ import annotations

import pytest

from gazetteer.config import (
    ConfigurationError,
    MissingConfigurationError,
    optional_env_bool,
    optional_env_float,
    require_env_var,
    require_env_vars,
)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GAZETTEER_EXAMPLE", " value ")

    assert require_env_vars(["GAZETTEER_EXAMPLE"]) == {"GAZETTEER_EXAMPLE": "value"}


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GAZETTEER_B", raising=False)
    monkeypatch.setenv("GAZETTEER_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["GAZETTEER_B", "GAZETTEER_A"])

    assert exc.value.names == ("GAZETTEER_A", "GAZETTEER_B")
    assert "GAZETTEER_B" in str(exc.value)


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GAZETTEER_EXAMPLE", "")

    with pytest.raises(MissingConfigurationError):
        require_env_var("GAZETTEER_EXAMPLE")


def test_optional_env_float(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GAZETTEER_NUMBER", raising=False)
    assert optional_env_float("GAZETTEER_NUMBER") is None

    monkeypatch.setenv("GAZETTEER_NUMBER", "2.5")
    assert optional_env_float("GAZETTEER_NUMBER", positive=True) == 2.5

    monkeypatch.setenv("GAZETTEER_NUMBER", "-1")
    with pytest.raises(ConfigurationError) as exc:
        optional_env_float("GAZETTEER_NUMBER", positive=True)
    assert exc.value.setting == "GAZETTEER_NUMBER"

    monkeypatch.setenv("GAZETTEER_NUMBER", "soon")
    with pytest.raises(ConfigurationError):
        optional_env_float("GAZETTEER_NUMBER")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1", True), ("Yes", True), ("on", True), ("false", False), ("OFF", False), ("", None)],
)
def test_optional_env_bool(
    monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool | None
) -> None:
    monkeypatch.setenv("GAZETTEER_FLAG", raw)

    assert optional_env_bool("GAZETTEER_FLAG") is expected


def test_optional_env_bool_rejects_other_words(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GAZETTEER_FLAG", "maybe")

    with pytest.raises(ConfigurationError):
        optional_env_bool("GAZETTEER_FLAG")
