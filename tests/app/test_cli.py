from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from gazetteer.ui import cli

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def database_args(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> list[str]:
    monkeypatch.delenv("GAZETTEER_TRUST_FILE", raising=False)
    return ["--database-uri", f"sqlite+pysqlite:///{tmp_path / 'cli.db'}"]


def _exit_code(argv: list[str]) -> int | str | None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    return excinfo.value.code


def _write_records(path: Path) -> Path:
    records = [
        {
            "names": ["Birmingham"],
            "country": "GB",
            "identifiers": {"geonames": 2655603},
            "attributes": {"population": 1144900},
        },
        {
            "names": ["Birmingham"],
            "country": "US",
            "identifiers": {"geonames": 4049979},
            "attributes": {"population": 200733},
        },
    ]
    lines = [json.dumps(record) for record in records]
    path.write_text("\n".join([*lines, "", "{broken"]) + "\n", encoding="utf-8")
    return path


def test_ingest_then_lookup(
    tmp_path: Path, database_args: list[str], capsys: pytest.CaptureFixture[str]
) -> None:
    source = _write_records(tmp_path / "places.jsonl")

    assert _exit_code([*database_args, "ingest", str(source), "--source", "geonames"]) == 0
    assert "created=2" in capsys.readouterr().out

    assert _exit_code([*database_args, "lookup", "birmingham"]) == 0
    best = capsys.readouterr().out.strip().split("\t")
    assert best[1] == "Birmingham"
    assert best[3] == "GB"

    assert _exit_code([*database_args, "lookup", "Birmingham", "--country", "US"]) == 0
    assert "\tUS\t" in capsys.readouterr().out

    assert _exit_code([*database_args, "lookup", "Birmingham", "--all"]) == 0
    assert len(capsys.readouterr().out.strip().splitlines()) == 2


def test_lookup_miss_exits_nonzero(database_args: list[str]) -> None:
    assert _exit_code([*database_args, "lookup", "Atlantis"]) == 1


def test_stats_reports_index_size(
    tmp_path: Path, database_args: list[str], capsys: pytest.CaptureFixture[str]
) -> None:
    source = _write_records(tmp_path / "places.jsonl")
    _exit_code([*database_args, "ingest", str(source), "--source", "geonames"])
    capsys.readouterr()

    assert _exit_code([*database_args, "stats"]) == 0
    assert capsys.readouterr().out.startswith("places=2 names=1 ")


def test_alias_and_conflicts(
    tmp_path: Path, database_args: list[str], capsys: pytest.CaptureFixture[str]
) -> None:
    source = _write_records(tmp_path / "places.jsonl")
    _exit_code([*database_args, "ingest", str(source), "--source", "geonames"])
    capsys.readouterr()

    assert _exit_code([*database_args, "alias", "Brum", "1", "--note", "nickname"]) == 0
    assert capsys.readouterr().out.strip() == "'brum' -> 1"
    assert _exit_code([*database_args, "conflicts", "population"]) == 0
    assert capsys.readouterr().out == ""


def test_domain_errors_exit_with_status_two(tmp_path: Path, database_args: list[str]) -> None:
    missing = str(tmp_path / "missing.jsonl")
    assert _exit_code([*database_args, "ingest", missing, "--source", "geonames"]) == 2
    assert _exit_code([*database_args, "merge", "1", "1"]) == 2
    assert _exit_code([*database_args, "pin", "7", "population", "geonames"]) == 2


def test_unknown_command_is_rejected(database_args: list[str]) -> None:
    assert _exit_code([*database_args, "teleport"]) == 2
