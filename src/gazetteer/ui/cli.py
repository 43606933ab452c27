# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from gazetteer.app import Gazetteer
from gazetteer.config import configure_logging
from gazetteer.domain.errors import GazetteerError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from types import FrameType

    from gazetteer.domain.lookup import IndexedPlace

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile and look up places")
    parser.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy URL of the place store (defaults to DATABASE_URI or the data dir)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at debug level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Submit candidate records from a JSONL file")
    ingest.add_argument("path", type=Path, help="JSON Lines file, one candidate per line")
    ingest.add_argument(
        "--source",
        type=str,
        required=True,
        help="Provider the records come from (used when a record names none)",
    )

    lookup = subparsers.add_parser("lookup", help="Resolve a place name")
    lookup.add_argument("text", type=str, help="Name or URL segment to resolve")
    lookup.add_argument("--country", type=str, help="ISO 3166-1 alpha-2 country filter")
    lookup.add_argument(
        "--all",
        action="store_true",
        help="List every place the name could refer to instead of the best one",
    )

    conflicts = subparsers.add_parser("conflicts", help="List places whose sources disagree")
    conflicts.add_argument("attribute", type=str, help="Attribute name, e.g. population")
    conflicts.add_argument(
        "--threshold",
        type=float,
        default=0.1,
        help="Minimum relative disagreement in [0, 1] (default: %(default)s)",
    )

    pin = subparsers.add_parser("pin", help="Pin the preferred source of an attribute")
    pin.add_argument("place_id", type=int)
    pin.add_argument("attribute", type=str)
    pin.add_argument("source", type=str)

    merge = subparsers.add_parser("merge", help="Fold a duplicate place into another")
    merge.add_argument("keep_id", type=int, help="Place that survives")
    merge.add_argument("remove_id", type=int, help="Place that is folded in and deleted")

    alias = subparsers.add_parser("alias", help="Map a string straight to a place")
    alias.add_argument("text", type=str)
    alias.add_argument("place_id", type=int)
    alias.add_argument("--note", type=str, help="Why the alias exists")

    subparsers.add_parser("stats", help="Build the lookup index and report its size")

    return parser.parse_args(list(argv))


def _read_lines(path: Path) -> Iterator[str]:
    with path.open(encoding="utf-8") as handle:
        for line in handle:
            if line.strip():
                yield line


def _describe(place: IndexedPlace) -> str:
    population = "-" if place.population is None else f"{place.population:,}"
    region = "/".join(code for code in (place.country_code, place.adm1_code) if code) or "-"
    return f"{place.place_id}\t{place.name}\t{place.kind}\t{region}\tpopulation={population}"


def _run(gazetteer: Gazetteer, args: argparse.Namespace) -> int:
    command = args.command
    if command == "ingest":
        if not args.path.is_file():
            raise ValueError(f"No such file: {args.path}")
        result = gazetteer.ingest_payloads(_read_lines(args.path), source=args.source)
        for position, error in result.errors:
            log.warning("Line %s skipped: %s", position + 1, error)
        print(
            f"processed={result.processed} created={result.created} matched={result.matched} "
            f"weak={result.weak_matched} conflicts={result.conflicts} skipped={result.skipped}"
        )
        return 0
    if command == "lookup":
        gazetteer.rebuild_index()
        if args.all:
            places = gazetteer.find_all(args.text) or gazetteer.lookup_by_slug(args.text)
            for place in places:
                print(_describe(place))
            return 0 if places else 1
        best = gazetteer.find_best(args.text, country_code=args.country)
        if best is None:
            log.info("No place found for %r", args.text)
            return 1
        print(_describe(best))
        return 0
    if command == "conflicts":
        for conflict in gazetteer.list_conflicts(args.attribute, args.threshold):
            values = ", ".join(f"{record.source}={record.value}" for record in conflict.records)
            print(f"{conflict.place_id}\tspread={conflict.spread:.3f}\t{values}")
        return 0
    if command == "pin":
        record = gazetteer.pin_preferred(args.place_id, args.attribute, args.source)
        print(f"{args.place_id}\t{record.attribute_name}={record.value} ({record.source})")
        return 0
    if command == "merge":
        merged = gazetteer.merge_places(args.keep_id, args.remove_id)
        print(
            f"merged {merged.removed_id} into {merged.kept_id}: names={merged.names_moved} "
            f"identifiers={merged.identifiers_moved} collisions={merged.identifier_collisions}"
        )
        return 0
    if command == "alias":
        mapping = gazetteer.add_alias(args.text, args.place_id, note=args.note)
        print(f"{mapping.normalized_text!r} -> {mapping.place_id}")
        return 0
    if command == "stats":
        stats = gazetteer.rebuild_index()
        print(
            f"places={stats.place_count} names={stats.name_count} slugs={stats.slug_count} "
            f"build_ms={stats.last_build_duration_ms:.1f}"
        )
        return 0
    raise ValueError(f"Unsupported command: {command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else None)

    try:
        gazetteer = Gazetteer.from_environment(database_uri=parsed_args.database_uri)
        status = _run(gazetteer, parsed_args)
    except (GazetteerError, ValueError, LookupError):
        log.exception("Command %s failed", parsed_args.command)
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)
    sys.exit(status)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
