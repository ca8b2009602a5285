#!/usr/bin/env python3
"""Print the swap list for a CSV export of the roster sheet.

Useful to check a distribution offline before posting it: the CSV must have
the same header row as the roster sheet. Use ``--discord-map`` to join a CSV
export of the Discord map sheet (player id, Discord name).
"""

from __future__ import annotations

import argparse
import csv
import logging
import pathlib
import sys

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:  # pragma: no cover - simple environment setup
    sys.path.insert(0, str(ROOT_DIR))

from swap_bot.completion import CompletionTracker
from swap_bot.distribution import distribute, summarize
from swap_bot.formatting import format_distribution
from swap_bot.models import DEFAULT_CAPACITY, DEFAULT_METRIC, PlayerRecord
from swap_bot.sheets import records_from_rows, rows_to_fields

log = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("roster", help="CSV export of the roster sheet")
    parser.add_argument("--metric", default=DEFAULT_METRIC, help="Ranking column")
    parser.add_argument("--season", help="Season label for the title")
    parser.add_argument(
        "--capacity", type=int, default=DEFAULT_CAPACITY, help="Players per clan"
    )
    parser.add_argument("--discord-map", help="CSV export of the Discord map sheet")
    parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Only print the per-clan counts",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    return parser.parse_args(argv)


def read_csv(path: str) -> list[list[str]]:
    with open(path, newline="", encoding="utf-8") as handle:
        return [row for row in csv.reader(handle)]


def load_discord_map(path: str | None) -> dict[str, str]:
    if not path:
        return {}
    mapping: dict[str, str] = {}
    for row in read_csv(path)[1:]:
        if len(row) >= 2 and row[0].strip() and row[1].strip():
            mapping[row[0].strip()] = row[1].strip()
    return mapping


def load_records(roster_path: str, map_path: str | None = None) -> list[PlayerRecord]:
    rows = rows_to_fields(read_csv(roster_path))
    return records_from_rows(rows, discord_mapping=load_discord_map(map_path))


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(message)s",
    )
    records = load_records(args.roster, args.discord_map)
    result = distribute(records, args.metric, args.season, capacity=args.capacity)
    summary = summarize(result)
    print(
        "Groups: "
        + ", ".join(f"{clan}={count}" for clan, count in summary["groups"].items())
        + f" | wildcards={summary['excluded']} | unplaced={summary['unplaced']}"
    )
    if args.summary_only:
        return
    for block in format_distribution(result, CompletionTracker()):
        print(block)
        print()


if __name__ == "__main__":
    main()
