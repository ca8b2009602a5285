#!/usr/bin/env python3
"""Delete the persisted swap state so the next /swap posts a fresh list.

By default it performs no writes (dry-run) and only reports what is stored.
Pass ``--execute`` to delete the state items.
"""

from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:  # pragma: no cover - simple environment setup
    sys.path.insert(0, str(ROOT_DIR))

from swap_bot.storage import SwapStateStorage

log = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--table",
        default=os.getenv("SWAP_TABLE_NAME"),
        help="DynamoDB table name that stores swap state (default: SWAP_TABLE_NAME)",
    )
    parser.add_argument(
        "--guild",
        type=int,
        action="append",
        dest="guild_ids",
        help="Guild id to clear (repeat for multiple). Defaults to GUILD_ID",
    )
    parser.add_argument("--profile", help="Optional AWS profile to use")
    parser.add_argument(
        "--region",
        default=os.getenv("AWS_REGION"),
        help="AWS region (defaults to boto3's resolution order)",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Delete the state instead of printing what would be removed",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO), format="%(message)s"
    )


def clear_guild_state(
    storage: SwapStateStorage, guild_id: int, *, dry_run: bool
) -> bool:
    """Report or delete the state of one guild; returns ``True`` if it existed."""
    state = storage.load_state(guild_id)
    if state is None:
        log.info("Guild %s has no saved swap state", guild_id)
        return False
    log.info(
        "Guild %s: metric=%s season=%s completed=%s messages=%s",
        guild_id,
        state.sort_metric,
        state.season_label,
        len(state.completed_identifiers),
        len(state.messages.message_ids),
    )
    if dry_run:
        log.info("Would delete swap state for guild %s", guild_id)
        return True
    storage.delete_state(guild_id)
    log.info("Deleted swap state for guild %s", guild_id)
    return True


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    dry_run = not args.execute

    guild_ids = args.guild_ids or []
    if not guild_ids and os.getenv("GUILD_ID"):
        guild_ids = [int(os.environ["GUILD_ID"])]
    if not args.table:
        raise SystemExit("No DynamoDB table specified (use --table or SWAP_TABLE_NAME)")
    if not guild_ids:
        raise SystemExit("No guild ids provided (use --guild or GUILD_ID)")

    session_kwargs: dict[str, Any] = {}
    if args.profile:
        session_kwargs["profile_name"] = args.profile
    if args.region:
        session_kwargs["region_name"] = args.region
    session = boto3.Session(**session_kwargs)
    storage = SwapStateStorage(session.resource("dynamodb").Table(args.table))

    found = 0
    try:
        for guild_id in guild_ids:
            if clear_guild_state(storage, guild_id, dry_run=dry_run):
                found += 1
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network failure
        log.error("AWS request failed: %s", exc)
        raise SystemExit(2) from exc

    log.info(
        "%s complete. Guilds with state: %s",
        "Dry-run" if dry_run else "Execution",
        found,
    )
    if not dry_run and found:
        log.info("Run /swap in Discord to post a new distribution")


if __name__ == "__main__":
    main()
