"""Clan swap helpers."""

from .completion import CompletionTracker
from .distribution import distribute
from .identity import PlayerIndex, build_record, completion_key, find_player, identify
from .models import (
    CLAN_NAMES,
    DistributionResult,
    Override,
    PlayerRecord,
    RemainingEntry,
    SwapState,
)
from .session import BatchOutcome, PlayerOutcome, SwapSession
from .sheets import RosterError, RosterRowNotFoundError, SheetRosterStore
from .storage import StateStorageError, SwapStateStorage
from .validation import (
    InvalidClanError,
    InvalidScheduleError,
    InvalidValueError,
    MissingColumnError,
    normalize_clan,
    parse_player_queries,
    parse_schedule_datetime,
)

__all__ = [
    "CLAN_NAMES",
    "CompletionTracker",
    "DistributionResult",
    "Override",
    "PlayerRecord",
    "RemainingEntry",
    "SwapState",
    "distribute",
    "PlayerIndex",
    "build_record",
    "completion_key",
    "find_player",
    "identify",
    "BatchOutcome",
    "PlayerOutcome",
    "SwapSession",
    "RosterError",
    "RosterRowNotFoundError",
    "SheetRosterStore",
    "StateStorageError",
    "SwapStateStorage",
    "InvalidClanError",
    "InvalidScheduleError",
    "InvalidValueError",
    "MissingColumnError",
    "normalize_clan",
    "parse_player_queries",
    "parse_schedule_datetime",
]
