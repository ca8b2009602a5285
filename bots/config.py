"""Configuration helpers for the swap bot runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

REQUIRED_VARS = ("DISCORD_TOKEN", "GOOGLE_SHEET_ID", "SWAP_TABLE_NAME")


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class SwapBotConfig:
    discord_token: str
    google_sheet_id: str
    swap_table_name: str
    guild_id: int | None = None
    sheet_range: str = "Sheet1!A:Z"
    service_account_path: str = "credentials.json"
    discord_map_sheet: str = "DiscordMap"
    master_sync_enabled: bool = False
    master_csv_sheet: str = "Master_CSV"
    master_final_sheet: str = "Master_Final"
    season_number: str = "156"
    sort_metric: str = "Trophies"
    clan_capacity: int = 50
    admin_role_id: int | None = None
    admin_log_channel_id: int | None = None
    aws_region: str = "us-east-1"

    @classmethod
    def load(cls, *, strict: bool = True) -> SwapBotConfig:
        """Read the configuration from the environment.

        With ``strict`` every missing required variable is reported in a
        single ``RuntimeError``; otherwise missing values become empty strings.
        """
        missing: list[str] = []

        def need(name: str) -> str:
            value = os.getenv(name)
            if not value:
                missing.append(name)
                return ""
            return value

        discord_token = need("DISCORD_TOKEN")
        google_sheet_id = need("GOOGLE_SHEET_ID")
        swap_table_name = need("SWAP_TABLE_NAME")

        if missing and strict:
            raise RuntimeError("Missing env vars: " + ", ".join(sorted(set(missing))))

        capacity = env_int("CLAN_CAPACITY", default=50) or 50
        return cls(
            discord_token=discord_token,
            google_sheet_id=google_sheet_id,
            swap_table_name=swap_table_name,
            guild_id=env_int("GUILD_ID"),
            sheet_range=os.getenv("GOOGLE_SHEET_RANGE") or "Sheet1!A:Z",
            service_account_path=(
                os.getenv("GOOGLE_SERVICE_ACCOUNT_PATH") or "credentials.json"
            ),
            discord_map_sheet=os.getenv("DISCORD_MAP_SHEET") or "DiscordMap",
            master_sync_enabled=env_bool("MASTER_SYNC_ENABLED"),
            master_csv_sheet=os.getenv("MASTER_CSV_SHEET_NAME") or "Master_CSV",
            master_final_sheet=os.getenv("MASTER_FINAL_SHEET_NAME") or "Master_Final",
            season_number=(os.getenv("SEASON_NUMBER") or "156").strip(),
            sort_metric=(os.getenv("SORT_METRIC") or "Trophies").strip(),
            clan_capacity=max(capacity, 1),
            admin_role_id=env_int("SWAP_ADMIN_ROLE_ID"),
            admin_log_channel_id=env_int("ADMIN_LOG_CHANNEL_ID"),
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
        )


__all__ = ["REQUIRED_VARS", "SwapBotConfig", "env_bool", "env_int"]
