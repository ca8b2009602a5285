#!/usr/bin/env python3
"""Discord bot distributing players across the RGR, OTL and RND clans."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Final, TypeVar

import boto3
import discord
from botocore.exceptions import BotoCoreError, ClientError
from discord import app_commands
from discord.app_commands import errors as app_errors

from bots.config import SwapBotConfig
from bots.logging_utils import post_admin_log
from bots.messages import DistributionMessenger
from swap_bot import (
    CLAN_NAMES,
    BatchOutcome,
    InvalidValueError,
    MissingColumnError,
    RosterError,
    SheetRosterStore,
    StateStorageError,
    SwapSession,
    SwapStateStorage,
    parse_schedule_datetime,
)
from swap_bot.formatting import DoneChoice, split_message

T = TypeVar("T")

# ---------- Environment ----------
CONFIG: Final[SwapBotConfig] = SwapBotConfig.load(strict=False)

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
log = logging.getLogger("swap-bot")

MAX_SELECT_OPTIONS: Final[int] = 25
MAX_SELECTS_PER_VIEW: Final[int] = 5
ADMIN_DENIED_MESSAGE: Final[str] = (
    "You need administrator or swap-admin role to run this command."
)

# ---------- Discord Setup ----------
intents = discord.Intents.default()
intents.guilds = True

bot = discord.Client(intents=intents)
tree = app_commands.CommandTree(bot)
messenger = DistributionMessenger(bot)

GUILD_OBJECT = discord.Object(id=CONFIG.guild_id) if CONFIG.guild_id else None


def swap_command(*args, **kwargs):
    """Register a slash command scoped to the configured guild."""

    def decorator(func):
        command_kwargs = dict(kwargs)
        if (
            GUILD_OBJECT is not None
            and "guild" not in command_kwargs
            and "guilds" not in command_kwargs
        ):
            command_kwargs["guild"] = GUILD_OBJECT
        return tree.command(*args, **command_kwargs)(func)

    return decorator


# ---------- Permission Checks ----------


def is_swap_admin(member: object) -> bool:
    guild_perms = getattr(member, "guild_permissions", None)
    if getattr(guild_perms, "administrator", False):
        return True
    if CONFIG.admin_role_id is None:
        return False
    for role in getattr(member, "roles", None) or []:
        if getattr(role, "id", None) == CONFIG.admin_role_id:
            return True
    return False


def require_swap_admin():
    async def predicate(interaction: discord.Interaction) -> bool:
        if is_swap_admin(interaction.user):
            return True
        raise app_commands.CheckFailure(ADMIN_DENIED_MESSAGE)

    return app_commands.check(predicate)


# ---------- AWS / Sheets Clients ----------
dynamodb = boto3.resource("dynamodb", region_name=CONFIG.aws_region)
table = dynamodb.Table(CONFIG.swap_table_name) if CONFIG.swap_table_name else None
state_storage = SwapStateStorage(table)

roster_store: SheetRosterStore | None = None
sessions: dict[int, SwapSession] = {}
session_lock = asyncio.Lock()
scheduled_posts: dict[int, asyncio.Task] = {}


def get_roster_store() -> SheetRosterStore:
    global roster_store
    if roster_store is None:
        roster_store = SheetRosterStore.connect(
            CONFIG.google_sheet_id,
            CONFIG.service_account_path,
            range_selector=CONFIG.sheet_range,
            mapping_sheet=CONFIG.discord_map_sheet,
            master_source=CONFIG.master_csv_sheet,
            master_target=CONFIG.master_final_sheet,
        )
    return roster_store


async def session_for(guild_id: int) -> SwapSession:
    """Return the guild's session, restoring persisted state on first use."""
    session = sessions.get(guild_id)
    if session is not None:
        return session
    store = await asyncio.to_thread(get_roster_store)
    session = SwapSession(
        guild_id,
        store,
        state_storage,
        capacity=CONFIG.clan_capacity,
        default_metric=CONFIG.sort_metric,
        default_season=CONFIG.season_number,
        sync_master=CONFIG.master_sync_enabled,
    )
    try:
        restored = await asyncio.to_thread(session.load)
    except (ClientError, BotoCoreError, StateStorageError) as exc:
        log.warning("Could not restore swap state for guild %s: %s", guild_id, exc)
        restored = False
    if restored and session.sort_metric:
        try:
            await asyncio.to_thread(session.refresh)
        except RosterError as exc:
            log.warning("Could not refresh roster for guild %s: %s", guild_id, exc)
    sessions[guild_id] = session
    return session


async def in_thread(func: Callable[..., T], *args, **kwargs) -> T:
    return await asyncio.to_thread(func, *args, **kwargs)


# ---------- Presentation Helpers ----------


def ensure_guild(interaction: discord.Interaction) -> discord.Guild:
    guild = interaction.guild
    if guild is None:
        raise RuntimeError("This command can only be used in a server")
    return guild


async def send_ephemeral(interaction: discord.Interaction, message: str) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(message, ephemeral=True)
    else:
        await interaction.response.send_message(message, ephemeral=True)


def describe_batch(outcome: BatchOutcome, heading: str) -> str:
    lines: list[str] = []
    if outcome.succeeded:
        lines.append(f"**{heading}:**")
        lines.extend(f"• {entry.label or entry.query}" for entry in outcome.succeeded)
    if outcome.failed:
        if lines:
            lines.append("")
        lines.append("**Failed:**")
        lines.extend(
            f"• {entry.query} ({entry.error or 'unknown error'})"
            for entry in outcome.failed
        )
    return "\n".join(lines) or "Nothing changed."


def describe_toggles(outcome: BatchOutcome) -> str:
    marked = [entry for entry in outcome.succeeded if entry.now_complete]
    unmarked = [entry for entry in outcome.succeeded if not entry.now_complete]
    lines: list[str] = []
    if marked:
        lines.append("**Marked as done:**")
        lines.extend(f"• {entry.label}" for entry in marked)
    if unmarked:
        if lines:
            lines.append("")
        lines.append("**Unmarked:**")
        lines.extend(f"• {entry.label}" for entry in unmarked)
    return "\n".join(lines) or "Nothing changed."


def build_result_embed(title: str, description: str, *, ok: bool) -> discord.Embed:
    return discord.Embed(
        title=("✅ " if ok else "❌ ") + title,
        description=description[:4096],
        color=discord.Color.green() if ok else discord.Color.red(),
        timestamp=datetime.now(UTC),
    )


def build_summary_embed(
    summary: dict[str, object], *, season: str | None = None
) -> discord.Embed:
    embed = discord.Embed(
        title="📊 Current Distribution",
        color=discord.Color.blurple(),
        timestamp=datetime.now(UTC),
    )
    groups = summary.get("groups", {})
    for clan in CLAN_NAMES:
        count = groups.get(clan, 0) if isinstance(groups, dict) else 0
        embed.add_field(name=f"🏆 {clan}", value=f"{count} players", inline=True)
    embed.add_field(name="📊 Total", value=f"{summary.get('total', 0)} players")
    excluded = summary.get("excluded", 0)
    embed.add_field(name="🚫 Wildcards", value=f"{excluded} players")
    unplaced = summary.get("unplaced", 0)
    if unplaced:
        embed.add_field(
            name="⚠️ Unplaced", value=f"{unplaced} players (all clans full)"
        )
    description = f"Sorted by: **{summary.get('sort_metric')}**"
    if season:
        description += f"\nSeason: **{season}**"
    embed.description = description
    return embed


HELP_SECTIONS: Final[tuple[tuple[str, str], ...]] = (
    (
        "`/swap season metric`",
        "Distribute players by the metric (default Trophies) and post the list.",
    ),
    ("`/hold players`", "Keep players in their clan. Example: `Ahmed, Sara, Ali`"),
    ("`/move players clan`", "Force players into RGR, OTL or RND."),
    ("`/include players`", "Clear a manual action so players are distributed again."),
    ("`/done players action`", "Mark or unmark completed moves."),
    ("`/swapsleft`", "Post or update the list of players that still have to move."),
    ("`/show`", "Show the current distribution summary."),
    ("`/refresh`", "Reload the roster and update posted messages."),
    ("`/reset scope`", "Discard the distribution; `all` also clears manual actions."),
    ("`/map ingame_id discord_user`", "Link an in-game id to a Discord user."),
    ("`/schedule datetime channel`", "Post the distribution later (UTC)."),
    ("`/cancelschedule`", "Cancel the scheduled post."),
    ("`/admin`", "Open the admin panel with quick actions."),
)


def build_help_embed() -> discord.Embed:
    embed = discord.Embed(
        title="📚 Swap Bot Commands",
        description="Separate multiple player names with commas.",
        color=discord.Color.blurple(),
        timestamp=datetime.now(UTC),
    )
    for name, value in HELP_SECTIONS:
        embed.add_field(name=name, value=value, inline=False)
    return embed


def done_select_groups(
    choices: dict[str, list[DoneChoice]],
) -> list[tuple[str, list[DoneChoice]]]:
    """Split per-clan choices into select-sized groups."""
    groups: list[tuple[str, list[DoneChoice]]] = []
    for clan, entries in choices.items():
        unique: list[DoneChoice] = []
        seen: set[str] = set()
        for entry in entries:
            if entry.key in seen:
                continue
            seen.add(entry.key)
            unique.append(entry)
        for start in range(0, len(unique), MAX_SELECT_OPTIONS):
            part = unique[start : start + MAX_SELECT_OPTIONS]
            page = start // MAX_SELECT_OPTIONS + 1
            label = clan if page == 1 else f"{clan} ({page})"
            groups.append((label, part))
    return groups


def done_select_pages(
    groups: Sequence[tuple[str, list[DoneChoice]]],
) -> list[list[tuple[str, list[DoneChoice]]]]:
    """Spread select groups over as many views as Discord allows per message."""
    return [
        list(groups[start : start + MAX_SELECTS_PER_VIEW])
        for start in range(0, len(groups), MAX_SELECTS_PER_VIEW)
    ]


async def sync_posted_messages(session: SwapSession) -> bool:
    """Edit the tracked swap list and swaps-left message, then persist."""
    updated = False
    if session.result is not None and session.messages.message_ids:
        updated = await messenger.update(session.formatted(), session.messages)
    if session.messages.remaining_message_ids:
        await messenger.update_remaining(session.remaining(), session.messages)
    await in_thread(session.persist)
    return updated


async def log_admin_action(guild: discord.Guild | None, message: str) -> None:
    await post_admin_log(bot, CONFIG.admin_log_channel_id, guild, message)


# ---------- Views ----------


class DoneSelect(discord.ui.Select):
    def __init__(self, guild_id: int, label: str, entries: Sequence[DoneChoice]):
        options = [
            discord.SelectOption(
                label=entry.label,
                value=entry.key[:100],
                description=label,
            )
            for entry in entries
        ]
        super().__init__(
            placeholder=f"{label}: toggle done",
            min_values=1,
            max_values=len(options),
            options=options,
        )
        self.guild_id = guild_id

    async def callback(  # pragma: no cover - Discord UI wiring
        self, interaction: discord.Interaction
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        async with session_lock:
            session = await session_for(self.guild_id)
            results = await in_thread(session.toggle_keys, list(self.values))
            await sync_posted_messages(session)
        marked = sum(1 for result in results if result.now_complete)
        await interaction.followup.send(
            f"✅ Marked {marked}, unmarked {len(results) - marked}.", ephemeral=True
        )


class DoneSelectView(discord.ui.View):
    def __init__(
        self, guild_id: int, groups: Sequence[tuple[str, list[DoneChoice]]]
    ) -> None:
        super().__init__(timeout=300)
        for label, entries in groups:
            self.add_item(DoneSelect(guild_id, label, entries))

    async def interaction_check(  # pragma: no cover - Discord UI wiring
        self, interaction: discord.Interaction
    ) -> bool:
        if is_swap_admin(interaction.user):
            return True
        await interaction.response.send_message(ADMIN_DENIED_MESSAGE, ephemeral=True)
        return False


class AdminPanelView(discord.ui.View):
    def __init__(self, guild_id: int) -> None:
        super().__init__(timeout=600)
        self.guild_id = guild_id
        self.message: discord.Message | None = None

    async def interaction_check(  # pragma: no cover - Discord UI wiring
        self, interaction: discord.Interaction
    ) -> bool:
        if is_swap_admin(interaction.user):
            return True
        await interaction.response.send_message(ADMIN_DENIED_MESSAGE, ephemeral=True)
        return False

    async def on_timeout(self) -> None:  # pragma: no cover - UI timeout
        for child in self.children:
            if isinstance(child, discord.ui.Button):
                child.disabled = True
        if self.message is not None:
            try:
                await self.message.edit(view=self)
            except discord.HTTPException:
                log.debug("Admin panel message is no longer editable")

    @discord.ui.button(label="Refresh", emoji="🔄", style=discord.ButtonStyle.primary)
    async def refresh_button(  # type: ignore[override]
        self, interaction: discord.Interaction, _button: discord.ui.Button
    ) -> None:  # pragma: no cover - Discord UI wiring
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            async with session_lock:
                session = await session_for(self.guild_id)
                await in_thread(session.refresh)
                updated = await sync_posted_messages(session)
        except RosterError as exc:
            await interaction.followup.send(f"❌ {exc}", ephemeral=True)
            return
        note = " Swap list updated." if updated else ""
        await interaction.followup.send(
            f"✅ Loaded {len(session.roster)} players.{note}", ephemeral=True
        )

    @discord.ui.button(
        label="Post Swaps Left", emoji="📋", style=discord.ButtonStyle.secondary
    )
    async def swaps_left_button(  # type: ignore[override]
        self, interaction: discord.Interaction, _button: discord.ui.Button
    ) -> None:  # pragma: no cover - Discord UI wiring
        if interaction.channel is None:
            await send_ephemeral(interaction, "No channel to post in.")
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        async with session_lock:
            session = await session_for(self.guild_id)
            view = session.remaining(use_pinned=False)
            await messenger.publish_remaining(
                interaction.channel, view, session.messages
            )
            await in_thread(session.persist)
        await interaction.followup.send(
            f"✅ Posted swaps left ({view.remaining_count}/{view.total_count}).",
            ephemeral=True,
        )

    @discord.ui.button(
        label="Mark Done", emoji="✅", style=discord.ButtonStyle.success
    )
    async def done_button(  # type: ignore[override]
        self, interaction: discord.Interaction, _button: discord.ui.Button
    ) -> None:  # pragma: no cover - Discord UI wiring
        async with session_lock:
            session = await session_for(self.guild_id)
            try:
                pages = done_select_pages(done_select_groups(session.choices()))
            except InvalidValueError as exc:
                await send_ephemeral(interaction, f"❌ {exc}")
                return
        if not pages:
            await send_ephemeral(interaction, "No players in the distribution.")
            return
        first, *rest = pages
        await interaction.response.send_message(
            "Select the players that finished their move:",
            view=DoneSelectView(self.guild_id, first),
            ephemeral=True,
        )
        for index, page in enumerate(rest, start=2):
            await interaction.followup.send(
                f"More players ({index}/{len(pages)}):",
                view=DoneSelectView(self.guild_id, page),
                ephemeral=True,
            )

    @discord.ui.button(
        label="Clear Actions", emoji="🧹", style=discord.ButtonStyle.secondary
    )
    async def clear_actions_button(  # type: ignore[override]
        self, interaction: discord.Interaction, _button: discord.ui.Button
    ) -> None:  # pragma: no cover - Discord UI wiring
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            async with session_lock:
                session = await session_for(self.guild_id)
                cleared = await in_thread(session.store.clear_all_manual_actions)
                await in_thread(session.refresh)
                await sync_posted_messages(session)
        except RosterError as exc:
            await interaction.followup.send(f"❌ {exc}", ephemeral=True)
            return
        await log_admin_action(
            interaction.guild,
            f"🧹 {interaction.user} cleared {cleared} manual actions",
        )
        await interaction.followup.send(
            f"✅ Cleared {cleared} manual action(s).", ephemeral=True
        )

    @discord.ui.button(label="Reset", emoji="🗑️", style=discord.ButtonStyle.danger)
    async def reset_button(  # type: ignore[override]
        self, interaction: discord.Interaction, _button: discord.ui.Button
    ) -> None:  # pragma: no cover - Discord UI wiring
        await interaction.response.defer(ephemeral=True, thinking=True)
        async with session_lock:
            session = await session_for(self.guild_id)
            await in_thread(session.reset, "distribution-only")
        await log_admin_action(
            interaction.guild, f"🗑️ {interaction.user} reset the swap distribution"
        )
        await interaction.followup.send(
            "✅ Distribution reset. The next /swap posts a new list.", ephemeral=True
        )


# ---------- Slash Commands ----------


@app_commands.describe(
    season="Season number shown in the title (defaults to the configured season)",
    metric="Column used for ranking (default Trophies)",
)
@require_swap_admin()
@swap_command(name="swap", description="Distribute players and post the swap list")
async def swap_slash_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    season: str | None = None,
    metric: str | None = None,
) -> None:
    guild = ensure_guild(interaction)
    channel = interaction.channel
    if channel is None:
        await send_ephemeral(interaction, "Run this command in a text channel.")
        return
    await interaction.response.defer(ephemeral=True, thinking=True)
    try:
        async with session_lock:
            session = await session_for(guild.id)
            await in_thread(session.distribute, metric, season)
            await messenger.publish(channel, session.formatted(), session.messages)
            await in_thread(session.persist)
            summary = session.summary()
    except MissingColumnError as exc:
        columns = ", ".join(exc.available) or "none"
        await interaction.followup.send(
            f"❌ {exc}. Available columns: {columns}", ephemeral=True
        )
        return
    except (RosterError, InvalidValueError) as exc:
        await interaction.followup.send(f"❌ {exc}", ephemeral=True)
        return
    await interaction.followup.send(
        embed=build_summary_embed(
            summary, season=session.season_label or CONFIG.season_number
        ),
        ephemeral=True,
    )


async def _run_manual_action(
    interaction: discord.Interaction,
    title: str,
    action: Callable[[SwapSession], BatchOutcome],
) -> None:
    guild = ensure_guild(interaction)
    await interaction.response.defer(ephemeral=True, thinking=True)
    try:
        async with session_lock:
            session = await session_for(guild.id)
            outcome = await in_thread(action, session)
            updated = await sync_posted_messages(session)
    except (RosterError, InvalidValueError) as exc:
        await interaction.followup.send(f"❌ {exc}", ephemeral=True)
        return
    description = describe_batch(outcome, title)
    if updated:
        description += "\n\n_Distribution message updated_"
    await interaction.followup.send(
        embed=build_result_embed(title, description, ok=outcome.changed),
        ephemeral=True,
    )
    if outcome.changed:
        await log_admin_action(
            interaction.guild,
            f"{interaction.user} {title.lower()}: "
            + ", ".join(entry.label or entry.query for entry in outcome.succeeded),
        )


@app_commands.describe(
    players="Comma separated player names or mentions",
    clan="Target clan",
)
@app_commands.choices(
    clan=[app_commands.Choice(name=clan, value=clan) for clan in CLAN_NAMES]
)
@require_swap_admin()
@swap_command(name="move", description="Force players into a clan")
async def move_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    players: str,
    clan: app_commands.Choice[str],
) -> None:
    await _run_manual_action(
        interaction,
        f"Moved to {clan.value}",
        lambda session: session.manual_move(players, clan.value),
    )


@app_commands.describe(players="Comma separated player names or mentions")
@require_swap_admin()
@swap_command(name="hold", description="Keep players in their current clan")
async def hold_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction, players: str
) -> None:
    await _run_manual_action(
        interaction, "Held", lambda session: session.hold(players)
    )


@app_commands.describe(players="Comma separated player names or mentions")
@require_swap_admin()
@swap_command(name="include", description="Return players to the distribution")
async def include_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction, players: str
) -> None:
    await _run_manual_action(
        interaction, "Included", lambda session: session.include(players)
    )


@app_commands.describe(
    players="Comma separated player names or mentions",
    action="Mark as done, unmark, or toggle",
)
@app_commands.choices(
    action=[
        app_commands.Choice(name="Mark as done", value="add"),
        app_commands.Choice(name="Remove done mark", value="remove"),
        app_commands.Choice(name="Toggle", value="toggle"),
    ]
)
@require_swap_admin()
@swap_command(name="done", description="Mark players as having completed their move")
async def done_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    players: str,
    action: app_commands.Choice[str] | None = None,
) -> None:
    guild = ensure_guild(interaction)
    mode = action.value if action is not None else "toggle"
    await interaction.response.defer(ephemeral=True, thinking=True)
    try:
        async with session_lock:
            session = await session_for(guild.id)
            if mode == "add":
                outcome = await in_thread(session.mark_complete, players)
            elif mode == "remove":
                outcome = await in_thread(session.unmark_complete, players)
            else:
                outcome = await in_thread(session.toggle_complete, players)
            updated = await sync_posted_messages(session)
    except InvalidValueError as exc:
        await interaction.followup.send(f"❌ {exc}", ephemeral=True)
        return
    if mode == "toggle":
        description = describe_toggles(outcome)
    else:
        heading = "Marked as done" if mode == "add" else "Unmarked"
        description = describe_batch(outcome, heading)
    if updated:
        description += "\n\n_Distribution message updated_"
    await interaction.followup.send(
        embed=build_result_embed("Players Updated", description, ok=outcome.changed),
        ephemeral=True,
    )


@swap_command(name="show", description="Show the current distribution")
async def show_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
) -> None:
    guild = ensure_guild(interaction)
    await interaction.response.defer(ephemeral=True, thinking=True)
    async with session_lock:
        session = await session_for(guild.id)
        if session.result is None:
            await interaction.followup.send(
                "❌ No distribution yet. Use `/swap` first", ephemeral=True
            )
            return
        summary = session.summary()
        blocks = session.formatted()
    await interaction.followup.send(
        embed=build_summary_embed(summary, season=session.season_label),
        ephemeral=True,
    )
    for block in blocks:
        for chunk in split_message(block):
            await interaction.followup.send(chunk, ephemeral=True)


@require_swap_admin()
@swap_command(name="refresh", description="Reload the roster from Google Sheets")
async def refresh_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
) -> None:
    guild = ensure_guild(interaction)
    await interaction.response.defer(ephemeral=True, thinking=True)
    try:
        async with session_lock:
            session = await session_for(guild.id)
            await in_thread(session.refresh)
            updated = await sync_posted_messages(session)
    except RosterError as exc:
        await interaction.followup.send(f"❌ {exc}", ephemeral=True)
        return
    description = f"Loaded **{len(session.roster)}** players from Google Sheets"
    if updated:
        description += "\n\n_Distribution message updated_"
    await interaction.followup.send(
        embed=build_result_embed("Data Refreshed", description, ok=True),
        ephemeral=True,
    )


@app_commands.describe(scope="What to clear")
@app_commands.choices(
    scope=[
        app_commands.Choice(name="Distribution only", value="distribution-only"),
        app_commands.Choice(name="Everything (also manual actions)", value="all"),
    ]
)
@require_swap_admin()
@swap_command(name="reset", description="Discard the distribution and done marks")
async def reset_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    scope: app_commands.Choice[str] | None = None,
) -> None:
    guild = ensure_guild(interaction)
    value = scope.value if scope is not None else "distribution-only"
    await interaction.response.defer(ephemeral=True, thinking=True)
    try:
        async with session_lock:
            session = await session_for(guild.id)
            cleared = await in_thread(session.reset, value)
    except (RosterError, InvalidValueError) as exc:
        await interaction.followup.send(f"❌ {exc}", ephemeral=True)
        return
    description = "Distribution, done marks and saved messages cleared."
    if value == "all":
        description += f"\nCleared **{cleared}** manual action(s) in the roster."
    description += "\n\n_Next /swap will create a new distribution message_"
    await interaction.followup.send(
        embed=build_result_embed("Reset Complete", description, ok=True),
        ephemeral=True,
    )
    await log_admin_action(
        interaction.guild,
        f"🗑️ {interaction.user} reset the swap session ({value})",
    )


@app_commands.describe(
    new="Post a new message instead of updating the existing one",
    hide_completed="Leave players that already moved out of the list",
)
@require_swap_admin()
@swap_command(name="swapsleft", description="Post the players that still have to move")
async def swaps_left_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    new: bool = False,
    hide_completed: bool = False,
) -> None:
    guild = ensure_guild(interaction)
    channel = interaction.channel
    if channel is None:
        await send_ephemeral(interaction, "Run this command in a text channel.")
        return
    await interaction.response.defer(ephemeral=True, thinking=True)
    async with session_lock:
        session = await session_for(guild.id)
        updated = False
        if not new and session.messages.remaining_message_ids:
            view = session.remaining()
            updated = await messenger.update_remaining(view, session.messages)
        if not updated:
            view = session.remaining(hide_completed=hide_completed, use_pinned=False)
            await messenger.publish_remaining(channel, view, session.messages)
        await in_thread(session.persist)
    state = "updated" if updated else "posted"
    await interaction.followup.send(
        f"✅ Swaps left {state}: {view.remaining_count}/{view.total_count} remaining.",
        ephemeral=True,
    )


@app_commands.describe(
    ingame_id="In-game player id (first column of the Discord map)",
    discord_user="Discord member to link",
)
@require_swap_admin()
@swap_command(name="map", description="Link an in-game id to a Discord user")
async def map_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    ingame_id: str,
    discord_user: discord.User,
) -> None:
    await interaction.response.defer(ephemeral=True, thinking=True)
    try:
        store = await in_thread(get_roster_store)
        updated = await in_thread(
            store.write_discord_mapping, ingame_id, str(discord_user.id)
        )
    except RosterError as exc:
        await interaction.followup.send(
            embed=build_result_embed(
                "Mapping Failed",
                f"Failed to map {ingame_id} to Discord user.\n\n**Error:** {exc}",
                ok=False,
            ),
            ephemeral=True,
        )
        return
    embed = build_result_embed(
        "Discord Mapping " + ("Updated" if updated else "Added"),
        f"Mapped **{ingame_id}** to {discord_user.mention}",
        ok=True,
    )
    embed.add_field(name="In-game ID", value=ingame_id, inline=True)
    embed.add_field(
        name="Discord User", value=f"{discord_user} ({discord_user.id})", inline=True
    )
    await interaction.followup.send(embed=embed, ephemeral=True)


async def run_scheduled_post(
    guild_id: int, channel: discord.abc.Messageable, when: datetime
) -> None:
    """Sleep until ``when``, then redistribute and post the swap list."""
    delay = (when - datetime.now(UTC)).total_seconds()
    if delay > 0:
        await asyncio.sleep(delay)
    try:
        async with session_lock:
            session = await session_for(guild_id)
            await in_thread(session.distribute)
            await messenger.publish(channel, session.formatted(), session.messages)
            await in_thread(session.persist)
        log.info("Scheduled swap list posted for guild %s", guild_id)
    except (RosterError, InvalidValueError, discord.HTTPException) as exc:
        log.exception("Scheduled post failed for guild %s", guild_id)
        try:
            await channel.send(f"❌ Error sending scheduled distribution: {exc}")
        except discord.HTTPException:
            log.warning("Could not report scheduled post failure")
    finally:
        if scheduled_posts.get(guild_id) is asyncio.current_task():
            scheduled_posts.pop(guild_id, None)


@app_commands.describe(
    datetime_text="When to post, in UTC (YYYY-MM-DD HH:MM)",
    channel="Channel that receives the swap list",
)
@app_commands.rename(datetime_text="datetime")
@require_swap_admin()
@swap_command(name="schedule", description="Post the distribution at a later time")
async def schedule_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
    datetime_text: str,
    channel: discord.TextChannel,
) -> None:
    guild = ensure_guild(interaction)
    try:
        when = parse_schedule_datetime(datetime_text)
    except InvalidValueError as exc:
        await send_ephemeral(interaction, f"❌ {exc}")
        return
    previous = scheduled_posts.pop(guild.id, None)
    if previous is not None:
        previous.cancel()
    scheduled_posts[guild.id] = asyncio.create_task(
        run_scheduled_post(guild.id, channel, when)
    )
    await interaction.response.send_message(
        embed=build_result_embed(
            "Distribution Scheduled",
            f"The distribution will be posted in {channel.mention} at "
            f"{discord.utils.format_dt(when)}",
            ok=True,
        ),
        ephemeral=True,
    )


@require_swap_admin()
@swap_command(name="cancelschedule", description="Cancel the scheduled post")
async def cancel_schedule_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
) -> None:
    guild = ensure_guild(interaction)
    task = scheduled_posts.pop(guild.id, None)
    if task is None or task.done():
        await send_ephemeral(interaction, "❌ No scheduled distribution found")
        return
    task.cancel()
    await interaction.response.send_message(
        embed=build_result_embed(
            "Schedule Cancelled",
            "The scheduled distribution has been cancelled",
            ok=True,
        ),
        ephemeral=True,
    )


@swap_command(name="help", description="Show how to use the swap bot")
async def help_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
) -> None:
    await interaction.response.send_message(embed=build_help_embed(), ephemeral=True)


@require_swap_admin()
@swap_command(name="admin", description="Open the swap admin panel")
async def admin_command(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction,
) -> None:
    guild = ensure_guild(interaction)
    view = AdminPanelView(guild.id)
    await interaction.response.send_message(
        "🛠️ **Swap admin panel**", view=view, ephemeral=True
    )
    try:
        view.message = await interaction.original_response()
    except discord.HTTPException:
        view.message = None


@tree.error
async def on_app_command_error(  # pragma: no cover - Discord slash command wiring
    interaction: discord.Interaction, error: app_commands.AppCommandError
) -> None:
    if isinstance(error, (app_errors.MissingPermissions, app_errors.CheckFailure)):
        await send_ephemeral(interaction, ADMIN_DENIED_MESSAGE)
        return
    log.exception("Unhandled command error: %s", error)
    await send_ephemeral(interaction, "An unexpected error occurred.")


# ---------- Lifecycle ----------
@bot.event
async def on_ready() -> None:  # pragma: no cover - Discord lifecycle hook
    if CONFIG.guild_id is not None:
        guild = discord.Object(id=CONFIG.guild_id)
        tree.clear_commands(guild=None)
        await tree.sync(guild=None)
        await tree.sync(guild=guild)
        log.info("Commands synced to guild %s", CONFIG.guild_id)
        try:
            async with session_lock:
                session = await session_for(CONFIG.guild_id)
                if session.result is not None:
                    await sync_posted_messages(session)
        except RosterError as exc:
            log.warning("Roster unavailable at startup: %s", exc)
    else:
        await tree.sync()
        log.info("Commands synced globally")
    log.info("Swap bot ready as %s (%s)", bot.user, bot.user.id)


async def main() -> None:  # pragma: no cover - CLI entry point
    config = SwapBotConfig.load()
    try:
        async with bot:
            await bot.start(config.discord_token)
    finally:
        for task in scheduled_posts.values():
            task.cancel()


if __name__ == "__main__":
    asyncio.run(main())
