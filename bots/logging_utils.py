from __future__ import annotations

import logging
from typing import Final

import discord

log: Final = logging.getLogger("swap-bot")


async def resolve_log_channel(
    bot: discord.Client,
    admin_log_channel_id: int | None,
    guild: discord.Guild,
) -> discord.TextChannel | None:
    """Return the admin log channel or None if unavailable.

    Looks in the guild cache first, then tries a REST fetch as fallback.
    """
    if not admin_log_channel_id:
        return None

    channel = guild.get_channel(admin_log_channel_id)
    if isinstance(channel, discord.TextChannel):
        return channel

    try:
        channel = await bot.fetch_channel(admin_log_channel_id)
    except discord.NotFound:
        log.warning("Channel %s not found", admin_log_channel_id)
        return None
    except discord.Forbidden:
        log.warning(
            "No access to channel %s, check bot permissions",
            admin_log_channel_id,
        )
        return None
    except discord.HTTPException as exc:
        log.warning(
            "Cannot fetch channel %s, HTTP error: %s",
            admin_log_channel_id,
            exc,
        )
        return None

    if not isinstance(channel, discord.TextChannel):
        log.warning("Channel ID %s is not a text channel", admin_log_channel_id)
        return None
    if channel.guild.id != guild.id:
        log.warning(
            "Channel %s belongs to different guild (%s) than expected (%s)",
            admin_log_channel_id,
            channel.guild.id,
            guild.id,
        )
        return None
    return channel


async def post_admin_log(
    bot: discord.Client,
    admin_log_channel_id: int | None,
    guild: discord.Guild | None,
    message: str,
) -> bool:
    """Echo an admin action to the log channel; returns ``True`` when sent."""
    if guild is None:
        return False
    channel = await resolve_log_channel(bot, admin_log_channel_id, guild)
    if channel is None:
        return False
    try:
        await channel.send(message)
    except discord.HTTPException as exc:
        log.warning("Failed to post admin log: %s", exc)
        return False
    return True


__all__ = ["post_admin_log", "resolve_log_channel"]
