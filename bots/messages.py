"""Posting and in-place editing of the swap list messages."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import discord
from discord.abc import Messageable

from swap_bot.formatting import RemainingView, split_message
from swap_bot.models import PostedMessages

log = logging.getLogger(__name__)


def chunk_blocks(blocks: Sequence[str]) -> list[str]:
    return [chunk for block in blocks for chunk in split_message(block)]


class DistributionMessenger:
    def __init__(self, bot: discord.Client) -> None:
        self._bot = bot

    async def resolve_channel(self, channel_id: int | None) -> Messageable | None:
        if not channel_id:
            return None
        channel = self._bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self._bot.fetch_channel(channel_id)
            except discord.DiscordException as exc:
                log.warning("Unable to fetch channel %s: %s", channel_id, exc)
                return None
        if not isinstance(channel, Messageable):
            log.warning("Channel %s cannot receive messages", channel_id)
            return None
        return channel

    async def _sync(
        self, channel: Messageable, message_ids: list[int], chunks: list[str]
    ) -> list[int] | None:
        """Edit tracked messages to match ``chunks``.

        Extra chunks are sent as new messages and surplus messages deleted.
        Returns ``None`` when a tracked message no longer exists.
        """
        ids: list[int] = []
        try:
            for message_id, chunk in zip(message_ids, chunks):
                message = await channel.fetch_message(message_id)
                await message.edit(content=chunk)
                ids.append(message_id)
            for chunk in chunks[len(message_ids) :]:
                sent = await channel.send(chunk)
                ids.append(sent.id)
            for message_id in message_ids[len(chunks) :]:
                message = await channel.fetch_message(message_id)
                await message.delete()
        except discord.NotFound:
            log.info("Tracked message is gone; dropping the stale references")
            return None
        return ids

    async def publish(
        self,
        channel: Messageable,
        blocks: Sequence[str],
        messages: PostedMessages,
    ) -> list[int]:
        """Post the swap list, reusing the tracked messages when possible."""
        chunks = chunk_blocks(blocks)
        channel_id = getattr(channel, "id", None)
        if messages.message_ids and messages.channel_id == channel_id:
            ids = await self._sync(channel, messages.message_ids, chunks)
            if ids is not None:
                messages.message_ids = ids
                return ids

        ids = []
        for chunk in chunks:
            sent = await channel.send(chunk)
            ids.append(sent.id)
        messages.channel_id = channel_id
        messages.message_ids = ids
        log.info("Posted swap list as %s message(s) in %s", len(ids), channel_id)
        return ids

    async def update(self, blocks: Sequence[str], messages: PostedMessages) -> bool:
        """Edit the tracked swap list; ``False`` when there is nothing to edit."""
        if not messages.message_ids:
            return False
        channel = await self.resolve_channel(messages.channel_id)
        if channel is None:
            messages.clear_distribution()
            return False
        ids = await self._sync(channel, messages.message_ids, chunk_blocks(blocks))
        if ids is None:
            messages.clear_distribution()
            return False
        messages.message_ids = ids
        return True

    async def publish_remaining(
        self,
        channel: Messageable,
        view: RemainingView,
        messages: PostedMessages,
    ) -> list[int]:
        """Post a new swaps-left view and pin its membership."""
        ids = []
        for chunk in split_message(view.text):
            sent = await channel.send(chunk)
            ids.append(sent.id)
        messages.remaining_channel_id = getattr(channel, "id", None)
        messages.remaining_message_ids = ids
        messages.pinned_remaining = list(view.players)
        log.info("Posted swaps-left view as %s message(s)", len(ids))
        return ids

    async def update_remaining(
        self, view: RemainingView, messages: PostedMessages
    ) -> bool:
        if not messages.remaining_message_ids:
            return False
        channel = await self.resolve_channel(messages.remaining_channel_id)
        if channel is None:
            messages.clear_remaining()
            return False
        ids = await self._sync(
            channel, messages.remaining_message_ids, split_message(view.text)
        )
        if ids is None:
            messages.clear_remaining()
            return False
        messages.remaining_message_ids = ids
        return True


__all__ = ["DistributionMessenger", "chunk_blocks"]
