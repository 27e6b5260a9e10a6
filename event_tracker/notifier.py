"""Delivery of report embeds to a Discord channel."""

from __future__ import annotations

import logging

import discord

from .config import ShadowConfig
from .errors import DeliveryError

log = logging.getLogger(__name__)


async def resolve_channel(
    bot: discord.Client, channel_id: int
) -> discord.abc.Messageable | None:
    """Return a messageable channel from the cache, falling back to a REST fetch."""
    channel = bot.get_channel(channel_id)
    if channel is None:
        try:
            channel = await bot.fetch_channel(channel_id)
        except discord.NotFound:
            log.warning("Channel %s not found", channel_id)
            return None
        except discord.Forbidden:
            log.warning("No access to channel %s – check bot permissions", channel_id)
            return None
        except discord.HTTPException as exc:
            log.warning("Cannot fetch channel %s – HTTP error: %s", channel_id, exc)
            return None
    if not isinstance(channel, discord.abc.Messageable):
        log.warning("Channel ID %s is not a text channel", channel_id)
        return None
    return channel


class ChannelNotifier:
    """Send embeds to the report channel, or to the shadow channel in shadow mode."""

    def __init__(self, bot: discord.Client, channel_id: int, shadow: ShadowConfig) -> None:
        self._bot = bot
        self._channel_id = channel_id
        self._shadow = shadow

    @property
    def shadow_enabled(self) -> bool:
        return self._shadow.enabled

    async def send(self, embed: discord.Embed) -> None:
        if self._shadow.enabled:
            await self._send_shadow(embed)
            return

        channel = await resolve_channel(self._bot, self._channel_id)
        if channel is None:
            raise DeliveryError(f"Report channel {self._channel_id} is unavailable")
        try:
            await channel.send(embed=embed)
        except discord.DiscordException as exc:
            raise DeliveryError(f"Failed to send report to {self._channel_id}: {exc}") from exc

    async def _send_shadow(self, embed: discord.Embed) -> None:
        message = f"[event-tracker] would send report: {embed.title}"
        if self._shadow.channel_id is None:
            log.info("[SHADOW] %s", message)
            return
        channel = await resolve_channel(self._bot, self._shadow.channel_id)
        if channel is None:
            log.info("[SHADOW] %s", message)
            return
        try:
            await channel.send(content=message, embeds=[embed])
        except discord.DiscordException as exc:  # pragma: no cover - network failure
            log.warning(
                "Failed to send shadow report to channel %s: %s", self._shadow.channel_id, exc
            )
