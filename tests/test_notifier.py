"""Tests for event_tracker.notifier."""

from unittest import mock

import discord
import pytest

from event_tracker.config import ShadowConfig
from event_tracker.errors import DeliveryError
from event_tracker.notifier import ChannelNotifier, resolve_channel


class MockBot:
    def __init__(self):
        self.channels = {}
        self.fetch_error = None

    def get_channel(self, channel_id):
        return self.channels.get(channel_id)

    async def fetch_channel(self, channel_id):
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.channels.get(channel_id)


class MockChannel(discord.abc.Messageable):
    def __init__(self, channel_id, send_failure=False):
        self.id = channel_id
        self.send_failure = send_failure
        self.sent_messages = []

    async def send(self, **kwargs):
        if self.send_failure:
            raise discord.HTTPException(mock.Mock(status=500, reason="boom"), "Failed to send")
        self.sent_messages.append(kwargs)
        return mock.Mock()

    async def _get_channel(self):
        return self

    def _get_guild(self):
        return None


def embed() -> discord.Embed:
    return discord.Embed(title="Daily Event Report: Grind")


class TestResolveChannel:
    @pytest.mark.asyncio
    async def test_from_cache(self):
        bot = MockBot()
        channel = MockChannel(1)
        bot.channels[1] = channel
        assert await resolve_channel(bot, 1) is channel

    @pytest.mark.asyncio
    async def test_not_found(self):
        bot = MockBot()
        bot.fetch_error = discord.NotFound(mock.Mock(status=404, reason="nf"), "missing")
        assert await resolve_channel(bot, 5) is None

    @pytest.mark.asyncio
    async def test_forbidden(self):
        bot = MockBot()
        bot.fetch_error = discord.Forbidden(mock.Mock(status=403, reason="no"), "denied")
        assert await resolve_channel(bot, 5) is None

    @pytest.mark.asyncio
    async def test_non_messageable(self):
        bot = MockBot()
        bot.channels[2] = object()
        assert await resolve_channel(bot, 2) is None


class TestChannelNotifier:
    @pytest.mark.asyncio
    async def test_sends_to_report_channel(self):
        bot = MockBot()
        channel = MockChannel(10)
        bot.channels[10] = channel
        notifier = ChannelNotifier(bot, 10, ShadowConfig(enabled=False, channel_id=None))

        await notifier.send(embed())

        assert channel.sent_messages[0]["embed"].title == "Daily Event Report: Grind"
        assert notifier.shadow_enabled is False

    @pytest.mark.asyncio
    async def test_missing_channel_raises_delivery_error(self):
        notifier = ChannelNotifier(MockBot(), 10, ShadowConfig(enabled=False, channel_id=None))
        with pytest.raises(DeliveryError):
            await notifier.send(embed())

    @pytest.mark.asyncio
    async def test_discord_failure_raises_delivery_error(self):
        bot = MockBot()
        bot.channels[10] = MockChannel(10, send_failure=True)
        notifier = ChannelNotifier(bot, 10, ShadowConfig(enabled=False, channel_id=None))
        with pytest.raises(DeliveryError):
            await notifier.send(embed())

    @pytest.mark.asyncio
    async def test_shadow_mode_redirects(self):
        bot = MockBot()
        report_channel = MockChannel(10)
        shadow_channel = MockChannel(20)
        bot.channels.update({10: report_channel, 20: shadow_channel})
        notifier = ChannelNotifier(bot, 10, ShadowConfig(enabled=True, channel_id=20))

        await notifier.send(embed())

        assert report_channel.sent_messages == []
        sent = shadow_channel.sent_messages[0]
        assert "would send report" in sent["content"]
        assert sent["embeds"][0].title == "Daily Event Report: Grind"

    @pytest.mark.asyncio
    async def test_shadow_mode_without_channel_logs(self, caplog):
        bot = MockBot()
        report_channel = MockChannel(10)
        bot.channels[10] = report_channel
        notifier = ChannelNotifier(bot, 10, ShadowConfig(enabled=True, channel_id=None))

        with caplog.at_level("INFO"):
            await notifier.send(embed())

        assert report_channel.sent_messages == []
        assert "[SHADOW]" in caplog.text
