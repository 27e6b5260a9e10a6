"""Discord runtime that wires the event tracker together."""

from __future__ import annotations

import asyncio
import datetime
import logging

import boto3
import discord
from discord import app_commands

from .commands import handle_text_command, register_commands
from .config import TrackerSettings
from .engine import EventEngine, install_signal_handlers
from .hypixel_api import HypixelFetcher
from .notifier import ChannelNotifier
from .reporting import ReportDispatcher
from .rotation import CredentialRotator
from .snapshots import SnapshotStore
from .storage import DynamoBackend, JsonFileBackend, SnapshotBackend

log = logging.getLogger("event-tracker")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def build_backend(settings: TrackerSettings, *, dynamodb_resource=None) -> SnapshotBackend:
    if settings.storage == "dynamodb":
        dynamodb = dynamodb_resource or boto3.resource(
            "dynamodb", region_name=settings.aws_region
        )
        backend = DynamoBackend(dynamodb.Table(settings.table_name))
        backend.ensure_table()
        return backend
    return JsonFileBackend(settings.data_dir)


class EventTrackerRuntime:
    def __init__(
        self,
        settings: TrackerSettings,
        *,
        client: discord.Client | None = None,
        backend: SnapshotBackend | None = None,
        fetcher: HypixelFetcher | None = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        if settings.text_commands:
            intents.message_content = True

        self.settings = settings
        self.bot = client or discord.Client(intents=intents)
        self.tree = app_commands.CommandTree(self.bot)
        self.backend = backend or build_backend(settings)
        self.fetcher = fetcher or HypixelFetcher(
            CredentialRotator(settings.api_keys, rotate_every=settings.rotation_calls),
            identity_ttl=settings.identity_ttl,
        )

        tz = settings.tzinfo

        def clock() -> datetime.datetime:
            return datetime.datetime.now(tz=tz)

        self.store = SnapshotStore(self.backend, self.fetcher, clock=clock)
        self.notifier = ChannelNotifier(self.bot, settings.report_channel_id, settings.shadow)
        self.engine = EventEngine(
            self.store,
            self.fetcher,
            ReportDispatcher(self.notifier, size=settings.report_size),
            guild_player=settings.guild_player,
            guild_id=settings.guild_id,
            request_delay=settings.request_delay,
            leaderboard_size=settings.leaderboard_size,
            tz=tz,
            clock=clock,
        )
        register_commands(self.tree, self.engine)
        self._loaded = False

        self.bot.event(self.on_ready)
        if settings.text_commands:
            self.bot.event(self.on_message)

    async def on_ready(self) -> None:
        log.info("Logged in as %s", self.bot.user)
        if self._loaded:
            return
        self._loaded = True
        try:
            await self.tree.sync()
        except discord.HTTPException as exc:
            log.error("Failed to sync slash commands: %s", exc)
        await self.engine.load()
        if self.notifier.shadow_enabled:
            log.info("Event tracker running in SHADOW mode")

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        await handle_text_command(self.engine, message)

    async def shutdown(self) -> None:
        await self.engine.shutdown()
        if not self.bot.is_closed():
            await self.bot.close()

    async def run(self) -> None:
        install_signal_handlers(asyncio.get_running_loop(), self.shutdown)
        try:
            async with self.bot:
                await self.bot.start(self.settings.discord_token)
        finally:
            await self.engine.shutdown()
            self.fetcher.close()

    @classmethod
    def create(cls) -> "EventTrackerRuntime":
        return cls(TrackerSettings.load())


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    runtime = EventTrackerRuntime.create()
    await runtime.run()


def run_cli() -> None:
    asyncio.run(main())


__all__ = ["EventTrackerRuntime", "build_backend", "main", "run_cli"]
