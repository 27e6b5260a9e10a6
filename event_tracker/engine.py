"""Event lifecycle: start/stop, scheduled polls, daily reports and shutdown flush.

All state lives on the :class:`EventEngine` instance. Day numbering is always
derived from the wall clock and the event's start date, so a restarted
process picks up exactly where the previous one left off.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import signal
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Final

from discord.ext import tasks

from .errors import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .hypixel_api import GuildRoster, HypixelFetcher
from .leaderboard import LEADERBOARD_SIZE, LeaderboardCompiler
from .lottery import LotterySelector
from .models import DailySummary, EventConfig, GiveawayRecord
from .reporting import ReportDispatcher
from .snapshots import BASELINE_DAY, SnapshotStore
from .validation import (
    parse_event_date,
    parse_interval,
    parse_metric_families,
    validate_event_window,
)

log: Final = logging.getLogger("event-tracker")


@dataclass(slots=True)
class CaptureResult:
    day_index: int
    succeeded: int = 0
    failed: int = 0
    skipped: bool = False


class EventEngine:
    def __init__(
        self,
        store: SnapshotStore,
        fetcher: HypixelFetcher,
        dispatcher: ReportDispatcher,
        *,
        guild_player: str | None = None,
        guild_id: str | None = None,
        request_delay: float = 10.0,
        leaderboard_size: int = LEADERBOARD_SIZE,
        tz: datetime.tzinfo = datetime.timezone.utc,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        if not guild_player and not guild_id:
            raise ValueError("guild_player or guild_id is required")
        self.store = store
        self.fetcher = fetcher
        self.dispatcher = dispatcher
        self.compiler = LeaderboardCompiler(store, size=leaderboard_size)
        self.config: EventConfig | None = None
        self.giveaways = GiveawayRecord()

        self._guild_player = guild_player
        self._guild_id = guild_id
        self._request_delay = request_delay
        self._tz = tz
        self._clock = clock or (lambda: datetime.datetime.now(tz=self._tz))

        self._poll_lock = asyncio.Lock()
        self._report_lock = asyncio.Lock()
        self._shutdown_task: asyncio.Future | None = None

        self._poll_loop = tasks.loop(hours=1)(self._poll_tick)
        self._poll_loop.before_loop(self._wait_first_interval)
        self._daily_loop = tasks.loop(time=datetime.time(hour=0, tzinfo=tz))(self._daily_tick)

    # ----- Clock -----
    def today(self) -> datetime.date:
        return self._clock().date()

    def current_day_index(self) -> int:
        if self.config is None:
            raise NotFoundError("No event configured")
        return self.config.day_index(self.today())

    @property
    def active(self) -> bool:
        return self.config is not None and self.config.active

    # ----- Persistence helpers -----
    def _persist_config(self) -> bool:
        if self.config is None:
            return False
        try:
            self.store.backend.save_event_config(self.config)
        except PersistenceError as exc:
            log.error("Failed to save event config: %s", exc)
            return False
        log.info("Event config saved")
        return True

    def _persist_giveaways(self) -> bool:
        try:
            self.store.backend.save_giveaways(self.giveaways)
        except PersistenceError as exc:
            log.error("Failed to save giveaway data: %s", exc)
            return False
        log.info("Giveaway data saved")
        return True

    def _persist_summary(self, summary: DailySummary) -> bool:
        try:
            self.store.upsert_summary(summary)
        except PersistenceError as exc:
            log.error("Failed to save summary for day %s: %s", summary.day_index, exc)
            return False
        return True

    # ----- Timers -----
    def _arm_timers(self) -> None:
        if self.config is None:
            return
        self._poll_loop.change_interval(seconds=self.config.interval.total_seconds())
        for loop in (self._poll_loop, self._daily_loop):
            if loop.is_running():
                loop.restart()
            else:
                loop.start()
        log.info(
            "Update timer started (interval: %ss), daily report timer started",
            int(self.config.interval.total_seconds()),
        )

    def _disarm_timers(self) -> None:
        self._poll_loop.cancel()
        self._daily_loop.cancel()

    async def _wait_first_interval(self) -> None:
        if self.config is not None:
            await asyncio.sleep(self.config.interval.total_seconds())

    async def _poll_tick(self) -> None:
        try:
            await self.poll_cycle()
        except Exception:  # pylint: disable=broad-except
            log.exception("Scheduled member update failed")

    async def _daily_tick(self) -> None:
        if not self.active:
            return
        # The boundary just passed, so report the day that ended.
        day_index = min(self.current_day_index() - 1, self.config.last_day_index)
        if day_index < 1:
            return
        final = day_index >= self.config.last_day_index
        try:
            await self.run_daily_report(day_index, final=final, wait=False)
        except Exception:  # pylint: disable=broad-except
            log.exception("Failed to generate daily report")
        if final:
            self._finish_event()

    def _finish_event(self) -> None:
        log.info("Event %s reached its end date", self.config.name)
        self.config.active = False
        self._persist_config()
        self._poll_loop.cancel()
        self._daily_loop.stop()

    # ----- Roster / capture -----
    async def _fetch_roster(self) -> GuildRoster | None:
        result = await self.fetcher.fetch_roster(
            guild_player=self._guild_player, guild_id=self._guild_id
        )
        if not result.ok:
            log.error("Failed to fetch guild data: %s", result.status)
            return None
        return result.payload

    async def _capture_roster(self, day_index: int) -> CaptureResult:
        outcome = CaptureResult(day_index=day_index)
        roster = await self._fetch_roster()
        if roster is None:
            outcome.skipped = True
            return outcome

        for position, member in enumerate(roster.members):
            if position and self._request_delay:
                await asyncio.sleep(self._request_delay)
            try:
                await self.store.capture(member.uuid, day_index, member)
            except ExternalServiceError as exc:
                outcome.failed += 1
                log.error("Failed to update %s: %s", member.uuid, exc)
                continue
            except PersistenceError as exc:
                outcome.failed += 1
                log.error("Failed to save stats for %s: %s", member.uuid, exc)
                continue
            outcome.succeeded += 1
        return outcome

    async def capture_baseline(self) -> CaptureResult:
        log.info("Capturing event start baseline...")
        outcome = await self._capture_roster(BASELINE_DAY)
        log.info(
            "Captured baseline for %s members (%s errors)", outcome.succeeded, outcome.failed
        )
        return outcome

    async def poll_cycle(self, *, wait: bool = False) -> CaptureResult | None:
        """Refresh every member's snapshot for today.

        A scheduled tick that finds a poll already running is skipped; callers
        passing ``wait=True`` queue behind it instead.
        """
        if self._poll_lock.locked() and not wait:
            log.warning("Previous member update still running, skipping this tick")
            return None
        async with self._poll_lock:
            if not self.active:
                return None
            day_index = self.current_day_index()
            if day_index < 1:
                log.info("Event %s has not started yet", self.config.name)
                return CaptureResult(day_index=day_index, skipped=True)
            if day_index > self.config.last_day_index:
                log.info("Event %s is past its end date, not updating", self.config.name)
                return CaptureResult(day_index=day_index, skipped=True)
            log.info("Starting member stats update...")
            outcome = await self._capture_roster(day_index)
            log.info("Updated %s members (%s errors)", outcome.succeeded, outcome.failed)
            return outcome

    # ----- Reports -----
    def _report_day(self) -> int:
        return max(1, min(self.current_day_index(), self.config.last_day_index))

    def _history_with(self, summary: DailySummary) -> Sequence[DailySummary]:
        try:
            history = self.store.summaries()
        except PersistenceError as exc:
            log.error("Failed to load summary history: %s", exc)
            history = []
        history = [s for s in history if s.day_index != summary.day_index]
        history.append(summary)
        history.sort(key=lambda s: s.day_index)
        return history

    def _draw_winners(self, config: EventConfig, summary: DailySummary) -> None:
        selector = LotterySelector(self.giveaways)
        daily = selector.draw_daily(summary)
        if daily.winner:
            summary.daily_winner = daily.winner
            summary.daily_winner_name = daily.username
        weekly = selector.draw_weekly(config, self._history_with(summary), summary.day_index)
        if weekly is not None and weekly.winner:
            summary.weekly_winner = weekly.winner
            summary.weekly_winner_name = weekly.username

    async def run_daily_report(
        self, day_index: int | None = None, *, final: bool = False, wait: bool = True
    ) -> DailySummary | None:
        """Compile the day, run the giveaway draws, persist, then report.

        Draws only happen for a day that has ended or for the final report, so a
        mid-day report never locks in a winner from partial data.
        """
        if self._report_lock.locked() and not wait:
            log.warning("Previous report still running, skipping this tick")
            return None
        async with self._report_lock:
            if self.config is None:
                raise NotFoundError("No event configured")
            config = self.config
            if day_index is None:
                day_index = self._report_day()
            log.info("Generating daily report for day %s...", day_index)

            summary = self.compiler.build(config, day_index)
            if final or day_index < self.current_day_index():
                self._draw_winners(config, summary)
                self._persist_giveaways()
            else:
                log.info("Day %s is still running, giveaway draws wait for its end", day_index)
            self._persist_summary(summary)
            if await self.dispatcher.dispatch(config, summary, final=final):
                log.info("Daily report generated and sent")
            return summary

    # ----- Lifecycle -----
    async def load(self) -> EventConfig | None:
        """Restore persisted state and resume timers for an active event."""
        try:
            self.config = self.store.backend.load_event_config()
        except PersistenceError as exc:
            log.error("Failed to load event config: %s", exc)
            self.config = None
        if self.config is None:
            log.info("No active event found")
            return None
        log.info("Loaded event config: %s", self.config.name)

        try:
            self.giveaways = self.store.backend.load_giveaways()
        except PersistenceError as exc:
            log.error("Failed to load giveaway data, starting fresh: %s", exc)
            self.giveaways = GiveawayRecord()
        log.info(
            "Loaded giveaway data: %s daily, %s weekly winners",
            len(self.giveaways.daily_winners),
            len(self.giveaways.weekly_winners),
        )

        if self.config.active:
            log.info("Resuming event: %s", self.config.name)
            self._arm_timers()
        return self.config

    async def start(
        self,
        name: str,
        start_date: str | datetime.date,
        end_date: str | datetime.date,
        interval: str | datetime.timedelta,
        metrics: str | Sequence[str] | None,
        requester: str,
    ) -> CaptureResult:
        if self.active:
            raise ConflictError(
                f"An event is already active: {self.config.name}. Stop it first."
            )
        name = name.strip()
        if not name:
            raise ValidationError("Event name cannot be empty")
        start = start_date if isinstance(start_date, datetime.date) else parse_event_date(start_date)
        end = end_date if isinstance(end_date, datetime.date) else parse_event_date(end_date)
        validate_event_window(start, end)
        every = interval if isinstance(interval, datetime.timedelta) else parse_interval(interval)
        if every <= datetime.timedelta(0):
            raise ValidationError("Interval must be greater than zero")
        if metrics is None or isinstance(metrics, str):
            families = parse_metric_families(metrics)
        else:
            families = parse_metric_families(",".join(metrics))

        # Clear first: a failed clear must leave no active event behind.
        try:
            self.store.clear_all()
        except PersistenceError as exc:
            log.error("Failed to clear event data, event not started: %s", exc)
            raise PersistenceError(
                "Could not clear the previous event's data, so the event was not started. "
                "Check the bot logs."
            ) from exc
        self.giveaways = GiveawayRecord()

        self.config = EventConfig(
            name=name,
            start_date=start,
            end_date=end,
            interval=every,
            active=True,
            created_by=requester,
            tracked_stats=families,
        )
        self._persist_config()

        baseline = await self.capture_baseline()
        self._arm_timers()
        log.info("Event started by %s: %s", requester, name)
        return baseline

    async def stop(self, requester: str) -> DailySummary | None:
        if not self.active:
            raise NotFoundError("No active event to stop.")
        name = self.config.name
        self._disarm_timers()
        self.config.active = False
        self._persist_config()
        summary = await self.run_daily_report(final=True)
        log.info("Event stopped by %s: %s", requester, name)
        return summary

    def status(self) -> EventConfig | None:
        return self.config

    async def force_report(self) -> DailySummary | None:
        if not self.active:
            raise NotFoundError("No active event. Start one first.")
        return await self.run_daily_report()

    async def force_save(self) -> CaptureResult | None:
        if not self.active:
            raise NotFoundError("No active event. Start one first.")
        log.info("Starting manual member stats update...")
        return await self.poll_cycle(wait=True)

    async def pre_reboot_save(self) -> None:
        if not self.active:
            return
        log.info("Saving event data before reboot...")
        await self._flush_state()

    async def _flush_state(self) -> None:
        await self.poll_cycle(wait=True)
        self._persist_config()
        self._persist_giveaways()

    async def shutdown(self) -> None:
        """Flush state once before exit; concurrent callers await the same flush."""
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self._shutdown())
        await asyncio.shield(self._shutdown_task)

    async def _shutdown(self) -> None:
        self._disarm_timers()
        if not self.active:
            return
        log.info("Saving event data before shutdown...")
        try:
            await self._flush_state()
        except Exception:  # pylint: disable=broad-except
            log.exception("Failed to save event data")
            return
        log.info("Event data saved successfully")


def install_signal_handlers(
    loop: asyncio.AbstractEventLoop, on_exit: Callable[[], Awaitable[None]]
) -> list[signal.Signals]:
    """Run ``on_exit`` when SIGINT or SIGTERM arrives. Returns the signals installed."""
    installed: list[signal.Signals] = []
    pending: set[asyncio.Future] = set()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda s=sig: _schedule_exit(s, on_exit, pending))
        except (NotImplementedError, RuntimeError):
            log.debug("Signal handler for %s not supported on this platform", sig.name)
            continue
        installed.append(sig)
    return installed


def _schedule_exit(
    sig: signal.Signals,
    on_exit: Callable[[], Awaitable[None]],
    pending: set[asyncio.Future],
) -> asyncio.Future:
    log.info("Received %s, shutting down gracefully...", sig.name)
    task = asyncio.ensure_future(on_exit())
    # Held until done so the flush cannot be garbage collected mid-run.
    pending.add(task)
    task.add_done_callback(pending.discard)
    return task
