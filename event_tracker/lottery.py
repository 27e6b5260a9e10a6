"""Daily and weekly giveaway draws over the leaderboard's top performers.

The draw is deterministic: every member of the eligible pool is scored as
``primary gain / average gain`` and the strictly highest score wins. Equal
scores go to whoever entered the pool first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Final

from .models import (
    PRIMARY_METRIC,
    DailyPool,
    DailySummary,
    DailyWinner,
    EventConfig,
    GiveawayRecord,
    WeeklyWinner,
)

log: Final = logging.getLogger("event-tracker")

DAYS_PER_WEEK: Final = GiveawayRecord.DAYS_PER_WEEK
POOL_DEPTH: Final = 10


@dataclass(slots=True)
class DrawResult:
    winner: str | None = None
    username: str | None = None
    score: float = 0.0
    gained: float = 0.0
    average: float = 0.0
    pool: list[str] = field(default_factory=list)
    reused: bool = False


def eligible_pool(summary: DailySummary, depth: int = POOL_DEPTH) -> list[str]:
    """Union of every family's top list, in order of first appearance."""
    pool: list[str] = []
    seen: set[str] = set()
    for entries in summary.leaderboards.values():
        for entry in entries[:depth]:
            if entry.uuid not in seen:
                seen.add(entry.uuid)
                pool.append(entry.uuid)
    return pool


def display_names(summaries: Iterable[DailySummary]) -> dict[str, str]:
    names: dict[str, str] = {}
    for summary in summaries:
        for entries in summary.leaderboards.values():
            for entry in entries:
                names.setdefault(entry.uuid, entry.username)
    return names


def primary_gains(summary: DailySummary) -> dict[str, float]:
    return {entry.uuid: entry.gained for entry in summary.top(PRIMARY_METRIC)}


def pick_winner(
    candidates: Iterable[tuple[str, float]], average: float
) -> tuple[str, float, float] | None:
    """Return (uuid, score, gained) of the strictly highest scorer."""
    best: tuple[str, float, float] | None = None
    for uuid, gained in candidates:
        if gained <= 0:
            continue
        score = gained / average
        if best is None or score > best[1]:
            best = (uuid, score, gained)
    return best


class LotterySelector:
    def __init__(self, record: GiveawayRecord, *, depth: int = POOL_DEPTH) -> None:
        self.record = record
        self._depth = depth

    def draw_daily(self, summary: DailySummary) -> DrawResult:
        existing = self.record.daily_winner_for(summary.day_index)
        if existing is not None:
            # The recorded pool is the one the winner was drawn from; leave it alone.
            log.info("Day %s already has a winner: %s", summary.day_index, existing.username)
            recorded = self.record.pool_for(summary.day_index)
            return DrawResult(
                winner=existing.winner,
                username=existing.username,
                score=existing.score,
                pool=list(recorded.eligible) if recorded else [],
                reused=True,
            )

        pool = eligible_pool(summary, self._depth)
        self.record.record_pool(
            DailyPool(date=summary.date, day_index=summary.day_index, eligible=pool)
        )

        if summary.participant_count > 0:
            average = summary.total_gexp / summary.participant_count
        else:
            average = 1
        if average <= 0:
            log.warning("Average GEXP is %s, cannot calculate winner", average)
            return DrawResult(average=average, pool=pool)
        if not pool:
            log.warning("No eligible players for daily giveaway")
            return DrawResult(average=average, pool=pool)

        gains = primary_gains(summary)
        best = pick_winner(((uuid, gains.get(uuid, 0)) for uuid in pool), average)
        if best is None:
            log.warning("Could not determine winner")
            return DrawResult(average=average, pool=pool)

        uuid, score, gained = best
        username = display_names([summary]).get(uuid, uuid)
        self.record.daily_winners.append(
            DailyWinner(
                date=summary.date,
                winner=uuid,
                username=username,
                day_index=summary.day_index,
                score=score,
            )
        )
        log.info(
            "Daily winner: %s (GEXP: %.0f, score: %.2fx avg, avg: %.0f)",
            username,
            gained,
            score,
            average,
        )
        return DrawResult(
            winner=uuid, username=username, score=score, gained=gained, average=average, pool=pool
        )

    def draw_weekly(
        self, config: EventConfig, summaries: Sequence[DailySummary], day_index: int
    ) -> DrawResult | None:
        """Draw the weekly winner when `day_index` closes a week, otherwise None."""
        if day_index <= 0 or day_index % DAYS_PER_WEEK != 0:
            return None
        week = day_index // DAYS_PER_WEEK
        first_day = (week - 1) * DAYS_PER_WEEK + 1
        last_day = week * DAYS_PER_WEEK

        existing = self.record.weekly_winner_for(week)
        if existing is not None:
            return DrawResult(
                winner=existing.winner,
                username=existing.username,
                score=existing.score,
                reused=True,
            )

        window = [s for s in summaries if first_day <= s.day_index <= last_day]
        if not window:
            log.warning("No summaries found for weekly giveaway")
            return DrawResult()

        week_total = sum(s.total_gexp for s in window)
        participant_days = sum(s.participant_count for s in window)
        if participant_days > 0:
            average = week_total / (participant_days / len(window))
        else:
            average = 1

        week_gains: dict[str, float] = {}
        for summary in window:
            gains = primary_gains(summary)
            for uuid in eligible_pool(summary, self._depth):
                week_gains[uuid] = week_gains.get(uuid, 0) + gains.get(uuid, 0)
        pool = list(week_gains)

        if average <= 0 or not week_gains:
            log.warning("Cannot calculate weekly winner")
            return DrawResult(average=average, pool=pool)

        best = pick_winner(week_gains.items(), average)
        if best is None:
            log.warning("Could not determine weekly winner")
            return DrawResult(average=average, pool=pool)

        uuid, score, gained = best
        username = display_names(window).get(uuid, uuid)
        self.record.weekly_winners.append(
            WeeklyWinner(
                week_index=week,
                winner=uuid,
                username=username,
                start_date=config.date_for_day(first_day).isoformat(),
                end_date=config.date_for_day(last_day).isoformat(),
                score=score,
            )
        )
        log.info(
            "Weekly winner: %s (Week %s, GEXP: %.0f, score: %.2fx avg, avg: %.0f)",
            username,
            week,
            gained,
            score,
            average,
        )
        return DrawResult(
            winner=uuid, username=username, score=score, gained=gained, average=average, pool=pool
        )
