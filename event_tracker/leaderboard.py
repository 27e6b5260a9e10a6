from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Final

from .errors import PersistenceError
from .models import (
    METRIC_FAMILIES,
    PRIMARY_METRIC,
    DailySummary,
    EventConfig,
    LeaderboardEntry,
    PlayerDelta,
    utc_now_iso,
)
from .snapshots import SnapshotStore

log: Final = logging.getLogger("event-tracker")

LEADERBOARD_SIZE: Final = 10


def _leaderboard_value(delta: PlayerDelta, family: str) -> float:
    value = delta.leaderboard_value(family)
    if family == "network_level":
        return round(value, 2)
    return value


def build_summary(
    deltas: Sequence[PlayerDelta],
    *,
    day_index: int,
    date: str,
    families: Iterable[str] = METRIC_FAMILIES,
    size: int = LEADERBOARD_SIZE,
) -> DailySummary:
    """Rank `deltas` per metric family.

    Ties keep the order of `deltas` (sorted() is stable).
    """
    families = [f for f in METRIC_FAMILIES if f in set(families) or f == PRIMARY_METRIC]
    leaderboards: dict[str, list[LeaderboardEntry]] = {}
    totals: dict[str, float] = {}
    for family in families:
        ranked = sorted(deltas, key=lambda d: _leaderboard_value(d, family), reverse=True)
        leaderboards[family] = [
            LeaderboardEntry(uuid=d.uuid, username=d.username, gained=_leaderboard_value(d, family))
            for d in ranked[:size]
        ]
        total = sum(_leaderboard_value(d, family) for d in deltas)
        totals[family] = round(total, 2) if family == "network_level" else total
    return DailySummary(
        date=date,
        day_index=day_index,
        participant_count=len(deltas),
        totals=totals,
        leaderboards=leaderboards,
        generated_at=utc_now_iso(),
    )


class LeaderboardCompiler:
    def __init__(self, store: SnapshotStore, *, size: int = LEADERBOARD_SIZE) -> None:
        self._store = store
        self._size = size

    def collect_deltas(self, day_index: int) -> list[PlayerDelta]:
        deltas: list[PlayerDelta] = []
        for entity_id in self._store.entities(day_index):
            try:
                delta = self._store.delta(entity_id, day_index)
            except PersistenceError as exc:
                log.error("Error calculating gains for %s: %s", entity_id, exc)
                continue
            if delta is not None:
                deltas.append(delta)
        return deltas

    def build(self, config: EventConfig, day_index: int) -> DailySummary:
        deltas = self.collect_deltas(day_index)
        log.info("Compiling summary for day %s from %s players", day_index, len(deltas))
        summary = build_summary(
            deltas,
            day_index=day_index,
            date=config.date_for_day(day_index).isoformat(),
            families=config.tracked_stats,
            size=self._size,
        )
        log.info(
            "Compiled summary: %s players, %.0f total GEXP",
            summary.participant_count,
            summary.total_gexp,
        )
        return summary

    def compile(self, config: EventConfig, day_index: int) -> DailySummary:
        """Build and store the summary for `day_index`, replacing an earlier one."""
        summary = self.build(config, day_index)
        self._store.upsert_summary(summary)
        return summary
