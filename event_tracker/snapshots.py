from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Final

from .hypixel_api import GuildMember, HypixelFetcher
from .models import (
    METRIC_FAMILIES,
    SINCE_MIDNIGHT_COUNTERS,
    DailySummary,
    PlayerDelta,
    PlayerSnapshot,
    normalize_uuid,
)
from .stats import build_snapshot
from .storage import SnapshotBackend

log: Final = logging.getLogger("event-tracker")

BASELINE_DAY: Final = 0


class SnapshotStore:
    """Day-indexed snapshots per entity, with day 0 as the event baseline."""

    def __init__(
        self,
        backend: SnapshotBackend,
        fetcher: HypixelFetcher | None = None,
        *,
        clock: Callable[[], datetime],
    ) -> None:
        self.backend = backend
        self._fetcher = fetcher
        self._clock = clock

    async def fetch_snapshot(
        self, entity_id: str, member: GuildMember | None = None
    ) -> PlayerSnapshot:
        if self._fetcher is None:
            raise RuntimeError("Snapshot store has no fetcher")
        result = await self._fetcher.fetch_statistics(entity_id)
        player = result.raise_for_status()
        now = self._clock()
        return build_snapshot(
            player,
            member,
            captured_at=int(now.timestamp() * 1000),
            today=now.date(),
            uuid=entity_id,
        )

    async def capture_baseline(
        self, entity_id: str, member: GuildMember | None = None
    ) -> PlayerSnapshot:
        snapshot = await self.fetch_snapshot(entity_id, member)
        self.record_day(entity_id, BASELINE_DAY, snapshot)
        return snapshot

    async def capture(
        self, entity_id: str, day_index: int, member: GuildMember | None = None
    ) -> PlayerSnapshot:
        snapshot = await self.fetch_snapshot(entity_id, member)
        self.record_day(entity_id, day_index, snapshot)
        return snapshot

    def record_day(self, entity_id: str, day_index: int, snapshot: PlayerSnapshot) -> None:
        if day_index < BASELINE_DAY:
            raise ValueError(f"Invalid day index {day_index}")
        snapshot.uuid = normalize_uuid(entity_id)
        self.backend.write_snapshot(snapshot, day_index)

    def load(self, entity_id: str, day_index: int) -> PlayerSnapshot | None:
        return self.backend.read_snapshot(entity_id, day_index)

    def entities(self, day_index: int) -> list[str]:
        return self.backend.list_entities(day_index)

    def delta(self, entity_id: str, day_index: int) -> PlayerDelta | None:
        """Gains between the baseline and `day_index`, or None without a day snapshot."""
        current = self.load(entity_id, day_index)
        if current is None:
            return None
        current_counters = current.counters()

        baseline = self.load(entity_id, BASELINE_DAY)
        if baseline is None:
            log.warning(
                "No baseline for %s, player likely joined after event started", entity_id
            )
            gains: dict[str, dict[str, float]] = {}
            for family in METRIC_FAMILIES:
                values = current_counters.get(family, {})
                since_midnight = SINCE_MIDNIGHT_COUNTERS.get(family)
                fallback = values.get(since_midnight, 0) if since_midnight else 0
                gains[family] = {name: fallback for name in values}
            return PlayerDelta(
                uuid=current.uuid, username=current.username, gains=gains, has_baseline=False
            )

        baseline_counters = baseline.counters()
        gains = {}
        for family in METRIC_FAMILIES:
            now_values = current_counters.get(family, {})
            then_values = baseline_counters.get(family, {})
            gains[family] = {
                name: now_values.get(name, 0) - then_values.get(name, 0)
                for name in sorted(set(now_values) | set(then_values))
            }
        return PlayerDelta(uuid=current.uuid, username=current.username, gains=gains)

    # ----- Summary history -----
    def summaries(self) -> list[DailySummary]:
        return self.backend.load_summaries()

    def summaries_for_days(self, first: int, last: int) -> list[DailySummary]:
        return [s for s in self.summaries() if first <= s.day_index <= last]

    def upsert_summary(self, summary: DailySummary) -> None:
        """Store `summary`, replacing any earlier entry for the same day index."""
        history = [s for s in self.summaries() if s.day_index != summary.day_index]
        history.append(summary)
        history.sort(key=lambda s: s.day_index)
        self.backend.save_summaries(history)

    def clear_all(self) -> None:
        self.backend.clear_event_data()
