from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, fields
from datetime import UTC, date, datetime, timedelta
from typing import ClassVar

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

PRIMARY_METRIC = "gexp"
METRIC_FAMILIES = ("gexp", "bedwars", "skywars", "copsandcrims", "network_level")

# Counter used to rank each family on the leaderboard.
LEADERBOARD_COUNTERS = {
    "gexp": "weekly",
    "bedwars": "wins",
    "skywars": "wins",
    "copsandcrims": "wins",
    "network_level": "level",
}

# Counter that resets at midnight, used when an entity has no baseline.
SINCE_MIDNIGHT_COUNTERS = {"gexp": "daily"}

_UUID_PATTERN = re.compile(r"^[a-f0-9]{32}$")


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return datetime.now(UTC).strftime(ISO_FORMAT)


def normalize_uuid(value: str) -> str:
    return value.replace("-", "").strip().lower()


def is_entity_id(value: str) -> bool:
    return bool(_UUID_PATTERN.match(value.lower()))


@dataclass(slots=True)
class EventConfig:
    name: str
    start_date: date
    end_date: date
    interval: timedelta
    active: bool
    created_by: str
    tracked_stats: list[str] = field(default_factory=lambda: list(METRIC_FAMILIES))

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "updateInterval": int(self.interval.total_seconds() * 1000),
            "active": self.active,
            "createdBy": self.created_by,
            "trackedStats": list(self.tracked_stats),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> EventConfig:
        tracked = data.get("trackedStats") or list(METRIC_FAMILIES)
        # older records used the camelCase family name
        tracked = [
            "network_level" if str(name) == "networkLevel" else str(name)
            for name in tracked  # type: ignore[union-attr]
        ]
        return cls(
            name=str(data.get("name", "")),
            start_date=date.fromisoformat(str(data["startDate"])[:10]),
            end_date=date.fromisoformat(str(data["endDate"])[:10]),
            interval=timedelta(milliseconds=int(data.get("updateInterval", 0))),
            active=bool(data.get("active", False)),
            created_by=str(data.get("createdBy", "")),
            tracked_stats=[name for name in tracked if name in METRIC_FAMILIES],
        )

    def day_index(self, on: date) -> int:
        """Day 1 is the start date itself; day 0 is reserved for the baseline."""
        return (on - self.start_date).days + 1

    def date_for_day(self, day_index: int) -> date:
        return self.start_date + timedelta(days=day_index - 1)

    @property
    def last_day_index(self) -> int:
        return self.day_index(self.end_date)


@dataclass(slots=True)
class GexpStats:
    weekly: int = 0
    daily: int = 0


@dataclass(slots=True)
class BedwarsStats:
    wins: int = 0
    losses: int = 0
    final_kills: int = 0
    final_deaths: int = 0
    kills: int = 0
    deaths: int = 0


@dataclass(slots=True)
class SkywarsStats:
    wins: int = 0
    losses: int = 0
    kills: int = 0
    deaths: int = 0


@dataclass(slots=True)
class CopsAndCrimsStats:
    wins: int = 0
    kills: int = 0
    deaths: int = 0
    headshot_kills: int = 0


_FAMILY_TYPES = {
    "bedwars": BedwarsStats,
    "skywars": SkywarsStats,
    "copsandcrims": CopsAndCrimsStats,
}


def _family_from_dict(kind, raw: object):
    if not isinstance(raw, dict):
        return None
    names = {f.name for f in fields(kind)}
    return kind(**{key: int(raw.get(key, 0) or 0) for key in names})


@dataclass(slots=True)
class PlayerSnapshot:
    uuid: str
    username: str
    timestamp: int
    gexp: GexpStats = field(default_factory=GexpStats)
    bedwars: BedwarsStats | None = None
    skywars: SkywarsStats | None = None
    copsandcrims: CopsAndCrimsStats | None = None
    network_level: float | None = None

    def counters(self) -> dict[str, dict[str, float]]:
        """Return every metric family as a flat counter mapping.

        Families missing from the snapshot come back as empty mappings.
        """
        result: dict[str, dict[str, float]] = {"gexp": asdict(self.gexp)}
        for family in _FAMILY_TYPES:
            stats = getattr(self, family)
            result[family] = asdict(stats) if stats is not None else {}
        result["network_level"] = (
            {"level": self.network_level} if self.network_level is not None else {}
        )
        return result

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "uuid": self.uuid,
            "username": self.username,
            "timestamp": self.timestamp,
            "gexp": asdict(self.gexp),
        }
        for family in _FAMILY_TYPES:
            stats = getattr(self, family)
            if stats is not None:
                data[family] = asdict(stats)
        if self.network_level is not None:
            data["networkLevel"] = self.network_level
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> PlayerSnapshot:
        gexp_raw = data.get("gexp") or {}
        network_level = data.get("networkLevel")
        return cls(
            uuid=normalize_uuid(str(data.get("uuid", ""))),
            username=str(data.get("username", "")),
            timestamp=int(data.get("timestamp", 0) or 0),
            gexp=GexpStats(
                weekly=int(gexp_raw.get("weekly", 0) or 0),  # type: ignore[union-attr]
                daily=int(gexp_raw.get("daily", 0) or 0),  # type: ignore[union-attr]
            ),
            bedwars=_family_from_dict(BedwarsStats, data.get("bedwars")),
            skywars=_family_from_dict(SkywarsStats, data.get("skywars")),
            copsandcrims=_family_from_dict(CopsAndCrimsStats, data.get("copsandcrims")),
            network_level=float(network_level) if network_level is not None else None,
        )


@dataclass(slots=True)
class PlayerDelta:
    uuid: str
    username: str
    gains: dict[str, dict[str, float]]
    has_baseline: bool = True

    def leaderboard_value(self, family: str) -> float:
        counter = LEADERBOARD_COUNTERS[family]
        return self.gains.get(family, {}).get(counter, 0)


@dataclass(slots=True)
class LeaderboardEntry:
    uuid: str
    username: str
    gained: float

    def to_dict(self) -> dict[str, object]:
        return {"uuid": self.uuid, "username": self.username, "gained": self.gained}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> LeaderboardEntry:
        return cls(
            uuid=str(data.get("uuid", "")),
            username=str(data.get("username", "")),
            gained=data.get("gained", 0),  # type: ignore[arg-type]
        )


@dataclass(slots=True)
class DailySummary:
    date: str
    day_index: int
    participant_count: int
    totals: dict[str, float]
    leaderboards: dict[str, list[LeaderboardEntry]]
    daily_winner: str | None = None
    daily_winner_name: str | None = None
    weekly_winner: str | None = None
    weekly_winner_name: str | None = None
    generated_at: str = ""

    @property
    def total_gexp(self) -> float:
        return self.totals.get(PRIMARY_METRIC, 0)

    def top(self, family: str, limit: int | None = None) -> list[LeaderboardEntry]:
        entries = self.leaderboards.get(family, [])
        return entries if limit is None else entries[:limit]

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "dayNumber": self.day_index,
            "totalPlayers": self.participant_count,
            "totals": dict(self.totals),
            "leaderboards": {
                family: [entry.to_dict() for entry in entries]
                for family, entries in self.leaderboards.items()
            },
            "dailyWinner": self.daily_winner,
            "dailyWinnerName": self.daily_winner_name,
            "weeklyWinner": self.weekly_winner,
            "weeklyWinnerName": self.weekly_winner_name,
            "generatedAt": self.generated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> DailySummary:
        boards = data.get("leaderboards") or {}
        return cls(
            date=str(data.get("date", "")),
            day_index=int(data.get("dayNumber", 0) or 0),
            participant_count=int(data.get("totalPlayers", 0) or 0),
            totals=dict(data.get("totals") or {}),  # type: ignore[arg-type]
            leaderboards={
                str(family): [LeaderboardEntry.from_dict(item) for item in entries]
                for family, entries in boards.items()  # type: ignore[union-attr]
            },
            daily_winner=data.get("dailyWinner"),  # type: ignore[arg-type]
            daily_winner_name=data.get("dailyWinnerName"),  # type: ignore[arg-type]
            weekly_winner=data.get("weeklyWinner"),  # type: ignore[arg-type]
            weekly_winner_name=data.get("weeklyWinnerName"),  # type: ignore[arg-type]
            generated_at=str(data.get("generatedAt", "")),
        )


@dataclass(slots=True)
class DailyWinner:
    date: str
    winner: str
    username: str
    day_index: int
    score: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "winner": self.winner,
            "username": self.username,
            "dayNumber": self.day_index,
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> DailyWinner:
        return cls(
            date=str(data.get("date", "")),
            winner=str(data.get("winner", "")),
            username=str(data.get("username") or data.get("winner", "")),
            day_index=int(data.get("dayNumber", 0) or 0),
            score=float(data.get("score", 0.0) or 0.0),
        )


@dataclass(slots=True)
class WeeklyWinner:
    week_index: int
    winner: str
    username: str
    start_date: str
    end_date: str
    score: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "weekNumber": self.week_index,
            "winner": self.winner,
            "username": self.username,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> WeeklyWinner:
        return cls(
            week_index=int(data.get("weekNumber", 0) or 0),
            winner=str(data.get("winner", "")),
            username=str(data.get("username") or data.get("winner", "")),
            start_date=str(data.get("startDate", "")),
            end_date=str(data.get("endDate", "")),
            score=float(data.get("score", 0.0) or 0.0),
        )


@dataclass(slots=True)
class DailyPool:
    date: str
    day_index: int
    eligible: list[str]

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date,
            "dayNumber": self.day_index,
            "eligiblePlayers": list(self.eligible),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> DailyPool:
        return cls(
            date=str(data.get("date", "")),
            day_index=int(data.get("dayNumber", 0) or 0),
            eligible=[str(item) for item in data.get("eligiblePlayers", [])],  # type: ignore[union-attr]
        )


@dataclass(slots=True)
class GiveawayRecord:
    daily_winners: list[DailyWinner] = field(default_factory=list)
    weekly_winners: list[WeeklyWinner] = field(default_factory=list)
    daily_pools: list[DailyPool] = field(default_factory=list)

    DAYS_PER_WEEK: ClassVar[int] = 7

    def daily_winner_for(self, day_index: int) -> DailyWinner | None:
        for entry in self.daily_winners:
            if entry.day_index == day_index:
                return entry
        return None

    def weekly_winner_for(self, week_index: int) -> WeeklyWinner | None:
        for entry in self.weekly_winners:
            if entry.week_index == week_index:
                return entry
        return None

    def record_pool(self, pool: DailyPool) -> None:
        self.daily_pools = [p for p in self.daily_pools if p.day_index != pool.day_index]
        self.daily_pools.append(pool)
        self.daily_pools.sort(key=lambda p: p.day_index)

    def pool_for(self, day_index: int) -> DailyPool | None:
        for pool in self.daily_pools:
            if pool.day_index == day_index:
                return pool
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "dailyWinners": [entry.to_dict() for entry in self.daily_winners],
            "weeklyWinners": [entry.to_dict() for entry in self.weekly_winners],
            "dailyPools": [entry.to_dict() for entry in self.daily_pools],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> GiveawayRecord:
        return cls(
            daily_winners=[
                DailyWinner.from_dict(item) for item in data.get("dailyWinners", [])  # type: ignore[union-attr]
            ],
            weekly_winners=[
                WeeklyWinner.from_dict(item) for item in data.get("weeklyWinners", [])  # type: ignore[union-attr]
            ],
            daily_pools=[
                DailyPool.from_dict(item) for item in data.get("dailyPools", [])  # type: ignore[union-attr]
            ],
        )
