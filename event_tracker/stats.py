"""Translate raw Hypixel payloads into snapshots."""

from __future__ import annotations

import math
from datetime import date
from typing import Any

from .hypixel_api import GuildMember
from .models import (
    BedwarsStats,
    CopsAndCrimsStats,
    GexpStats,
    PlayerSnapshot,
    SkywarsStats,
    normalize_uuid,
)

BASE_EXP = 10_000
GROWTH = 2_500
_REVERSE_PQ_PREFIX = -(BASE_EXP - 0.5 * GROWTH) / GROWTH
_REVERSE_CONST = _REVERSE_PQ_PREFIX**2
_GROWTH_DIVIDES_2 = 2 / GROWTH


def network_level(exp: float) -> float:
    """Fractional Hypixel network level for a total of network experience."""
    if exp <= 0:
        return 1.0
    return 1 + _REVERSE_PQ_PREFIX + math.sqrt(_REVERSE_CONST + _GROWTH_DIVIDES_2 * exp)


def weekly_gexp(member: GuildMember | None) -> int:
    if member is None:
        return 0
    return sum(member.exp_history.values())


def daily_gexp(member: GuildMember | None, today: date) -> int:
    if member is None:
        return 0
    return member.exp_history.get(today.isoformat(), 0)


def _int(block: dict[str, Any], key: str) -> int:
    return int(block.get(key, 0) or 0)


def build_snapshot(
    player: dict[str, Any],
    member: GuildMember | None,
    *,
    captured_at: int,
    today: date,
    uuid: str | None = None,
) -> PlayerSnapshot:
    stats = player.get("stats") or {}
    snapshot = PlayerSnapshot(
        uuid=normalize_uuid(uuid or str(player.get("uuid", ""))),
        username=str(player.get("displayname") or player.get("playername") or ""),
        timestamp=captured_at,
        gexp=GexpStats(weekly=weekly_gexp(member), daily=daily_gexp(member, today)),
        network_level=network_level(float(player.get("networkExp", 0) or 0)),
    )

    if bw := stats.get("Bedwars"):
        snapshot.bedwars = BedwarsStats(
            wins=_int(bw, "wins_bedwars"),
            losses=_int(bw, "losses_bedwars"),
            final_kills=_int(bw, "final_kills_bedwars"),
            final_deaths=_int(bw, "final_deaths_bedwars"),
            kills=_int(bw, "kills_bedwars"),
            deaths=_int(bw, "deaths_bedwars"),
        )

    if sw := stats.get("SkyWars"):
        snapshot.skywars = SkywarsStats(
            wins=_int(sw, "wins"),
            losses=_int(sw, "losses"),
            kills=_int(sw, "kills"),
            deaths=_int(sw, "deaths"),
        )

    if cvc := stats.get("MCGO"):
        snapshot.copsandcrims = CopsAndCrimsStats(
            wins=_int(cvc, "game_wins"),
            kills=_int(cvc, "kills"),
            deaths=_int(cvc, "deaths"),
            headshot_kills=_int(cvc, "headshot_kills"),
        )

    return snapshot
