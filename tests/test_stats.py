from datetime import date

import pytest

from event_tracker.hypixel_api import GuildMember
from event_tracker.stats import build_snapshot, daily_gexp, network_level, weekly_gexp

UUID = "0123456789abcdef0123456789abcdef"


def sample_member() -> GuildMember:
    return GuildMember(
        uuid=UUID,
        rank="Member",
        exp_history={"2024-06-03": 1200, "2024-06-02": 800, "2024-06-01": 0},
    )


def sample_player() -> dict:
    return {
        "uuid": UUID,
        "displayname": "Steve",
        "networkExp": 0,
        "stats": {
            "Bedwars": {
                "wins_bedwars": 10,
                "losses_bedwars": 4,
                "final_kills_bedwars": 30,
                "final_deaths_bedwars": 5,
                "kills_bedwars": 50,
                "deaths_bedwars": 20,
            },
            "SkyWars": {"wins": 3, "losses": 9, "kills": 12, "deaths": 9},
            "MCGO": {"game_wins": 2, "kills": 40, "deaths": 30, "headshot_kills": 8},
        },
    }


@pytest.mark.parametrize(
    ("exp", "level"),
    [
        (0, 1.0),
        (-5, 1.0),
        (10_000, 2.0),
        (22_500, 3.0),
    ],
)
def test_network_level(exp, level):
    assert network_level(exp) == pytest.approx(level)


def test_network_level_is_fractional_between_levels():
    assert 1.0 < network_level(5_000) < 2.0


def test_guild_experience_helpers():
    member = sample_member()
    assert weekly_gexp(member) == 2000
    assert daily_gexp(member, date(2024, 6, 3)) == 1200
    assert daily_gexp(member, date(2024, 6, 4)) == 0
    assert weekly_gexp(None) == 0
    assert daily_gexp(None, date(2024, 6, 3)) == 0


def test_build_snapshot_extracts_every_family():
    snapshot = build_snapshot(
        sample_player(), sample_member(), captured_at=1234, today=date(2024, 6, 3)
    )

    assert snapshot.uuid == UUID
    assert snapshot.username == "Steve"
    assert snapshot.timestamp == 1234
    assert snapshot.gexp.weekly == 2000
    assert snapshot.gexp.daily == 1200
    assert snapshot.bedwars.wins == 10
    assert snapshot.bedwars.final_kills == 30
    assert snapshot.skywars.losses == 9
    assert snapshot.copsandcrims.wins == 2
    assert snapshot.copsandcrims.headshot_kills == 8
    assert snapshot.network_level == pytest.approx(1.0)


def test_build_snapshot_without_game_stats():
    player = {"displayname": "Alex", "networkExp": 10_000}
    snapshot = build_snapshot(player, None, captured_at=1, today=date(2024, 6, 3), uuid=UUID)

    assert snapshot.uuid == UUID
    assert snapshot.bedwars is None
    assert snapshot.skywars is None
    assert snapshot.copsandcrims is None
    assert snapshot.gexp.weekly == 0
    assert snapshot.network_level == pytest.approx(2.0)
