from datetime import date, timedelta

from event_tracker.models import (
    BedwarsStats,
    DailyPool,
    DailySummary,
    DailyWinner,
    EventConfig,
    GexpStats,
    GiveawayRecord,
    LeaderboardEntry,
    PlayerDelta,
    PlayerSnapshot,
    WeeklyWinner,
    is_entity_id,
    normalize_uuid,
)

UUID = "0123456789abcdef0123456789abcdef"


def sample_config(**overrides) -> EventConfig:
    values = dict(
        name="Summer Grind",
        start_date=date(2024, 6, 1),
        end_date=date(2024, 6, 14),
        interval=timedelta(hours=2),
        active=True,
        created_by="admin#0001",
        tracked_stats=["gexp", "bedwars"],
    )
    values.update(overrides)
    return EventConfig(**values)


class TestEventConfig:
    def test_day_index_counts_start_date_as_day_one(self):
        config = sample_config()
        assert config.day_index(date(2024, 5, 31)) == 0
        assert config.day_index(date(2024, 6, 1)) == 1
        assert config.day_index(date(2024, 6, 7)) == 7
        assert config.last_day_index == 14

    def test_date_for_day(self):
        config = sample_config()
        assert config.date_for_day(1) == date(2024, 6, 1)
        assert config.date_for_day(14) == date(2024, 6, 14)

    def test_serialized_keys(self):
        data = sample_config().to_dict()
        assert data == {
            "name": "Summer Grind",
            "startDate": "2024-06-01",
            "endDate": "2024-06-14",
            "updateInterval": 7_200_000,
            "active": True,
            "createdBy": "admin#0001",
            "trackedStats": ["gexp", "bedwars"],
        }
        assert EventConfig.from_dict(data) == sample_config()

    def test_from_dict_accepts_legacy_family_name_and_timestamps(self):
        config = EventConfig.from_dict(
            {
                "name": "Old",
                "startDate": "2024-06-01T00:00:00.000Z",
                "endDate": "2024-06-03T00:00:00.000Z",
                "updateInterval": 1_800_000,
                "active": False,
                "createdBy": "someone",
                "trackedStats": ["gexp", "networkLevel", "unknown"],
            }
        )
        assert config.start_date == date(2024, 6, 1)
        assert config.interval == timedelta(minutes=30)
        assert config.tracked_stats == ["gexp", "network_level"]


def test_normalize_uuid_and_entity_ids():
    dashed = "01234567-89AB-CDEF-0123-456789ABCDEF"
    assert normalize_uuid(dashed) == UUID
    assert is_entity_id(UUID)
    assert not is_entity_id("event-config.json")


class TestPlayerSnapshot:
    def test_counters_include_empty_missing_families(self):
        snapshot = PlayerSnapshot(
            uuid=UUID,
            username="Steve",
            timestamp=1,
            gexp=GexpStats(weekly=500, daily=20),
            bedwars=BedwarsStats(wins=3),
        )
        counters = snapshot.counters()
        assert counters["gexp"] == {"weekly": 500, "daily": 20}
        assert counters["bedwars"]["wins"] == 3
        assert counters["skywars"] == {}
        assert counters["copsandcrims"] == {}
        assert counters["network_level"] == {}

    def test_dict_uses_network_level_key(self):
        snapshot = PlayerSnapshot(uuid=UUID, username="Steve", timestamp=5, network_level=12.5)
        data = snapshot.to_dict()
        assert data["networkLevel"] == 12.5
        assert "bedwars" not in data
        restored = PlayerSnapshot.from_dict(data)
        assert restored == snapshot


def test_player_delta_leaderboard_value_defaults_to_zero():
    delta = PlayerDelta(uuid=UUID, username="Steve", gains={"gexp": {"weekly": 40}})
    assert delta.leaderboard_value("gexp") == 40
    assert delta.leaderboard_value("bedwars") == 0


def test_daily_summary_dict_keys():
    summary = DailySummary(
        date="2024-06-01",
        day_index=1,
        participant_count=2,
        totals={"gexp": 300},
        leaderboards={"gexp": [LeaderboardEntry(UUID, "Steve", 300)]},
        daily_winner=UUID,
        daily_winner_name="Steve",
        generated_at="2024-06-02T00:00:00.000000Z",
    )
    data = summary.to_dict()
    assert data["dayNumber"] == 1
    assert data["totalPlayers"] == 2
    assert data["dailyWinner"] == UUID
    assert DailySummary.from_dict(data) == summary
    assert summary.total_gexp == 300
    assert summary.top("gexp", 0) == []
    assert summary.top("skywars") == []


class TestGiveawayRecord:
    def test_record_pool_replaces_same_day(self):
        record = GiveawayRecord()
        record.record_pool(DailyPool(date="2024-06-02", day_index=2, eligible=["b"]))
        record.record_pool(DailyPool(date="2024-06-01", day_index=1, eligible=["a"]))
        record.record_pool(DailyPool(date="2024-06-02", day_index=2, eligible=["c"]))

        assert [p.day_index for p in record.daily_pools] == [1, 2]
        assert record.pool_for(2).eligible == ["c"]
        assert record.pool_for(3) is None

    def test_lookup_winners(self):
        record = GiveawayRecord(
            daily_winners=[DailyWinner("2024-06-01", UUID, "Steve", 1, 1.5)],
            weekly_winners=[
                WeeklyWinner(1, UUID, "Steve", "2024-06-01", "2024-06-07", 2.0)
            ],
        )
        assert record.daily_winner_for(1).username == "Steve"
        assert record.daily_winner_for(2) is None
        assert record.weekly_winner_for(1).end_date == "2024-06-07"
        assert record.weekly_winner_for(2) is None

    def test_dict_keys(self):
        record = GiveawayRecord(
            daily_winners=[DailyWinner("2024-06-01", UUID, "Steve", 1, 1.5)],
            daily_pools=[DailyPool("2024-06-01", 1, [UUID])],
        )
        data = record.to_dict()
        assert set(data) == {"dailyWinners", "weeklyWinners", "dailyPools"}
        assert data["dailyPools"][0]["eligiblePlayers"] == [UUID]
        assert GiveawayRecord.from_dict(data) == record

    def test_old_winner_records_without_username(self):
        winner = DailyWinner.from_dict({"date": "2024-06-01", "winner": "Steve", "dayNumber": 1})
        assert winner.username == "Steve"
        assert winner.score == 0.0
