from datetime import date, timedelta

import pytest

from event_tracker.lottery import LotterySelector, eligible_pool, pick_winner
from event_tracker.models import (
    DailySummary,
    DailyWinner,
    EventConfig,
    GiveawayRecord,
    LeaderboardEntry,
    WeeklyWinner,
)

CONFIG = EventConfig(
    name="Grind",
    start_date=date(2024, 6, 1),
    end_date=date(2024, 6, 30),
    interval=timedelta(hours=1),
    active=True,
    created_by="admin",
)


def summary(day_index: int, gexp: dict[str, float], *, participants=None, bedwars=None):
    leaderboards = {
        "gexp": [
            LeaderboardEntry(uuid, uuid.upper(), gained)
            for uuid, gained in sorted(gexp.items(), key=lambda kv: kv[1], reverse=True)
        ]
    }
    if bedwars is not None:
        leaderboards["bedwars"] = [LeaderboardEntry(uuid, uuid.upper(), 1) for uuid in bedwars]
    return DailySummary(
        date=CONFIG.date_for_day(day_index).isoformat(),
        day_index=day_index,
        participant_count=len(gexp) if participants is None else participants,
        totals={"gexp": sum(gexp.values())},
        leaderboards=leaderboards,
    )


def test_eligible_pool_is_union_in_first_appearance_order():
    s = summary(1, {"a": 30, "b": 20}, bedwars=["c", "a", "d"])
    assert eligible_pool(s) == ["a", "b", "c", "d"]
    assert eligible_pool(s, depth=1) == ["a", "c"]


def test_pick_winner_skips_non_positive_and_keeps_first_on_tie():
    assert pick_winner([("a", 0), ("b", -5)], 10) is None
    assert pick_winner([("a", 20), ("b", 20), ("c", 10)], 10) == ("a", 2.0, 20)


class TestDailyDraw:
    def test_single_participant_scores_one(self):
        record = GiveawayRecord()
        result = LotterySelector(record).draw_daily(summary(1, {"a": 300}))

        assert result.winner == "a"
        assert result.username == "A"
        assert result.score == pytest.approx(1.0)
        assert result.average == 300
        assert record.daily_winners == [
            DailyWinner(date="2024-06-01", winner="a", username="A", day_index=1, score=1.0)
        ]

    def test_highest_ratio_wins(self):
        record = GiveawayRecord()
        result = LotterySelector(record).draw_daily(summary(2, {"a": 600, "b": 300, "c": 0}))

        assert result.winner == "a"
        assert result.score == pytest.approx(2.0)
        assert result.pool == ["a", "b", "c"]
        assert record.pool_for(2).eligible == ["a", "b", "c"]

    def test_zero_aggregate_has_no_winner(self):
        record = GiveawayRecord()
        result = LotterySelector(record).draw_daily(summary(1, {"a": 0, "b": 0}))

        assert result.winner is None
        assert record.daily_winners == []
        assert record.pool_for(1).eligible == ["a", "b"]

    def test_no_participants(self):
        record = GiveawayRecord()
        result = LotterySelector(record).draw_daily(summary(1, {}))

        assert result.winner is None
        assert result.average == 1
        assert record.pool_for(1).eligible == []

    def test_rerun_reuses_recorded_winner(self):
        record = GiveawayRecord()
        selector = LotterySelector(record)
        selector.draw_daily(summary(3, {"a": 500, "b": 100}))

        again = selector.draw_daily(summary(3, {"a": 100, "b": 500}))

        assert again.reused is True
        assert again.winner == "a"
        assert len(record.daily_winners) == 1
        assert again.pool == ["a", "b"]
        assert len(record.daily_pools) == 1
        assert record.pool_for(3).eligible == ["a", "b"]

    def test_rerun_keeps_the_winning_pool_when_ranking_changes(self):
        record = GiveawayRecord()
        selector = LotterySelector(record)
        first = selector.draw_daily(summary(1, {"p0": 500}))
        assert first.winner == "p0"

        overtaken = {f"q{i:02d}": 1001 + i for i in range(11)}
        overtaken["p0"] = 500
        again = selector.draw_daily(summary(1, overtaken))

        assert again.reused is True
        assert again.winner == "p0"
        assert record.pool_for(1).eligible == ["p0"]
        for winner in record.daily_winners:
            assert winner.winner in record.pool_for(winner.day_index).eligible

    def test_pool_depth_limits_candidates(self):
        gains = {f"p{i:02d}": 100 - i for i in range(12)}
        record = GiveawayRecord()
        result = LotterySelector(record, depth=10).draw_daily(summary(1, gains))
        assert len(result.pool) == 10
        assert result.winner == "p00"


class TestWeeklyDraw:
    @staticmethod
    def week(first_day: int = 1) -> list[DailySummary]:
        # "a" is steady, "b" has one huge day
        days = []
        for offset in range(7):
            gains = {"a": 100, "b": 700 if offset == 3 else 10}
            days.append(summary(first_day + offset, gains))
        return days

    def test_only_on_week_boundaries(self):
        selector = LotterySelector(GiveawayRecord())
        for day in (0, 1, 6, 8, 13):
            assert selector.draw_weekly(CONFIG, self.week(), day) is None

    def test_week_total_over_average_participants(self):
        record = GiveawayRecord()
        result = LotterySelector(record).draw_weekly(CONFIG, self.week(), 7)

        # week total 700 + 760 = 1460, 14 participant-days over 7 days
        assert result.average == pytest.approx(1460 / 2)
        assert result.winner == "b"
        assert result.gained == 760
        assert result.score == pytest.approx(760 / 730)
        assert record.weekly_winners == [
            WeeklyWinner(
                week_index=1,
                winner="b",
                username="B",
                start_date="2024-06-01",
                end_date="2024-06-07",
                score=result.score,
            )
        ]

    def test_window_excludes_other_weeks(self):
        history = self.week(1) + [summary(d, {"c": 5000}) for d in range(8, 15)]
        result = LotterySelector(GiveawayRecord()).draw_weekly(CONFIG, history, 7)
        assert "c" not in result.pool

        second = LotterySelector(GiveawayRecord()).draw_weekly(CONFIG, history, 14)
        assert second.winner == "c"
        assert second.pool == ["c"]

    def test_second_week_dates(self):
        record = GiveawayRecord()
        LotterySelector(record).draw_weekly(CONFIG, self.week(8), 14)
        winner = record.weekly_winner_for(2)
        assert (winner.start_date, winner.end_date) == ("2024-06-08", "2024-06-14")

    def test_partial_week_uses_days_present(self):
        days = [summary(5, {"a": 100}), summary(7, {"a": 100, "b": 300})]
        result = LotterySelector(GiveawayRecord()).draw_weekly(CONFIG, days, 7)
        # 500 total, 3 participant-days over 2 days present
        assert result.average == pytest.approx(500 / 1.5)
        assert result.winner == "b"

    def test_no_summaries(self):
        result = LotterySelector(GiveawayRecord()).draw_weekly(CONFIG, [], 7)
        assert result.winner is None

    def test_rerun_reuses_recorded_winner(self):
        record = GiveawayRecord()
        selector = LotterySelector(record)
        selector.draw_weekly(CONFIG, self.week(), 7)

        again = selector.draw_weekly(CONFIG, self.week(), 7)

        assert again.reused is True
        assert again.winner == "b"
        assert len(record.weekly_winners) == 1
