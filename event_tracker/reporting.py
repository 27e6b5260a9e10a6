from __future__ import annotations

import datetime
import logging
from typing import Final, Protocol

import discord

from .errors import DeliveryError
from .models import DailySummary, EventConfig

log: Final = logging.getLogger("event-tracker")

REPORT_SIZE: Final = 5
FOOTER_TEXT: Final = "Guild Event Tracker"

COLOR_WEEKLY: Final = 0xFFD700
COLOR_DAILY: Final = 0x00FF00
COLOR_FINAL: Final = 0xFF0000
COLOR_DEFAULT: Final = 0x3498DB

# (field title, line suffix, inline)
FAMILY_FIELDS: Final = {
    "gexp": ("Top GEXP Gainers", "", False),
    "bedwars": ("Top Bedwars Winners", " wins", True),
    "skywars": ("Top SkyWars Winners", " wins", True),
    "copsandcrims": ("Top Cops and Crims Winners", " wins", True),
    "network_level": ("Top Network Level Gains", "", False),
}


class Notifier(Protocol):
    async def send(self, embed: discord.Embed) -> None: ...


def format_number(value: float) -> str:
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def _format_line(position: int, family: str, username: str, gained: float) -> str:
    _, suffix, _ = FAMILY_FIELDS[family]
    if family == "gexp":
        return f"{position}. {username}: {format_number(gained)}"
    if family == "network_level":
        return f"{position}. {username}: +{gained}"
    return f"{position}. {username}: {format_number(gained)}{suffix}"


def render_report(
    config: EventConfig,
    summary: DailySummary,
    *,
    final: bool = False,
    size: int = REPORT_SIZE,
    now: datetime.datetime | None = None,
) -> discord.Embed:
    title = (
        f"Final Event Report: {config.name}" if final else f"Daily Event Report: {config.name}"
    )
    if summary.weekly_winner:
        color = COLOR_WEEKLY
    elif summary.daily_winner:
        color = COLOR_DAILY
    elif final:
        color = COLOR_FINAL
    else:
        color = COLOR_DEFAULT

    embed = discord.Embed(
        title=title,
        description=(
            f"Event Period: {config.start_date.isoformat()} to {config.end_date.isoformat()}"
        ),
        color=color,
        timestamp=now or datetime.datetime.now(tz=datetime.UTC),
    )
    embed.add_field(
        name="Players Participating", value=str(summary.participant_count), inline=True
    )
    embed.add_field(
        name="Total GEXP Gained", value=format_number(summary.total_gexp), inline=True
    )
    embed.add_field(
        name="Report Date", value=f"{summary.date} (Day {summary.day_index})", inline=True
    )

    if summary.daily_winner:
        embed.add_field(
            name="Daily Giveaway Winner",
            value=(
                f"**{summary.daily_winner_name or summary.daily_winner}** 🎉\n"
                "Congratulations! You had the strongest showing among today's top performers!"
            ),
            inline=False,
        )
    if summary.weekly_winner:
        week = summary.day_index // 7
        embed.add_field(
            name="WEEKLY GIVEAWAY WINNER",
            value=(
                f"**{summary.weekly_winner_name or summary.weekly_winner}** 🎊\n"
                f"Congratulations on winning Week {week}! "
                "You led all top performers this week!"
            ),
            inline=False,
        )

    for family, (field_name, _, inline) in FAMILY_FIELDS.items():
        if family not in summary.leaderboards:
            continue
        lines = [
            _format_line(position, family, entry.username, entry.gained)
            for position, entry in enumerate(summary.top(family, size), start=1)
        ]
        embed.add_field(name=field_name, value="\n".join(lines) or "No data", inline=inline)

    embed.set_footer(text=FOOTER_TEXT)
    return embed


class ReportDispatcher:
    def __init__(self, notifier: Notifier | None, *, size: int = REPORT_SIZE) -> None:
        self._notifier = notifier
        self._size = size

    async def dispatch(
        self, config: EventConfig, summary: DailySummary, *, final: bool = False
    ) -> bool:
        """Render and deliver a report. Returns False when delivery failed."""
        if self._notifier is None:
            log.warning("Notification channel not available, skipping report")
            return False
        embed = render_report(config, summary, final=final, size=self._size)
        try:
            await self._notifier.send(embed)
        except DeliveryError as exc:
            log.error("Failed to send Discord report: %s", exc)
            return False
        return True
