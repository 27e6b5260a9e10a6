"""Administrative commands for the event tracker.

Each command is a plain coroutine (``run_*``) that returns the reply text and
raises :class:`EventTrackerError` subclasses for user-facing failures. The
slash command wrappers and the legacy ``!`` chat commands only deal with
permissions and delivery.
"""

from __future__ import annotations

import logging
from typing import Final

import discord
from discord import app_commands

from .engine import EventEngine
from .errors import EventTrackerError
from .models import METRIC_FAMILIES
from .validation import format_interval, split_start_arguments

log: Final = logging.getLogger("event-tracker")

TEXT_PREFIX: Final = "!"
ADMIN_ONLY_MESSAGE: Final = "This command requires administrator permissions."
UNEXPECTED_MESSAGE: Final = "An unexpected error occurred. Check the bot logs."
REBOOT_COMMANDS: Final = frozenset({"reboot", "saveandreboot"})


def is_admin(user: discord.abc.User) -> bool:
    permissions = getattr(user, "guild_permissions", None)
    return bool(permissions and permissions.administrator)


async def send_ephemeral(interaction: discord.Interaction, message: str) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(message, ephemeral=True)
    else:
        await interaction.response.send_message(message, ephemeral=True)


# ----- Command bodies -----
async def run_start(
    engine: EventEngine,
    requester: str,
    name: str,
    start_date: str,
    end_date: str,
    interval: str,
    metrics: str | None = None,
) -> str:
    baseline = await engine.start(name, start_date, end_date, interval, metrics, requester)
    config = engine.config
    lines = [
        f"Event **{config.name}** started!",
        f"Period: {config.start_date.isoformat()} to {config.end_date.isoformat()}",
        f"Update interval: {format_interval(config.interval)}",
        f"Tracking: {', '.join(config.tracked_stats)}",
    ]
    if baseline.skipped:
        lines.append("Warning: guild roster unavailable, baseline was not captured.")
    else:
        lines.append(
            f"Baseline captured for {baseline.succeeded} members ({baseline.failed} errors)."
        )
    return "\n".join(lines)


async def run_stop(engine: EventEngine, requester: str) -> str:
    name = engine.config.name if engine.config else ""
    summary = await engine.stop(requester)
    message = f"Event **{name}** stopped. Final report generated."
    if summary is not None and summary.participant_count == 0:
        message += " No participant data was recorded."
    return message


async def run_report(engine: EventEngine) -> str:
    summary = await engine.force_report()
    if summary is None:
        return "A report is already being generated."
    return f"Daily report generated for day {summary.day_index}."


async def run_save(engine: EventEngine) -> str:
    outcome = await engine.force_save()
    if outcome is None:
        return "No active event. Start one first."
    if outcome.skipped:
        return "Event data could not be refreshed right now. Check the bot logs."
    return f"Event data saved: {outcome.succeeded} members updated ({outcome.failed} errors)."


def status_message(engine: EventEngine) -> str:
    config = engine.status()
    if config is None:
        return "No event configured."
    lines = [
        f"Event: **{config.name}**",
        f"Status: {'Active' if config.active else 'Inactive'}",
        f"Period: {config.start_date.isoformat()} to {config.end_date.isoformat()}",
        f"Update interval: {format_interval(config.interval)}",
        f"Tracking: {', '.join(config.tracked_stats)}",
        f"Created by: {config.created_by}",
    ]
    if config.active:
        day_index = engine.current_day_index()
        if day_index < 1:
            lines.append(f"Starts in {1 - day_index} day(s)")
        else:
            lines.append(f"Current day: {day_index} of {config.last_day_index}")
    return "\n".join(lines)


async def _respond(interaction: discord.Interaction, body) -> None:
    try:
        message = await body
    except EventTrackerError as exc:
        message = str(exc)
    except Exception:  # pylint: disable=broad-except
        log.exception("Command /%s failed", getattr(interaction.command, "name", "?"))
        message = UNEXPECTED_MESSAGE
    await send_ephemeral(interaction, message)


# ----- Slash commands -----
def register_commands(tree: app_commands.CommandTree, engine: EventEngine) -> None:
    """Attach the event tracker commands to ``tree``."""

    @tree.command(name="startevent", description="Start tracking a guild event (Admin only)")
    @app_commands.describe(
        name="Event name",
        start_date="First day of the event (YYYY-MM-DD)",
        end_date="Last day of the event (YYYY-MM-DD)",
        interval="Stats update interval, e.g. 30m, 2h or 1d",
        metrics="Comma separated families to track: " + ", ".join(METRIC_FAMILIES),
    )
    async def startevent(
        interaction: discord.Interaction,
        name: str,
        start_date: str,
        end_date: str,
        interval: str,
        metrics: str | None = None,
    ) -> None:
        if not is_admin(interaction.user):
            await send_ephemeral(interaction, ADMIN_ONLY_MESSAGE)
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        await _respond(
            interaction,
            run_start(
                engine, str(interaction.user), name, start_date, end_date, interval, metrics
            ),
        )

    @tree.command(name="stopevent", description="Stop the active event (Admin only)")
    async def stopevent(interaction: discord.Interaction) -> None:
        if not is_admin(interaction.user):
            await send_ephemeral(interaction, ADMIN_ONLY_MESSAGE)
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        await _respond(interaction, run_stop(engine, str(interaction.user)))

    @tree.command(
        name="dailyeventreport", description="Generate the daily event report now (Admin only)"
    )
    async def dailyeventreport(interaction: discord.Interaction) -> None:
        if not is_admin(interaction.user):
            await send_ephemeral(interaction, ADMIN_ONLY_MESSAGE)
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        await _respond(interaction, run_report(engine))

    @tree.command(name="saveeventdata", description="Refresh and save member stats now (Admin only)")
    async def saveeventdata(interaction: discord.Interaction) -> None:
        if not is_admin(interaction.user):
            await send_ephemeral(interaction, ADMIN_ONLY_MESSAGE)
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        await _respond(interaction, run_save(engine))

    @tree.command(name="eventstatus", description="Show the current event status")
    async def eventstatus(interaction: discord.Interaction) -> None:
        try:
            message = status_message(engine)
        except EventTrackerError as exc:
            message = str(exc)
        await send_ephemeral(interaction, message)


# ----- Legacy chat commands -----
async def handle_text_command(engine: EventEngine, message: discord.Message) -> bool:
    """Handle ``!startevent`` style messages. Returns True when one was handled."""
    content = (message.content or "").strip()
    if not content.startswith(TEXT_PREFIX):
        return False
    command, _, arguments = content[len(TEXT_PREFIX):].partition(" ")
    command = command.lower()
    if command in REBOOT_COMMANDS:
        # Another handler announces the reboot; only flush state here.
        if is_admin(message.author):
            try:
                await engine.pre_reboot_save()
            except Exception:  # pylint: disable=broad-except
                log.exception("Failed to save event data before reboot")
        return False
    if command not in {"startevent", "stopevent", "dailyeventreport", "saveeventdata", "eventstatus"}:
        return False

    if command != "eventstatus" and not is_admin(message.author):
        await message.reply(ADMIN_ONLY_MESSAGE)
        return True

    requester = str(message.author)
    try:
        if command == "startevent":
            name, start, end, interval = split_start_arguments(arguments)
            reply = await run_start(engine, requester, name, start, end, interval)
        elif command == "stopevent":
            reply = await run_stop(engine, requester)
        elif command == "dailyeventreport":
            reply = await run_report(engine)
        elif command == "saveeventdata":
            reply = await run_save(engine)
        else:
            reply = status_message(engine)
    except EventTrackerError as exc:
        reply = str(exc)
    except Exception:  # pylint: disable=broad-except
        log.exception("Command !%s failed", command)
        reply = UNEXPECTED_MESSAGE
    await message.reply(reply)
    return True
