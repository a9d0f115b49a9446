from __future__ import annotations

from datetime import date, datetime, time, timedelta

import discord

from .errors import PresenceError
from .reporter import split_message
from .sessions import utc_now


def parse_day(value: str | None, default: date) -> date:
    """Parse a YYYY-MM-DD option, falling back to ``default`` when omitted."""
    if not value:
        return default
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date `{value}`; use YYYY-MM-DD") from exc


async def _reply(interaction: discord.Interaction, content: str) -> None:
    chunks = split_message(content)
    await interaction.response.send_message(chunks[0], ephemeral=True)
    for chunk in chunks[1:]:
        await interaction.followup.send(chunk, ephemeral=True)


def register_commands(bot):
    """Register all slash commands on the bot. Called once during setup."""
    guild_scope = discord.Object(id=bot.config.guild_id)

    @bot.tree.command(name="status", description="Show bot status and configuration", guild=guild_scope)
    async def status(interaction):
        now_local = utc_now().astimezone(bot.config.timezone)
        next_midnight_local = datetime.combine(now_local.date() + timedelta(days=1), time.min, tzinfo=bot.config.timezone)

        lines = [
            "Presence tracker status: online",
            f"Guild ID: `{bot.config.guild_id}`",
            f"Report channel ID: `{bot.config.report_channel_id}`",
            f"Timezone: `{bot.config.timezone.key}`",
            f"Session gap: `{bot.config.gap_minutes}` minutes",
            f"Current local time: `{now_local.isoformat()}`",
            f"Next scheduled report: `{next_midnight_local.isoformat()}`",
        ]
        await interaction.response.send_message("\n".join(lines), ephemeral=True)

    @bot.tree.command(name="presence", description="Show one employee's sessions for a day", guild=guild_scope)
    @discord.app_commands.describe(
        name="Employee name or part of it",
        day="Date in YYYY-MM-DD format (default today)",
        gap="Minutes of silence that split sessions (default from config)",
    )
    async def presence(interaction, name: str, day: str | None = None, gap: int | None = None):
        try:
            target = parse_day(day, bot.tracker.local_day())
            summary = bot.tracker.employee_presence(name, target, gap_minutes=gap)
        except ValueError as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        except Exception as exc:
            bot.logger.exception("/presence failed")
            await interaction.response.send_message(f"Failed to load presence: `{exc}`", ephemeral=True)
            return

        await _reply(interaction, bot.reporter.build_presence_content(summary))

    @bot.tree.command(name="daily", description="Show every employee present on a day", guild=guild_scope)
    @discord.app_commands.describe(
        day="Date in YYYY-MM-DD format (default today)",
        gap="Minutes of silence that split sessions (default from config)",
    )
    async def daily(interaction, day: str | None = None, gap: int | None = None):
        try:
            target = parse_day(day, bot.tracker.local_day())
            rows = bot.tracker.daily_report(target, gap_minutes=gap)
        except ValueError as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        except Exception as exc:
            bot.logger.exception("/daily failed")
            await interaction.response.send_message(f"Failed to build daily report: `{exc}`", ephemeral=True)
            return

        await _reply(interaction, bot.reporter.build_daily_content(target, rows))

    @bot.tree.command(name="range", description="Summarize presence over a date range", guild=guild_scope)
    @discord.app_commands.describe(
        start="First day (YYYY-MM-DD)",
        end="Last day (YYYY-MM-DD)",
        gap="Minutes of silence that split sessions (default from config)",
    )
    async def range_(interaction, start: str, end: str, gap: int | None = None):
        today = bot.tracker.local_day()
        try:
            start_day = parse_day(start, today)
            end_day = parse_day(end, today)
            rows = bot.tracker.range_summary(start_day, end_day, gap_minutes=gap)
        except PresenceError as exc:
            await interaction.response.send_message(f"Invalid range: {exc}", ephemeral=True)
            return
        except ValueError as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        except Exception as exc:
            bot.logger.exception("/range failed")
            await interaction.response.send_message(f"Failed to build range summary: `{exc}`", ephemeral=True)
            return

        await _reply(interaction, bot.reporter.build_range_content(start_day, end_day, rows))

    @bot.tree.command(name="here", description="Show who is connected right now", guild=guild_scope)
    async def here(interaction):
        window = bot.config.presence_window_minutes
        try:
            sightings = bot.tracker.currently_present(window_minutes=window)
        except Exception as exc:
            bot.logger.exception("/here failed")
            await interaction.response.send_message(f"Failed to load current presence: `{exc}`", ephemeral=True)
            return

        await _reply(interaction, bot.reporter.build_here_content(sightings, window))
