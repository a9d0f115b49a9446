from __future__ import annotations

from datetime import date, datetime
from typing import Protocol

import discord

from .models import DaySummary, RangeSummary, Sighting
from .tracker import PresenceTracker

# Discord rejects messages longer than 2000 characters.
MESSAGE_LIMIT = 2000


def format_hours(hours: float) -> str:
    """Render fractional hours as HH:MM for report output."""
    total_minutes = max(0, round(hours * 60))
    whole_hours, minutes = divmod(total_minutes, 60)
    return f"{whole_hours:02}:{minutes:02}"


def format_clock(value: datetime | None) -> str:
    return value.strftime("%H:%M:%S") if value else "--:--:--"


def split_message(content: str, limit: int = MESSAGE_LIMIT) -> list[str]:
    """Split content on line boundaries into chunks no longer than ``limit``."""
    chunks: list[str] = []
    current = ""
    for line in content.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]

        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate

    if current:
        chunks.append(current)
    return chunks


class ReportChannelLike(Protocol):
    async def send(self, content: str, **kwargs): ...


class Reporter:
    def __init__(self, tracker: PresenceTracker) -> None:
        self.tracker = tracker

    def build_daily_content(self, day: date, rows: list[DaySummary]) -> str:
        header = f"**Daily Presence - {day.isoformat()}**"
        if not rows:
            return f"{header}\nNo presence recorded for {day.isoformat()}."

        lines = [header, f"Employees present: {sum(1 for row in rows if row.is_present)}"]
        for row in rows:
            sessions = ", ".join(f"{format_clock(s.start)}-{format_clock(s.end)}" for s in row.sessions)
            lines.append(
                f"- {row.identity}: in `{format_clock(row.first_in)}` out `{format_clock(row.last_out)}` "
                f"total `{format_hours(row.total_hours)}` ({sessions})"
            )
        return "\n".join(lines)

    def build_presence_content(self, summary: DaySummary) -> str:
        day = summary.day.isoformat()
        if not summary.is_present:
            return f"No logs found for {summary.identity} on {day}."

        lines = [
            f"**{summary.identity} - {day}**",
            f"First in: `{format_clock(summary.first_in)}` / Last out: `{format_clock(summary.last_out)}`",
            f"Total: `{format_hours(summary.total_hours)}` over {len(summary.sessions)} session(s)",
        ]
        lines.extend(
            f"{index}. `{format_clock(session.start)}` - `{format_clock(session.end)}`"
            for index, session in enumerate(summary.sessions, start=1)
        )
        return "\n".join(lines)

    def build_range_content(self, start: date, end: date, rows: list[RangeSummary]) -> str:
        header = f"**Presence Summary - {start.isoformat()} to {end.isoformat()}**"
        if not rows:
            return f"{header}\nNo presence recorded in this range."

        lines = [header]
        lines.extend(
            f"- {row.identity}: {row.days_present} day(s), `{format_hours(row.total_hours)}` total"
            for row in rows
        )
        return "\n".join(lines)

    def build_here_content(self, sightings: list[Sighting], window_minutes: int) -> str:
        if not sightings:
            return f"Nobody seen in the last {window_minutes} minutes."

        lines = [f"**Currently present ({len(sightings)})**"]
        lines.extend(
            f"- {item.identity}: last seen `{format_clock(item.last_seen.astimezone(self.tracker.tz))}`"
            for item in sightings
        )
        return "\n".join(lines)

    async def post_daily_report(self, report_channel: ReportChannelLike, day: date) -> int:
        """Post the day's report and return the number of messages sent."""
        rows = self.tracker.daily_report(day)
        chunks = split_message(self.build_daily_content(day, rows))

        for chunk in chunks:
            # Never ping anyone from automated summaries.
            await report_channel.send(chunk, allowed_mentions=discord.AllowedMentions.none())
        return len(chunks)
