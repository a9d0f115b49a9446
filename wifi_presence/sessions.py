from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

from .models import DaySummary, Interval, RawEvent, Session

DEFAULT_GAP_MINUTES = 30
# The upstream controller reports whole seconds, so a day ends at 23:59:59.
DAY_END = time(23, 59, 59)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    return value.astimezone(timezone.utc)


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Return the first and last second of ``day`` in ``tz`` as UTC instants."""
    day_start = datetime.combine(day, time.min, tzinfo=tz)
    day_end = datetime.combine(day, DAY_END, tzinfo=tz)
    return day_start.astimezone(timezone.utc), day_end.astimezone(timezone.utc)


def check_gap(gap_minutes: float) -> float:
    if gap_minutes <= 0:
        raise ValueError("gap_minutes must be positive")
    return gap_minutes


def event_span(event: RawEvent) -> Interval:
    """Raw span of an event; a reversed span collapses to its first sighting."""
    if event.is_reversed:
        return Interval(event.observed_at, event.observed_at)
    return Interval(event.observed_at, event.last_observed_at)


def warn_reversed(events: Iterable[RawEvent]) -> int:
    """Log each event whose last sighting precedes its first; returns how many."""
    flagged = 0
    for event in events:
        if not event.is_reversed:
            continue
        flagged += 1
        logger.warning(
            "Reversed span for %s: last seen %s before first seen %s; using a point observation",
            event.identity,
            event.last_observed_at.isoformat(),
            event.observed_at.isoformat(),
        )
    return flagged


def clamp_interval(interval: Interval, day: date, tz: ZoneInfo) -> Interval | None:
    day_start, day_end = local_day_bounds(day, tz)
    start = max(_to_utc(interval.start), day_start)
    end = min(_to_utc(interval.end), day_end)

    if end < start:
        return None
    return Interval(start.astimezone(tz), end.astimezone(tz))


def event_touches_day(event: RawEvent, day: date, tz: ZoneInfo) -> bool:
    return clamp_interval(event_span(event), day, tz) is not None


def event_touches_range(event: RawEvent, start: date, end: date, tz: ZoneInfo) -> bool:
    range_start, _ = local_day_bounds(start, tz)
    _, range_end = local_day_bounds(end, tz)
    span = event_span(event)
    return _to_utc(span.end) >= range_start and _to_utc(span.start) <= range_end


def merge_sessions(
    intervals: Iterable[Interval],
    gap_minutes: float = DEFAULT_GAP_MINUTES,
    identity: str = "",
    day: date | None = None,
) -> list[Session]:
    """Merge intervals into disjoint sessions.

    Intervals are ordered by start, then end, so the shortest interval at a
    given start is absorbed first. A new session opens only when the idle time
    since the current session's end exceeds ``gap_minutes``. Sessions are
    tagged with ``day``, or with the date of their start when it is omitted.
    """
    check_gap(gap_minutes)

    ordered = sorted(intervals, key=lambda item: (_to_utc(item.start), _to_utc(item.end)))
    if not ordered:
        return []

    gap = timedelta(minutes=gap_minutes)
    sessions: list[Session] = []
    current_start, current_end = ordered[0].start, ordered[0].end

    def close() -> None:
        sessions.append(
            Session(identity=identity, start=current_start, end=current_end, day=day or current_start.date())
        )

    for interval in ordered[1:]:
        if _to_utc(interval.start) - _to_utc(current_end) > gap:
            close()
            current_start, current_end = interval.start, interval.end
        elif _to_utc(interval.end) > _to_utc(current_end):
            current_end = interval.end

    close()
    return sessions


def _matches(event_identity: str, identity: str, partial: bool) -> bool:
    if partial:
        return identity.lower() in event_identity.lower()
    return event_identity == identity


def summarize_day(
    events: Iterable[RawEvent],
    identity: str,
    day: date,
    tz: ZoneInfo,
    gap_minutes: float = DEFAULT_GAP_MINUTES,
) -> DaySummary:
    """Clamp and merge events already attributed to ``identity``."""
    intervals: list[Interval] = []
    for event in events:
        clamped = clamp_interval(event_span(event), day, tz)
        if clamped is not None:
            intervals.append(clamped)

    sessions = merge_sessions(intervals, gap_minutes, identity=identity, day=day)
    return DaySummary.from_sessions(identity, day, sessions, observations=len(intervals))


def reconstruct_day(
    events: Iterable[RawEvent],
    identity: str,
    day: date,
    tz: ZoneInfo,
    gap_minutes: float = DEFAULT_GAP_MINUTES,
    *,
    partial: bool = False,
) -> DaySummary:
    """Rebuild one identity's sessions for one local day.

    With ``partial`` the identity is matched as a case-insensitive substring
    and the summary carries the first matching identity seen that day.
    Otherwise only exact matches count. An identity with no activity gets an
    empty summary.
    """
    matched = [
        event
        for event in events
        if _matches(event.identity, identity, partial) and event_touches_day(event, day, tz)
    ]
    warn_reversed(matched)

    name = matched[0].identity if matched else identity
    return summarize_day(matched, name, day, tz, gap_minutes)
