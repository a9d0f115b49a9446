from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, Iterator
from zoneinfo import ZoneInfo

from .errors import InvalidRangeError
from .models import DaySummary, RangeDayEntry, RangeSummary, RawEvent, Sighting
from .sessions import (
    DEFAULT_GAP_MINUTES,
    check_gap,
    event_touches_day,
    event_touches_range,
    summarize_day,
    warn_reversed,
)

ExcludePredicate = Callable[[str], bool]


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    if start_date > end_date:
        raise InvalidRangeError(f"Start date {start_date.isoformat()} is after end date {end_date.isoformat()}")

    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def _report_sort_key(summary: DaySummary) -> tuple[bool, datetime, str]:
    first_in = summary.first_in.astimezone(timezone.utc) if summary.first_in else datetime.max.replace(tzinfo=timezone.utc)
    return (summary.first_in is None, first_in, summary.identity)


def _reportable(events: Iterable[RawEvent], exclude: ExcludePredicate | None) -> list[RawEvent]:
    return [event for event in events if exclude is None or not exclude(event.identity)]


def _daily_report(
    events: list[RawEvent],
    day: date,
    tz: ZoneInfo,
    gap_minutes: float,
) -> list[DaySummary]:
    groups: dict[str, list[RawEvent]] = defaultdict(list)
    for event in events:
        if event_touches_day(event, day, tz):
            groups[event.identity].append(event)

    summaries = [summarize_day(grouped, identity, day, tz, gap_minutes) for identity, grouped in groups.items()]
    summaries.sort(key=_report_sort_key)
    return summaries


def build_daily_report(
    events: Iterable[RawEvent],
    day: date,
    tz: ZoneInfo,
    gap_minutes: float = DEFAULT_GAP_MINUTES,
    exclude: ExcludePredicate | None = None,
) -> list[DaySummary]:
    """One summary per identity seen on ``day``, earliest arrival first."""
    check_gap(gap_minutes)
    pool = [event for event in _reportable(events, exclude) if event_touches_day(event, day, tz)]
    warn_reversed(pool)
    return _daily_report(pool, day, tz, gap_minutes)


def build_range_summary(
    events: Iterable[RawEvent],
    start_date: date,
    end_date: date,
    tz: ZoneInfo,
    gap_minutes: float = DEFAULT_GAP_MINUTES,
    exclude: ExcludePredicate | None = None,
) -> list[RangeSummary]:
    check_gap(gap_minutes)
    days = list(iter_days(start_date, end_date))
    pool = [event for event in _reportable(events, exclude) if event_touches_range(event, start_date, end_date, tz)]
    warn_reversed(pool)

    entries: dict[str, list[RangeDayEntry]] = defaultdict(list)
    for day in days:
        for summary in _daily_report(pool, day, tz, gap_minutes):
            entries[summary.identity].append(
                RangeDayEntry(
                    day=day,
                    first_in=summary.first_in,
                    last_out=summary.last_out,
                    total_hours=summary.total_hours,
                    session_count=len(summary.sessions),
                )
            )

    results: list[RangeSummary] = []
    for identity in sorted(entries):
        day_entries = entries[identity]
        results.append(
            RangeSummary(
                identity=identity,
                days_present=sum(1 for entry in day_entries if entry.session_count > 0),
                total_hours=round(sum(entry.total_hours for entry in day_entries), 2),
                days=tuple(day_entries),
            )
        )
    return results


def latest_sightings(
    events: Iterable[RawEvent],
    since: datetime,
    exclude: ExcludePredicate | None = None,
) -> list[Sighting]:
    """Most recent sighting per identity at or after ``since``, newest first."""
    cutoff = since.astimezone(timezone.utc)
    latest: dict[str, datetime] = {}

    for event in events:
        if exclude is not None and exclude(event.identity):
            continue
        seen = max(event.observed_at, event.last_observed_at)
        if seen.astimezone(timezone.utc) < cutoff:
            continue
        previous = latest.get(event.identity)
        if previous is None or seen > previous:
            latest[event.identity] = seen

    sightings = [Sighting(identity=identity, last_seen=seen) for identity, seen in latest.items()]
    sightings.sort(key=lambda item: (-item.last_seen.timestamp(), item.identity))
    return sightings
