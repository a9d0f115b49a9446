from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from .analytics import ExcludePredicate, build_daily_report, build_range_summary, latest_sightings
from .errors import InvalidRangeError
from .identity import is_excluded
from .models import DaySummary, RangeSummary, RawEvent, Sighting
from .sessions import DEFAULT_GAP_MINUTES, check_gap, reconstruct_day, utc_now

DEFAULT_PRESENCE_WINDOW_MINUTES = 30


class EventSource(Protocol):
    def fetch_events(
        self,
        identity: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[RawEvent]: ...

    def fetch_seen_since(self, cutoff: datetime) -> list[RawEvent]: ...


class PresenceTracker:
    """Answers presence questions over an injected event source.

    Each call performs a single fetch and then hands the rows to the pure
    reconstruction functions.
    """

    def __init__(
        self,
        store: EventSource,
        tz: ZoneInfo,
        gap_minutes: float = DEFAULT_GAP_MINUTES,
        exclude: ExcludePredicate | None = is_excluded,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.tz = tz
        self.gap_minutes = check_gap(gap_minutes)
        self.exclude = exclude
        self.logger = logger or logging.getLogger(__name__)

    def _gap(self, gap_minutes: float | None) -> float:
        return self.gap_minutes if gap_minutes is None else check_gap(gap_minutes)

    def employee_presence(self, name: str, day: date, gap_minutes: float | None = None) -> DaySummary:
        query = name.strip()
        if not query:
            raise ValueError("An employee name is required")

        gap = self._gap(gap_minutes)
        self.logger.debug("employee_presence name=%s day=%s gap=%s", query, day, gap)
        events = self.store.fetch_events(identity=query, start=day, end=day)
        return reconstruct_day(events, query, day, self.tz, gap, partial=True)

    def daily_report(self, day: date, gap_minutes: float | None = None) -> list[DaySummary]:
        gap = self._gap(gap_minutes)
        self.logger.debug("daily_report day=%s gap=%s", day, gap)
        events = self.store.fetch_events(start=day, end=day)
        return build_daily_report(events, day, self.tz, gap, self.exclude)

    def range_summary(self, start: date, end: date, gap_minutes: float | None = None) -> list[RangeSummary]:
        # Reject reversed ranges before touching storage.
        if start > end:
            raise InvalidRangeError(f"Start date {start.isoformat()} is after end date {end.isoformat()}")

        gap = self._gap(gap_minutes)
        self.logger.debug("range_summary start=%s end=%s gap=%s", start, end, gap)
        events = self.store.fetch_events(start=start, end=end)
        return build_range_summary(events, start, end, self.tz, gap, self.exclude)

    def currently_present(
        self,
        now_utc: datetime | None = None,
        window_minutes: int = DEFAULT_PRESENCE_WINDOW_MINUTES,
    ) -> list[Sighting]:
        now = now_utc or utc_now()
        cutoff = now - timedelta(minutes=window_minutes)
        events = self.store.fetch_seen_since(cutoff)
        return latest_sightings(events, cutoff, self.exclude)

    def local_day(self, dt_utc: datetime | None = None) -> date:
        current = dt_utc or utc_now()
        return current.astimezone(self.tz).date()

    def previous_local_day(self, dt_utc: datetime | None = None) -> date:
        return self.local_day(dt_utc) - timedelta(days=1)
