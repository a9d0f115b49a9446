from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from .errors import MalformedEventError


def _parse_timestamp(value: Any, tz: ZoneInfo) -> datetime | None:
    if value is None or value == "":
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        # Upstream logs carry wall-clock local time without an offset.
        return parsed.replace(tzinfo=tz)
    return parsed


@dataclass(frozen=True, slots=True)
class RawEvent:
    identity: str
    observed_at: datetime
    last_observed_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any], tz: ZoneInfo) -> RawEvent:
        """Build an event from a storage row with ``identity``/``observed_at``/``last_observed_at`` keys."""
        identity = row.get("identity")
        if not identity:
            raise MalformedEventError("Row has no identity")

        try:
            observed = _parse_timestamp(row.get("observed_at"), tz)
            last_observed = _parse_timestamp(row.get("last_observed_at"), tz)
        except (TypeError, ValueError) as exc:
            raise MalformedEventError(f"Unparseable timestamp for {identity}") from exc

        if observed is None:
            raise MalformedEventError(f"Row for {identity} has no observed_at")

        return cls(
            identity=str(identity),
            observed_at=observed,
            last_observed_at=last_observed or observed,
        )

    @property
    def is_reversed(self) -> bool:
        return self.last_observed_at < self.observed_at


@dataclass(frozen=True, slots=True)
class Interval:
    start: datetime
    end: datetime

    @property
    def seconds(self) -> float:
        return (self.end.astimezone(timezone.utc) - self.start.astimezone(timezone.utc)).total_seconds()


@dataclass(frozen=True, slots=True)
class Session:
    identity: str
    start: datetime
    end: datetime
    day: date

    @property
    def seconds(self) -> float:
        return (self.end.astimezone(timezone.utc) - self.start.astimezone(timezone.utc)).total_seconds()

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=self.seconds)


@dataclass(frozen=True, slots=True)
class DaySummary:
    identity: str
    day: date
    sessions: tuple[Session, ...]
    first_in: datetime | None
    last_out: datetime | None
    total_hours: float
    observations: int = 0

    @classmethod
    def from_sessions(
        cls,
        identity: str,
        day: date,
        sessions: list[Session],
        observations: int = 0,
    ) -> DaySummary:
        total_seconds = sum(session.seconds for session in sessions)
        return cls(
            identity=identity,
            day=day,
            sessions=tuple(sessions),
            first_in=sessions[0].start if sessions else None,
            last_out=sessions[-1].end if sessions else None,
            total_hours=round(total_seconds / 3600, 2),
            observations=observations,
        )

    @property
    def is_present(self) -> bool:
        return bool(self.sessions)


@dataclass(frozen=True, slots=True)
class RangeDayEntry:
    day: date
    first_in: datetime | None
    last_out: datetime | None
    total_hours: float
    session_count: int


@dataclass(frozen=True, slots=True)
class RangeSummary:
    identity: str
    days_present: int
    total_hours: float
    days: tuple[RangeDayEntry, ...]


@dataclass(frozen=True, slots=True)
class Sighting:
    identity: str
    last_seen: datetime
