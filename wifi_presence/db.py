from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping
from zoneinfo import ZoneInfo

from .errors import MalformedEventError
from .identity import normalize_name
from .models import RawEvent
from .sessions import event_span, local_day_bounds

logger = logging.getLogger(__name__)

# Malformed rows may carry last_seen < first_seen or no last_seen at all.
_SPAN_END = "MAX(first_seen, COALESCE(last_seen, first_seen))"


def _utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc)


def _chronological(event: RawEvent) -> tuple[datetime, str]:
    return (_utc(event.observed_at), event.identity)


class EventStore:
    """SQLite store for raw Wi-Fi association logs."""

    def __init__(self, db_path: str | Path, tz: ZoneInfo) -> None:
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._closed = False
        self.tz = tz

    def close(self) -> None:
        if self._closed:
            return
        self._conn.close()
        self._closed = True

    def initialize(self) -> None:
        # logs: one row per device association window reported upstream.
        # meta: small key/value store for scheduler markers.
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS logs (
              mac TEXT NOT NULL,
              name TEXT,
              first_seen TEXT NOT NULL,
              last_seen TEXT,
              UNIQUE(mac, first_seen)
            );

            CREATE INDEX IF NOT EXISTS idx_logs_first_seen ON logs (first_seen);

            CREATE TABLE IF NOT EXISTS meta (
              key TEXT PRIMARY KEY,
              value TEXT NOT NULL
            );
            """
        )
        self._conn.commit()

    def add_event(
        self,
        mac: str,
        name: str | None,
        first_seen: datetime,
        last_seen: datetime | None = None,
    ) -> bool:
        """Insert one log row; returns False when the row was already stored."""
        cursor = self._conn.execute(
            "INSERT OR IGNORE INTO logs (mac, name, first_seen, last_seen) VALUES (?, ?, ?, ?)",
            (
                mac,
                name,
                self._to_storage(first_seen),
                self._to_storage(last_seen) if last_seen is not None else None,
            ),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    def import_logs(self, rows: Iterable[Mapping[str, Any]]) -> int:
        """Store upstream rows verbatim (``Mac``/``Name``/``FirstSeen``/``LastSeen``).

        The controller reports local wall-clock time without an offset; those
        strings are kept as-is and read back in the store's time zone.
        """
        before = self._conn.total_changes
        self._conn.executemany(
            "INSERT OR IGNORE INTO logs (mac, name, first_seen, last_seen) VALUES (?, ?, ?, ?)",
            [(row.get("Mac"), row.get("Name"), row.get("FirstSeen"), row.get("LastSeen")) for row in rows],
        )
        self._conn.commit()
        return self._conn.total_changes - before

    def fetch_events(
        self,
        identity: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[RawEvent]:
        """Events whose span touches the local days ``start``..``end``.

        ``identity`` narrows the query to labels containing it; callers still
        apply their own matching policy to the normalized identity.
        """
        clauses: list[str] = []
        params: list[str] = []

        if identity:
            clauses.append("name LIKE ?")
            params.append(f"%{identity}%")
        # Stored text may be UTC ISO or offset-less local time, so SQL only
        # narrows by calendar date with a day of slack on each side.
        if start is not None:
            clauses.append(f"substr({_SPAN_END}, 1, 10) >= ?")
            params.append((start - timedelta(days=1)).isoformat())
        if end is not None:
            clauses.append("substr(first_seen, 1, 10) <= ?")
            params.append((end + timedelta(days=1)).isoformat())

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            f"SELECT mac, name, first_seen, last_seen FROM logs {where}",
            params,
        ).fetchall()
        events = self._rows_to_events(rows)

        if start is not None:
            range_start, _ = local_day_bounds(start, self.tz)
            events = [event for event in events if _utc(event_span(event).end) >= range_start]
        if end is not None:
            _, range_end = local_day_bounds(end, self.tz)
            events = [event for event in events if _utc(event_span(event).start) <= range_end]
        return sorted(events, key=_chronological)

    def fetch_seen_since(self, cutoff: datetime) -> list[RawEvent]:
        cutoff_utc = cutoff.astimezone(timezone.utc)
        rows = self._conn.execute(
            f"SELECT mac, name, first_seen, last_seen FROM logs WHERE substr({_SPAN_END}, 1, 10) >= ?",
            ((cutoff_utc.date() - timedelta(days=1)).isoformat(),),
        ).fetchall()
        events = [
            event
            for event in self._rows_to_events(rows)
            if _utc(max(event.observed_at, event.last_observed_at)) >= cutoff_utc
        ]
        return sorted(events, key=_chronological)

    def get_meta(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def set_meta(self, key: str, value: str) -> None:
        self._conn.execute(
            """
            INSERT INTO meta (key, value)
            VALUES (?, ?)
            ON CONFLICT(key)
            DO UPDATE SET value=excluded.value
            """,
            (key, value),
        )
        self._conn.commit()

    def _rows_to_events(self, rows: list[sqlite3.Row]) -> list[RawEvent]:
        events: list[RawEvent] = []
        for row in rows:
            try:
                events.append(
                    RawEvent.from_row(
                        {
                            "identity": normalize_name(row["name"]),
                            "observed_at": row["first_seen"],
                            "last_observed_at": row["last_seen"],
                        },
                        self.tz,
                    )
                )
            except MalformedEventError as exc:
                logger.warning("Skipping log row for mac=%s: %s", row["mac"], exc)
        return events

    def _to_storage(self, value: datetime) -> str:
        """Store timestamps as second-precision UTC ISO text."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=self.tz)
        return value.astimezone(timezone.utc).isoformat(timespec="seconds")
