import asyncio
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from wifi_presence.db import EventStore
from wifi_presence.models import DaySummary, RangeDayEntry, RangeSummary, Session, Sighting
from wifi_presence.reporter import Reporter, format_hours, split_message
from wifi_presence.tracker import PresenceTracker

UTC = ZoneInfo("UTC")


class FakeChannel:
    def __init__(self) -> None:
        self.sent: list[tuple[str, dict]] = []

    async def send(self, content: str, **kwargs):
        self.sent.append((content, kwargs))


def make_reporter() -> tuple[Reporter, EventStore]:
    store = EventStore(":memory:", UTC)
    store.initialize()
    return Reporter(PresenceTracker(store=store, tz=UTC)), store


def test_format_hours_hh_mm() -> None:
    assert format_hours(0) == "00:00"
    assert format_hours(0.67) == "00:40"
    assert format_hours(26.5) == "26:30"


def test_split_message_respects_limit() -> None:
    content = "\n".join(f"line {index:03}" for index in range(50))

    chunks = split_message(content, limit=100)

    assert all(len(chunk) <= 100 for chunk in chunks)
    assert "\n".join(chunks) == content


def test_daily_content_lists_sessions() -> None:
    reporter, _ = make_reporter()
    day = date(2026, 2, 1)
    sessions = [
        Session("Jane Doe", datetime(2026, 2, 1, 9, 0, tzinfo=UTC), datetime(2026, 2, 1, 9, 40, tzinfo=UTC), day),
        Session("Jane Doe", datetime(2026, 2, 1, 12, 35, tzinfo=UTC), datetime(2026, 2, 1, 12, 35, tzinfo=UTC), day),
    ]
    row = DaySummary.from_sessions("Jane Doe", day, sessions)

    content = reporter.build_daily_content(day, [row])

    assert "**Daily Presence - 2026-02-01**" in content
    assert "Employees present: 1" in content
    assert "- Jane Doe: in `09:00:00` out `12:35:00` total `00:40`" in content


def test_no_activity_messages() -> None:
    reporter, _ = make_reporter()
    day = date(2026, 2, 1)

    assert "No presence recorded for 2026-02-01." in reporter.build_daily_content(day, [])
    empty = DaySummary.from_sessions("Jane", day, [])
    assert reporter.build_presence_content(empty) == "No logs found for Jane on 2026-02-01."
    assert reporter.build_here_content([], 30) == "Nobody seen in the last 30 minutes."


def test_range_and_here_content() -> None:
    reporter, _ = make_reporter()
    entry = RangeDayEntry(date(2026, 2, 2), None, None, 2.0, 1)
    rows = [RangeSummary(identity="A", days_present=1, total_hours=2.0, days=(entry,))]

    content = reporter.build_range_content(date(2026, 2, 1), date(2026, 2, 3), rows)
    here = reporter.build_here_content([Sighting("Jane Doe", datetime(2026, 2, 1, 11, 50, tzinfo=timezone.utc))], 30)

    assert "- A: 1 day(s), `02:00` total" in content
    assert "- Jane Doe: last seen `11:50:00`" in here


def test_post_daily_report_disables_mentions() -> None:
    reporter, store = make_reporter()
    store.add_event("aa:01", "Jane Doe (iPhone)", datetime(2026, 2, 1, 9, 0, tzinfo=UTC), datetime(2026, 2, 1, 10, 0, tzinfo=UTC))
    channel = FakeChannel()

    sent = asyncio.run(reporter.post_daily_report(channel, date(2026, 2, 1)))

    assert sent == 1
    content, kwargs = channel.sent[0]
    assert "Jane Doe" in content
    assert "allowed_mentions" in kwargs
