import asyncio
import logging
import sqlite3
from datetime import date, datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from wifi_presence.commands import parse_day, register_commands
from wifi_presence.db import EventStore
from wifi_presence.reporter import Reporter
from wifi_presence.tracker import PresenceTracker

UTC = ZoneInfo("UTC")


class FakeTree:
    def __init__(self) -> None:
        self.callbacks = {}

    def command(self, *, name, description, guild):
        def decorator(func):
            self.callbacks[name] = func
            return func

        return decorator


class FakeResponse:
    def __init__(self) -> None:
        self.messages: list[tuple[str, bool]] = []

    async def send_message(self, content: str, *, ephemeral: bool = False):
        self.messages.append((content, ephemeral))


class FakeFollowup:
    def __init__(self) -> None:
        self.messages: list[str] = []

    async def send(self, content: str, *, ephemeral: bool = False):
        self.messages.append(content)


class FakeInteraction:
    def __init__(self) -> None:
        self.response = FakeResponse()
        self.followup = FakeFollowup()


class BrokenStore:
    def fetch_events(self, identity=None, start=None, end=None):
        raise sqlite3.OperationalError("database is locked")

    def fetch_seen_since(self, cutoff):
        raise sqlite3.OperationalError("database is locked")


def make_bot(store) -> SimpleNamespace:
    tracker = PresenceTracker(store=store, tz=UTC, gap_minutes=30)
    bot = SimpleNamespace(
        config=SimpleNamespace(
            guild_id=1,
            report_channel_id=2,
            timezone=UTC,
            gap_minutes=30,
            presence_window_minutes=30,
        ),
        tracker=tracker,
        reporter=Reporter(tracker),
        logger=logging.getLogger("wifi-presence-bot"),
        tree=FakeTree(),
    )
    register_commands(bot)
    return bot


def test_parse_day_defaults_and_rejects_garbage() -> None:
    today = date(2026, 2, 1)

    assert parse_day(None, today) == today
    assert parse_day(" 2026-01-31 ", today) == date(2026, 1, 31)
    try:
        parse_day("31/01/2026", today)
    except ValueError as exc:
        assert "YYYY-MM-DD" in str(exc)
    else:
        raise AssertionError("expected ValueError")


def test_storage_failures_are_logged_and_reported(caplog) -> None:
    bot = make_bot(BrokenStore())
    calls = {
        "presence": {"name": "Jane", "day": "2026-02-01"},
        "daily": {"day": "2026-02-01"},
        "range": {"start": "2026-02-01", "end": "2026-02-02"},
        "here": {},
    }

    with caplog.at_level(logging.ERROR):
        for name, kwargs in calls.items():
            interaction = FakeInteraction()
            asyncio.run(bot.tree.callbacks[name](interaction, **kwargs))

            content, ephemeral = interaction.response.messages[0]
            assert content.startswith("Failed to")
            assert "database is locked" in content
            assert ephemeral is True

    for name in calls:
        assert f"/{name} failed" in caplog.text


def test_daily_command_accepts_gap_option() -> None:
    store = EventStore(":memory:", UTC)
    store.initialize()
    for minute in (0, 45):
        when = datetime(2026, 2, 1, 9, minute, tzinfo=UTC)
        store.add_event("aa:01", "Jane Doe", when, when)
    bot = make_bot(store)

    default_gap = FakeInteraction()
    wide_gap = FakeInteraction()
    bad_gap = FakeInteraction()
    asyncio.run(bot.tree.callbacks["daily"](default_gap, day="2026-02-01"))
    asyncio.run(bot.tree.callbacks["daily"](wide_gap, day="2026-02-01", gap=60))
    asyncio.run(bot.tree.callbacks["daily"](bad_gap, day="2026-02-01", gap=0))

    assert "(09:00:00-09:00:00, 09:45:00-09:45:00)" in default_gap.response.messages[0][0]
    assert "(09:00:00-09:45:00)" in wide_gap.response.messages[0][0]
    assert bad_gap.response.messages[0][0] == "gap_minutes must be positive"


def test_range_command_reports_reversed_range() -> None:
    bot = make_bot(BrokenStore())
    interaction = FakeInteraction()

    asyncio.run(bot.tree.callbacks["range"](interaction, start="2026-02-05", end="2026-02-01"))

    assert interaction.response.messages[0][0].startswith("Invalid range:")
