from __future__ import annotations

import logging

import discord
from discord.ext import commands, tasks
from dotenv import load_dotenv

from .commands import register_commands
from .config import Config, load_config
from .db import EventStore
from .reporter import Reporter
from .sessions import utc_now
from .tracker import PresenceTracker

AUTO_REPORT_META_KEY = "last_auto_report_day"


class PresenceBot(commands.Bot):
    def __init__(self, config: Config, store: EventStore) -> None:
        intents = discord.Intents.none()
        intents.guilds = True

        super().__init__(command_prefix="!", intents=intents)

        self.config = config
        self.store = store
        self.tracker = PresenceTracker(store=store, tz=config.timezone, gap_minutes=config.gap_minutes)
        self.reporter = Reporter(self.tracker)

        self.logger = logging.getLogger("wifi-presence-bot")

        # runtime_ready keeps the scheduler idle until the report channel checks pass.
        self.runtime_ready = False
        self.report_channel: discord.TextChannel | None = None

    async def setup_hook(self) -> None:
        register_commands(self)
        await self.tree.sync(guild=discord.Object(id=self.config.guild_id))
        self.midnight_report_loop.start()

    async def on_ready(self) -> None:
        self.logger.info("Connected as %s (%s)", self.user, self.user.id if self.user else "unknown")
        if self.runtime_ready:
            return

        if await self._validate_runtime_resources():
            self.runtime_ready = True
            self.logger.info("Runtime checks passed")

    async def _validate_runtime_resources(self) -> bool:
        # Fail fast if the guild or report channel is misconfigured.
        guild = self.get_guild(self.config.guild_id)
        if guild is None:
            self.logger.error("Configured guild %s not found", self.config.guild_id)
            await self.close()
            return False

        report = guild.get_channel(self.config.report_channel_id)
        if not isinstance(report, discord.TextChannel):
            self.logger.error("Report channel %s is missing or not a text channel", self.config.report_channel_id)
            await self.close()
            return False

        me = guild.me
        if me is None or not report.permissions_for(me).send_messages:
            self.logger.error("Missing send permission in report channel %s", report.id)
            await self.close()
            return False

        self.report_channel = report
        return True

    @tasks.loop(seconds=30)
    async def midnight_report_loop(self) -> None:
        if not self.runtime_ready or self.report_channel is None:
            return

        now = utc_now()
        now_local = now.astimezone(self.config.timezone)

        # The loop runs every 30s; only report during the 00:00 local minute.
        if now_local.hour != 0 or now_local.minute != 0:
            return

        target_day = self.tracker.previous_local_day(now)
        # Guard against duplicate posts during the same 00:00 minute window.
        if self.store.get_meta(AUTO_REPORT_META_KEY) == target_day.isoformat():
            return

        self.logger.info("Posting midnight report for %s", target_day)

        try:
            sent = await self.reporter.post_daily_report(self.report_channel, target_day)
        except Exception:  # pragma: no cover - runtime safety
            self.logger.exception("Failed to post midnight report")
            return

        self.logger.info("Midnight report for %s posted in %d message(s)", target_day, sent)
        self.store.set_meta(AUTO_REPORT_META_KEY, target_day.isoformat())

    @midnight_report_loop.before_loop
    async def before_midnight_report_loop(self) -> None:
        await self.wait_until_ready()

    async def close(self) -> None:
        if self.midnight_report_loop.is_running():
            self.midnight_report_loop.cancel()
        self.store.close()
        await super().close()


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main() -> None:
    load_dotenv()
    configure_logging()

    config = load_config()
    store = EventStore(config.database_path, config.timezone)
    store.initialize()

    bot = PresenceBot(config=config, store=store)
    bot.run(config.discord_token)


if __name__ == "__main__":
    main()
