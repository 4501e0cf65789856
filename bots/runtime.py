"""Discord runtime that hosts the round engine.

There is no ``__main__`` here: the bracket provider client is not part of
this package, so the host application builds one and starts the bot with::

    runtime = EngineRuntime.create(bracket)
    asyncio.run(runtime.run())
"""

from __future__ import annotations

import logging

import boto3
import discord

from bots.config import EnvironmentConfig
from tournament_rounds.announce import RoundAnnouncer
from tournament_rounds.discord_chat import DiscordChatPlatform
from tournament_rounds.drop import DropCoordinator
from tournament_rounds.ports import BracketProvider
from tournament_rounds.registry import TimerRegistry
from tournament_rounds.storage import TournamentStorage

log = logging.getLogger("round-engine")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


class EngineRuntime:
    """Composes the engine components around one Discord client.

    The bracket provider client is supplied by the caller.
    """

    def __init__(
        self,
        config: EnvironmentConfig,
        bracket: BracketProvider,
        *,
        client: discord.Client | None = None,
        dynamodb_resource=None,
    ) -> None:
        if client is None:
            intents = discord.Intents.default()
            intents.guilds = True
            intents.members = True
            client = discord.Client(intents=intents)
        if dynamodb_resource is None:
            dynamodb_resource = boto3.resource("dynamodb", region_name=config.aws_region)

        self.config = config
        self.bot = client
        self.bracket = bracket
        self.storage = TournamentStorage(
            dynamodb_resource.Table(config.tournament_table_name)
        )
        self.chat = DiscordChatPlatform(self.bot)
        self.timers = TimerRegistry(self.chat, self.storage)
        self.drops = DropCoordinator(self.bracket, self.chat, self.storage)
        self.announcer = RoundAnnouncer(
            self.bracket,
            self.chat,
            self.timers,
            participants=self.storage,
            pairings_url_template=config.settings.pairings_url_template,
            tick_interval_seconds=config.settings.tick_interval_seconds,
        )
        self.bot.event(self.on_ready)

    async def on_ready(self) -> None:
        log.info("Bot ready as %s", self.bot.user)
        if not self.config.settings.resume_timers:
            log.info("Timer resumption disabled, skipping countdown reload")
            return
        await self.timers.load()

    async def run(self) -> None:
        async with self.bot:
            await self.bot.start(self.config.discord_token)

    @classmethod
    def create(cls, bracket: BracketProvider) -> "EngineRuntime":
        config = EnvironmentConfig.load()
        configure_logging(config.settings.log_level)
        return cls(config, bracket)


__all__ = ["EngineRuntime", "configure_logging", "LOG_FORMAT"]
