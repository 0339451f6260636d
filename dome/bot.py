"""Entry point for the Dome arena economy Discord bot."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import discord
from discord.ext import commands

from .catalog import CatalogHolder
from .commands import CommandService
from .config import DomeConfig
from .ratelimit import RateLimiter
from .sessions import SessionRegistry
from .storage import ProfileStore, resolve_storage_root

log = logging.getLogger(__name__)

PROJECT_BASE = Path(__file__).resolve().parent.parent

EXTENSIONS = (
    "dome.cogs.lobby",
    "dome.cogs.store",
    "dome.cogs.loadout",
    "dome.cogs.wager",
    "dome.cogs.admin",
)


def build_service(config: DomeConfig, data_root: Path | None = None) -> CommandService:
    root = data_root if data_root is not None else resolve_storage_root(PROJECT_BASE)
    store = ProfileStore(root, starting_tokens=config.starting_tokens)
    limiter = RateLimiter(config.rate_limit, config.rate_window)
    registry = SessionRegistry(store, limiter)
    catalogs = CatalogHolder(config.resolve_catalog_dir(root))
    return CommandService(registry, catalogs, limiter, config)


class DomeBot(commands.Bot):
    def __init__(self, config: DomeConfig, service: CommandService | None = None):
        intents = discord.Intents.default()
        super().__init__(command_prefix="!", intents=intents)
        self.config = config
        self.service = service or build_service(config)
        self._synced = False
        self._autosave_task: asyncio.Task[None] | None = None

    async def setup_hook(self) -> None:
        for extension in EXTENSIONS:
            await self.load_extension(extension)

    async def on_ready(self) -> None:
        if not self._synced:
            await self.tree.sync()
            for guild in self.guilds:
                await self.tree.sync(guild=guild)
            self._synced = True
            log.info("Application commands synced")
        if self._autosave_task is None:
            self._autosave_task = asyncio.create_task(self._autosave_loop())
        if self.user:
            log.info("Connected as %s (%s)", self.user, self.user.id)

    async def on_guild_join(self, guild: discord.Guild) -> None:
        await self.tree.sync(guild=guild)
        log.info("Synced application commands for guild %s (%s)", guild.name, guild.id)

    async def _autosave_loop(self) -> None:
        interval = self.config.autosave_seconds
        while not self.is_closed():
            await asyncio.sleep(interval)
            try:
                saved = await asyncio.to_thread(self.service.autosave)
            except Exception:
                log.exception("Autosave sweep failed")
                continue
            if saved:
                log.info("Autosaved %s profile(s)", saved)

    async def close(self) -> None:
        if self._autosave_task is not None:
            self._autosave_task.cancel()
            self._autosave_task = None
        saved = await asyncio.to_thread(self.service.registry.close_all)
        log.info("Saved %s profile(s) on shutdown", saved)
        await super().close()


async def main() -> None:
    config = DomeConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    bot = DomeBot(config)
    async with bot:
        await bot.start(config.token)


if __name__ == "__main__":
    asyncio.run(main())
