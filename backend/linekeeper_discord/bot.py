"""
Linekeeper Discord Bot
discord.py 2.x with slash commands
"""

from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands
from dotenv import load_dotenv

from linekeeper.config import EngineConfig
from linekeeper.context import EngineContext
from linekeeper.database import DatabaseManager
from linekeeper.engine import QueueEngine
from linekeeper.migrations import MigrationRunner
from linekeeper.services import TransferOutcome

from .adapters import (
    DiscordChannelMembership,
    DiscordContentBuilder,
    DiscordMemberHooks,
    DiscordRenderSurface,
)
from .core import BOT_NAME, BOT_VERSION, BotSettings, get_settings, setup_logging
from .core.config import BACKEND_DIR

logger = logging.getLogger(__name__)


class QueueBot(commands.Bot):
    """Linekeeper Discord Bot client"""

    def __init__(self, settings: BotSettings):
        intents = discord.Intents.default()
        intents.members = True  # role and mute hooks need member lookups
        intents.voice_states = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.settings = settings
        self.database = DatabaseManager(settings.database_url, settings.pool_config())
        self.engine: QueueEngine | None = None
        self._validated = False

        self.initial_extensions = [
            "linekeeper_discord.cogs.queues",
            "linekeeper_discord.cogs.voice",
        ]

    def build_engine(self, ctx: EngineContext) -> QueueEngine:
        return QueueEngine(
            ctx, build_content=DiscordContentBuilder(self), on_transfer=self.report_transfer
        )

    async def setup_hook(self):
        """Connect the database, start the engine, load cogs and sync commands"""
        pool = await self.database.connect()
        applied = await MigrationRunner(pool).run_pending()
        if applied:
            logger.info(f"[green]Applied migrations:[/green] {', '.join(applied)}")

        config: EngineConfig = self.settings.engine_config()
        ctx = EngineContext.from_pool(
            pool,
            config=config,
            channels=DiscordChannelMembership(self),
            surface=DiscordRenderSurface(self),
            hooks=DiscordMemberHooks(self),
        )
        self.engine = self.build_engine(ctx)
        await self.engine.start()

        loaded = []
        failed = []
        for extension in self.initial_extensions:
            try:
                await self.load_extension(extension)
                loaded.append(extension.split(".")[-1])
            except Exception as e:
                failed.append(f"{extension.split('.')[-1]} ({e})")

        if loaded:
            logger.info(f"[green]Loaded cogs:[/green] {', '.join(loaded)}")
        if failed:
            logger.error(f"[red]Failed to load:[/red] {', '.join(failed)}")

        logger.info("[yellow]Syncing slash commands...[/yellow]")
        guild_id = self.settings.discord_guild_id
        if guild_id:
            # Guild sync is immediate, global sync can take up to an hour
            guild = discord.Object(id=guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info(f"[magenta]Synced slash commands to guild {guild_id}[/magenta]")
        else:
            await self.tree.sync()
            logger.info("[magenta]Synced slash commands globally[/magenta]")

    async def on_ready(self):
        """Drop queues whose channels were deleted while we were offline"""
        if self.user:
            logger.info(f"[bold green]Bot ready:[/bold green] {self.user} [dim](ID: {self.user.id})[/dim]")
        logger.info(
            f"[cyan]Connected:[/cyan] {len(self.guilds)} guild(s) | discord.py {discord.__version__}"
        )
        if self._validated or self.engine is None:
            return
        self._validated = True
        for guild in self.guilds:
            await self.engine.validate_guild(guild.id)

    async def on_guild_remove(self, guild: discord.Guild):
        if self.engine is None:
            return
        self.engine.transfer.teardown(guild.id)
        for queue in await self.engine.ctx.queues.list_for_guild(guild.id):
            await self.engine.delete_queue(queue.queue_channel_id)
        await self.engine.ctx.guilds.delete(guild.id)
        logger.info(f"Removed all queues of guild {guild.name} ({guild.id})")

    async def report_transfer(self, outcome: TransferOutcome) -> None:
        """Tell the source channel's text chat why a drag pulled nobody"""
        if outcome.error is None:
            if outcome.result is not None:
                logger.info(
                    f"Voice transfer moved {len(outcome.result.members)} member(s) "
                    f"from {outcome.session.source_queue_id} to {outcome.destination_channel_id}"
                )
            return
        channel = self.get_channel(outcome.session.source_queue_id)
        if isinstance(channel, discord.VoiceChannel):
            try:
                await channel.send(outcome.error.message, delete_after=30)
            except discord.HTTPException as e:
                logger.warning(f"Could not report transfer failure in #{channel.name}: {e}")

    async def close(self):
        engine, self.engine = self.engine, None
        if engine is not None:
            await engine.stop()
        await self.database.disconnect()
        await super().close()


async def main():
    """Bot entry point"""
    # Export .env into the process environment before settings are read
    load_dotenv(dotenv_path=BACKEND_DIR / ".env", encoding="utf-8")
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info(f"[bold]{BOT_NAME}[/bold] v{BOT_VERSION}")

    async with QueueBot(settings) as bot:
        try:
            await bot.start(settings.discord_bot_token)
        except (KeyboardInterrupt, asyncio.CancelledError):
            if not bot.is_closed():
                await bot.close()


def run() -> None:
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("[yellow]Bot stopped manually[/yellow]")
    except Exception as e:
        logger.error(f"[bold red]Bot crashed:[/bold red] {e}", exc_info=e)
