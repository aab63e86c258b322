"""Voice state listener feeding the queue engine"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from linekeeper.dispatcher import VoiceStateChange

if TYPE_CHECKING:
    from ..bot import QueueBot

logger = logging.getLogger(__name__)


class VoiceEvents(commands.Cog):
    def __init__(self, bot: QueueBot):
        self.bot = bot

    @commands.Cog.listener()
    async def on_voice_state_update(
        self, member: discord.Member, before: discord.VoiceState, after: discord.VoiceState
    ) -> None:
        before_id = before.channel.id if before.channel else None
        after_id = after.channel.id if after.channel else None
        if before_id == after_id or self.bot.engine is None:
            return
        # Other bots never queue; our own account is the transfer controller
        if member.bot and (self.bot.user is None or member.id != self.bot.user.id):
            return

        self.bot.engine.submit(
            VoiceStateChange(
                guild_id=member.guild.id,
                member_id=member.id,
                before_channel_id=before_id,
                after_channel_id=after_id,
            )
        )

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        if self.bot.engine is None:
            return
        if await self.bot.engine.delete_queue(channel.id):
            logger.info(f"Queue channel #{channel.name} was deleted, queue removed")


async def setup(bot: QueueBot):
    await bot.add_cog(VoiceEvents(bot))
