"""discord.py implementations of the engine's collaborators."""

from __future__ import annotations

import logging

import discord
from discord.ext import commands

from linekeeper.errors import TargetGone
from linekeeper.models.display import DisplayContent
from linekeeper.models.member import MemberEntry, MemberState
from linekeeper.models.queue import QueueSettings

logger = logging.getLogger(__name__)

VOICE_TYPES = (discord.VoiceChannel, discord.StageChannel)
EMBED_LINE_LIMIT = 40


class DiscordChannelMembership:
    """Channel occupancy and member moves through the gateway cache."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def controller_id(self) -> int:
        if self.bot.user is None:
            raise RuntimeError("Controller id requested before the bot logged in")
        return self.bot.user.id

    async def _channel(self, channel_id: int) -> discord.abc.GuildChannel:
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except (discord.NotFound, discord.Forbidden) as e:
                raise TargetGone() from e
        if not isinstance(channel, discord.abc.GuildChannel):
            raise TargetGone()
        return channel

    async def controller_channel(self, guild_id: int) -> int | None:
        guild = self.bot.get_guild(guild_id)
        if guild is None or guild.me.voice is None or guild.me.voice.channel is None:
            return None
        return guild.me.voice.channel.id

    async def list_occupants(self, channel_id: int) -> set[int]:
        channel = await self._channel(channel_id)
        if not isinstance(channel, VOICE_TYPES):
            return set()
        return {member.id for member in channel.members if not member.bot}

    async def channel_limit(self, channel_id: int) -> int | None:
        channel = await self._channel(channel_id)
        if not isinstance(channel, VOICE_TYPES):
            return None
        return channel.user_limit or None

    async def channel_exists(self, channel_id: int) -> bool:
        try:
            await self._channel(channel_id)
        except TargetGone:
            return False
        return True

    async def is_voice(self, channel_id: int) -> bool:
        try:
            return isinstance(await self._channel(channel_id), VOICE_TYPES)
        except TargetGone:
            return False

    async def move_member(self, member_id: int, from_channel_id: int, to_channel_id: int) -> None:
        destination = await self._channel(to_channel_id)
        if not isinstance(destination, VOICE_TYPES):
            raise TargetGone("The destination is not a voice channel.")
        guild = destination.guild
        if member_id == self.controller_id:
            await guild.change_voice_state(channel=destination)
            return

        member = guild.get_member(member_id) or await guild.fetch_member(member_id)
        if member.voice is None or member.voice.channel is None:
            raise TargetGone(f"{member.display_name} is not connected to voice.")
        if member.voice.channel.id != from_channel_id:
            raise TargetGone(f"{member.display_name} is no longer in the queue channel.")
        await member.move_to(destination, reason="Pulled from queue")


class DiscordRenderSurface:
    """Queue displays as embed messages in text channels."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def _messageable(self, channel_id: int) -> discord.abc.Messageable:
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(channel_id)
            except (discord.NotFound, discord.Forbidden) as e:
                raise TargetGone() from e
        if not isinstance(channel, discord.abc.Messageable):
            raise TargetGone()
        return channel

    async def create_render_target(self, channel_id: int, content: DisplayContent) -> int:
        channel = await self._messageable(channel_id)
        try:
            message = await channel.send(embed=build_embed(content))
        except (discord.NotFound, discord.Forbidden) as e:
            raise TargetGone() from e
        return message.id

    async def update_render_target(
        self, channel_id: int, target_id: int, content: DisplayContent
    ) -> None:
        channel = await self._messageable(channel_id)
        if not hasattr(channel, "get_partial_message"):
            raise TargetGone()
        try:
            await channel.get_partial_message(target_id).edit(embed=build_embed(content))
        except (discord.NotFound, discord.Forbidden) as e:
            raise TargetGone() from e

    async def delete_render_target(self, channel_id: int, target_id: int) -> None:
        channel = await self._messageable(channel_id)
        if not hasattr(channel, "get_partial_message"):
            return
        try:
            await channel.get_partial_message(target_id).delete()
        except (discord.NotFound, discord.Forbidden) as e:
            raise TargetGone() from e


class DiscordMemberHooks:
    """Role and server-mute side effects of entering or leaving a queue."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def _member(self, queue: QueueSettings, member_id: int) -> discord.Member | None:
        guild = self.bot.get_guild(queue.guild_id)
        if guild is None:
            return None
        member = guild.get_member(member_id)
        if member is None:
            try:
                member = await guild.fetch_member(member_id)
            except discord.NotFound:
                return None
        return member

    def _in_queue_channel(self, queue: QueueSettings, member: discord.Member) -> bool:
        return (
            member.voice is not None
            and member.voice.channel is not None
            and member.voice.channel.id == queue.queue_channel_id
        )

    async def on_joined(self, queue: QueueSettings, member_id: int) -> None:
        if queue.role_id is None and not queue.mute:
            return
        member = await self._member(queue, member_id)
        if member is None:
            return
        if queue.role_id is not None:
            role = member.guild.get_role(queue.role_id)
            if role is not None and role not in member.roles:
                await member.add_roles(role, reason="Joined queue")
        if queue.mute and self._in_queue_channel(queue, member):
            await member.edit(mute=True, reason="Queue mutes waiting members")

    async def on_removed(self, queue: QueueSettings, member_id: int) -> None:
        if queue.role_id is None and not queue.mute:
            return
        member = await self._member(queue, member_id)
        if member is None:
            return
        if queue.role_id is not None:
            role = member.guild.get_role(queue.role_id)
            if role is not None and role in member.roles:
                await member.remove_roles(role, reason="Left queue")
        if queue.mute and member.voice is not None and member.voice.mute:
            await member.edit(mute=False, reason="Left queue")


class DiscordContentBuilder:
    """Builds display snapshots with channel names and member mentions."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    def __call__(self, queue: QueueSettings, entries: list[MemberEntry]) -> DisplayContent:
        channel = self.bot.get_channel(queue.queue_channel_id)
        name = getattr(channel, "name", None) or str(queue.queue_channel_id)

        lines = []
        for position, entry in enumerate(entries[:EMBED_LINE_LIMIT], start=1):
            line = f"`{position}` <@{entry.member_id}>"
            if entry.priority:
                line += " ⭐"
            if entry.state is MemberState.GRACE:
                line += " *(away)*"
            lines.append(line)
        if len(entries) > EMBED_LINE_LIMIT:
            lines.append(f"... and {len(entries) - EMBED_LINE_LIMIT} more")

        size = f"{len(entries)}/{queue.size_limit}" if queue.size_limit else str(len(entries))
        footer = f"{size} in queue"
        if queue.is_locked:
            footer += " | locked"
        if isinstance(channel, VOICE_TYPES):
            footer += " | join the voice channel to enter"
        else:
            footer += " | use /join to enter"

        return DisplayContent(
            queue_channel_id=queue.queue_channel_id,
            title=f"{name} queue",
            color=queue.color,
            header=queue.header,
            lines=tuple(lines),
            footer=footer,
        )


def build_embed(content: DisplayContent) -> discord.Embed:
    description = "\n".join(content.lines) if content.lines else "*The queue is empty.*"
    if content.header:
        description = f"{content.header}\n\n{description}"
    try:
        color = discord.Color.from_str(content.color)
    except ValueError:
        color = discord.Color.green()
    embed = discord.Embed(title=content.title, description=description, color=color)
    if content.footer:
        embed.set_footer(text=content.footer)
    return embed
