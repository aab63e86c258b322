"""Queue slash commands"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from linekeeper import intents
from linekeeper.engine import QueueEngine
from linekeeper.errors import QueueError, QueueNotFound
from linekeeper.models.queue import DisplayMode, QueueSettings

from ..adapters import VOICE_TYPES
from ..options import CommandArgs, OptionError, options_for, verify

if TYPE_CHECKING:
    from ..bot import QueueBot

logger = logging.getLogger(__name__)

QueueChannel = discord.TextChannel | discord.VoiceChannel | discord.StageChannel

MODE_CHOICES = [
    app_commands.Choice(name="Edit the message", value=DisplayMode.EDIT.value),
    app_commands.Choice(name="Resend and delete the old one", value=DisplayMode.RESEND_AND_DELETE.value),
    app_commands.Choice(name="Resend", value=DisplayMode.RESEND.value),
]


def _mentions(member_ids: list[int]) -> str:
    return ", ".join(f"<@{member_id}>" for member_id in member_ids)


class Queues(commands.Cog):
    def __init__(self, bot: QueueBot):
        self.bot = bot

    @property
    def engine(self) -> QueueEngine:
        if self.bot.engine is None:
            raise QueueError("The queue engine is still starting, try again in a moment.")
        return self.bot.engine

    async def _reply(self, interaction: discord.Interaction, message: str, *, ephemeral=True):
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(message, ephemeral=ephemeral)

    def _args(
        self,
        command: str,
        *,
        channel: discord.abc.GuildChannel | None = None,
        members: list[discord.abc.User] | None = None,
        number: int | None = None,
        text: str | None = None,
    ) -> CommandArgs:
        args = CommandArgs(
            channel_id=channel.id if channel else None,
            channel_is_voice=isinstance(channel, VOICE_TYPES) if channel else None,
            member_ids=[member.id for member in members or []],
            number=number,
            text=text,
        )
        return verify(options_for(command), args)

    def _guild(self, interaction: discord.Interaction) -> discord.Guild:
        if not interaction.guild:
            raise app_commands.NoPrivateMessage()
        return interaction.guild

    def _here(self, interaction: discord.Interaction, channel: QueueChannel | None) -> QueueChannel:
        """The given channel, else the one the command was used in."""
        if channel is not None:
            return channel
        if isinstance(interaction.channel, (discord.TextChannel, *VOICE_TYPES)):
            return interaction.channel
        raise OptionError("**ERROR**: Missing channel argument.")

    async def _update(
        self, interaction: discord.Interaction, queue_id: int, message: str, **changes
    ) -> QueueSettings:
        queue = await self.engine.handle(intents.UpdateQueue(queue_id, changes))
        if queue is None:
            raise QueueNotFound()
        await self._reply(interaction, message)
        return queue

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        original = getattr(error, "original", error)
        if isinstance(original, (QueueError, OptionError)):
            await self._reply(interaction, original.message)
            return
        if isinstance(error, app_commands.MissingPermissions):
            await self._reply(interaction, "You do not have permission to use this command.")
            return
        if isinstance(error, app_commands.NoPrivateMessage):
            await self._reply(interaction, "Queues only exist inside a server.")
            return

        name = interaction.command.name if interaction.command else "?"
        logger.error(f"Command error in /{name}: {error}", exc_info=error)
        await self._reply(interaction, "Something went wrong while running that command.")

    # ------------------------------------------------------------------
    # Queue lifecycle
    # ------------------------------------------------------------------

    @app_commands.command(name="create", description="Turn a channel into a queue")
    @app_commands.describe(channel="Channel to bind the queue to", limit="Maximum queue size")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_channels=True)
    async def create(
        self, interaction: discord.Interaction, channel: QueueChannel, limit: int | None = None
    ) -> None:
        args = self._args("create", channel=channel, number=limit)
        guild = self._guild(interaction)
        await self.engine.handle(
            intents.CreateQueue(guild.id, channel.id, size_limit=args.number)
        )
        await self._reply(interaction, f"Created a queue for {channel.mention}.", ephemeral=False)

    @app_commands.command(name="delete", description="Delete a queue")
    @app_commands.describe(channel="Queue channel")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_channels=True)
    async def delete(self, interaction: discord.Interaction, channel: QueueChannel) -> None:
        self._args("delete", channel=channel)
        if not await self.engine.handle(intents.DeleteQueue(channel.id)):
            raise QueueNotFound()
        await self._reply(interaction, f"Deleted the queue for {channel.mention}.", ephemeral=False)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    @app_commands.command(name="join", description="Join a queue")
    @app_commands.describe(channel="Queue channel (defaults to this channel)")
    @app_commands.guild_only()
    async def join(self, interaction: discord.Interaction, channel: QueueChannel | None = None) -> None:
        channel = self._here(interaction, channel)
        self._args("join", channel=channel)
        if isinstance(channel, VOICE_TYPES):
            raise QueueError(f"Join {channel.mention} to enter its queue.")
        await self.engine.handle(intents.Join(channel.id, interaction.user.id))
        position = await self.engine.membership.position(channel.id, interaction.user.id)
        await self._reply(interaction, f"You joined {channel.mention} at position {position}.")

    @app_commands.command(name="leave", description="Leave a queue")
    @app_commands.describe(channel="Queue channel (defaults to this channel)")
    @app_commands.guild_only()
    async def leave(self, interaction: discord.Interaction, channel: QueueChannel | None = None) -> None:
        channel = self._here(interaction, channel)
        self._args("leave", channel=channel)
        await self.engine.handle(intents.Leave(channel.id, interaction.user.id))
        await self._reply(interaction, f"You left {channel.mention}.")

    @app_commands.command(name="position", description="Show your place in a queue")
    @app_commands.describe(channel="Queue channel (defaults to this channel)")
    @app_commands.guild_only()
    async def position(
        self, interaction: discord.Interaction, channel: QueueChannel | None = None
    ) -> None:
        channel = self._here(interaction, channel)
        self._args("position", channel=channel)
        await self.engine.membership.require_queue(channel.id)
        position = await self.engine.membership.position(channel.id, interaction.user.id)
        if position is None:
            await self._reply(interaction, f"You are not in {channel.mention}.")
        else:
            await self._reply(interaction, f"You are number {position} in {channel.mention}.")

    @app_commands.command(name="enqueue", description="Add a member to a queue")
    @app_commands.describe(
        channel="Queue channel", member="Member to add", priority="Place ahead of regular members"
    )
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(move_members=True)
    async def enqueue(
        self,
        interaction: discord.Interaction,
        channel: QueueChannel,
        member: discord.Member,
        priority: bool = False,
    ) -> None:
        self._args("enqueue", channel=channel, members=[member])
        await self.engine.handle(intents.Join(channel.id, member.id, priority=priority))
        await self._reply(interaction, f"Added {member.mention} to {channel.mention}.")

    @app_commands.command(name="kick", description="Remove a member from a queue")
    @app_commands.describe(channel="Queue channel", member="Member to remove")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(move_members=True)
    async def kick(
        self, interaction: discord.Interaction, channel: QueueChannel, member: discord.Member
    ) -> None:
        args = self._args("kick", channel=channel, members=[member])
        await self.engine.handle(intents.Kick(channel.id, tuple(args.member_ids)))
        await self._reply(interaction, f"Removed {member.mention} from {channel.mention}.")

    @app_commands.command(name="next", description="Pull the next members from a queue")
    @app_commands.describe(
        channel="Queue channel",
        amount="How many to pull (defaults to the queue's pull count)",
        destination="Voice channel to move them to (voice queues only)",
    )
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(move_members=True)
    async def pull(
        self,
        interaction: discord.Interaction,
        channel: QueueChannel,
        amount: int | None = None,
        destination: discord.VoiceChannel | None = None,
    ) -> None:
        args = self._args("next", channel=channel, number=amount)
        await interaction.response.defer()
        result = await self.engine.handle(
            intents.Pull(
                channel.id, args.number, destination_id=destination.id if destination else None
            )
        )
        await interaction.followup.send(
            f"Pulled from {channel.mention}: {_mentions(result.member_ids)}"
        )

    @app_commands.command(name="shuffle", description="Shuffle a queue")
    @app_commands.describe(channel="Queue channel")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(move_members=True)
    async def shuffle(self, interaction: discord.Interaction, channel: QueueChannel) -> None:
        self._args("shuffle", channel=channel)
        await self.engine.handle(intents.Shuffle(channel.id))
        await self._reply(interaction, f"Shuffled {channel.mention}.", ephemeral=False)

    @app_commands.command(name="clear", description="Remove everyone from a queue")
    @app_commands.describe(channel="Queue channel")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(move_members=True)
    async def clear(self, interaction: discord.Interaction, channel: QueueChannel) -> None:
        self._args("clear", channel=channel)
        removed = await self.engine.handle(intents.Clear(channel.id))
        await self._reply(interaction, f"Cleared {len(removed)} member(s) from {channel.mention}.")

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    @app_commands.command(name="display", description="Show a queue in this channel")
    @app_commands.describe(channel="Queue channel (defaults to this channel)")
    @app_commands.guild_only()
    async def display(
        self, interaction: discord.Interaction, channel: QueueChannel | None = None
    ) -> None:
        channel = self._here(interaction, channel)
        self._args("display", channel=channel)
        if interaction.channel_id is None:
            raise QueueError("Use this command in the channel the queue should be shown in.")
        await interaction.response.defer(ephemeral=True)
        target = await self.engine.handle(intents.ShowDisplay(channel.id, interaction.channel_id))
        if target is None:
            raise QueueNotFound()
        await interaction.followup.send("Display posted.", ephemeral=True)

    @app_commands.command(name="mode", description="How queue displays are refreshed in this server")
    @app_commands.choices(mode=MODE_CHOICES)
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def mode(self, interaction: discord.Interaction, mode: app_commands.Choice[int]) -> None:
        guild = self._guild(interaction)
        await self.engine.handle(intents.SetDisplayMode(guild.id, DisplayMode(mode.value)))
        await self._reply(interaction, f"Display mode set to: {mode.name}.")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @app_commands.command(name="limit", description="Set or clear a queue's size limit")
    @app_commands.describe(channel="Queue channel", limit="Maximum size, leave empty for no limit")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_channels=True)
    async def limit(
        self, interaction: discord.Interaction, channel: QueueChannel, limit: int | None = None
    ) -> None:
        args = self._args("limit", channel=channel, number=limit)
        queue = await self.engine.handle(intents.SetLimit(channel.id, args.number))
        if queue is None:
            raise QueueNotFound()
        shown = queue.size_limit if queue.size_limit is not None else "none"
        await self._reply(interaction, f"Size limit of {channel.mention}: {shown}.")

    @app_commands.command(name="pullnum", description="Default pull count of a queue")
    @app_commands.describe(
        channel="Queue channel",
        amount="Members pulled by /next without an amount",
        partial="Allow pulling fewer when the queue runs short",
    )
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_channels=True)
    async def pullnum(
        self,
        interaction: discord.Interaction,
        channel: QueueChannel,
        amount: int,
        partial: bool | None = None,
    ) -> None:
        args = self._args("pullnum", channel=channel, number=amount)
        changes: dict = {"pull_num": args.number}
        if partial is not None:
            changes["partial_pull"] = partial
        await self._update(
            interaction, channel.id, f"{channel.mention} now pulls {args.number} at a time.", **changes
        )

    @app_commands.command(name="grace", description="How long a disconnected member keeps their place")
    @app_commands.describe(channel="Queue channel", seconds="Grace period in seconds, 0 to disable")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_channels=True)
    async def grace(self, interaction: discord.Interaction, channel: QueueChannel, seconds: int) -> None:
        args = self._args("grace", channel=channel, number=seconds)
        await self._update(
            interaction,
            channel.id,
            f"Grace period of {channel.mention}: {args.number}s.",
            grace_period=args.number,
        )

    @app_commands.command(name="lock", description="Lock or unlock a queue")
    @app_commands.describe(channel="Queue channel", locked="Reject new joins while locked")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_channels=True)
    async def lock(
        self, interaction: discord.Interaction, channel: QueueChannel, locked: bool = True
    ) -> None:
        self._args("lock", channel=channel)
        state = "locked" if locked else "unlocked"
        await self._update(interaction, channel.id, f"{channel.mention} is {state}.", is_locked=locked)

    @app_commands.command(name="color", description="Display color of a queue")
    @app_commands.describe(channel="Queue channel", color="Hex color, e.g. #51ff7e")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_channels=True)
    async def color(self, interaction: discord.Interaction, channel: QueueChannel, color: str) -> None:
        args = self._args("color", channel=channel, text=color)
        try:
            parsed = discord.Color.from_str(args.text or "")
        except ValueError:
            raise QueueError("That is not a valid color. Use a hex code like #51ff7e.") from None
        await self._update(
            interaction, channel.id, f"Color of {channel.mention} updated.", color=str(parsed)
        )

    @app_commands.command(name="header", description="Text shown above a queue display")
    @app_commands.describe(channel="Queue channel", text="Header text, leave empty to remove")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_channels=True)
    async def header(
        self, interaction: discord.Interaction, channel: QueueChannel, text: str | None = None
    ) -> None:
        args = self._args("header", channel=channel, text=text)
        await self._update(
            interaction, channel.id, f"Header of {channel.mention} updated.", header=args.text or None
        )

    @app_commands.command(name="mute", description="Server-mute members waiting in a voice queue")
    @app_commands.describe(channel="Voice queue channel", enabled="Mute waiting members")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(mute_members=True)
    async def mute(
        self, interaction: discord.Interaction, channel: QueueChannel, enabled: bool = True
    ) -> None:
        self._args("mute", channel=channel)
        state = "on" if enabled else "off"
        await self._update(interaction, channel.id, f"Mute for {channel.mention}: {state}.", mute=enabled)

    @app_commands.command(name="autofill", description="Refill the target channel when someone leaves it")
    @app_commands.describe(channel="Voice queue channel", enabled="Pull automatically into the target")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(move_members=True)
    async def autofill(
        self, interaction: discord.Interaction, channel: QueueChannel, enabled: bool = True
    ) -> None:
        self._args("autofill", channel=channel)
        state = "on" if enabled else "off"
        await self._update(
            interaction, channel.id, f"Auto-fill for {channel.mention}: {state}.", auto_fill=enabled
        )

    @app_commands.command(name="target", description="Voice channel a voice queue pulls into")
    @app_commands.describe(channel="Voice queue channel", target="Target channel, leave empty to clear")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(move_members=True)
    async def target(
        self,
        interaction: discord.Interaction,
        channel: QueueChannel,
        target: discord.VoiceChannel | None = None,
    ) -> None:
        self._args("target", channel=channel)
        if target is not None and target.id == channel.id:
            raise QueueError("A queue cannot target its own channel.")
        shown = target.mention if target else "none"
        await self._update(
            interaction,
            channel.id,
            f"Target of {channel.mention}: {shown}.",
            target_channel_id=target.id if target else None,
        )

    @app_commands.command(name="role", description="Role given to members while they are queued")
    @app_commands.describe(channel="Queue channel", role="Role to assign, leave empty to clear")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_roles=True)
    async def role(
        self,
        interaction: discord.Interaction,
        channel: QueueChannel,
        role: discord.Role | None = None,
    ) -> None:
        self._args("role", channel=channel)
        shown = role.mention if role else "none"
        await self._update(
            interaction, channel.id, f"Role for {channel.mention}: {shown}.", role_id=role.id if role else None
        )

    # ------------------------------------------------------------------
    # Voice transfer
    # ------------------------------------------------------------------

    @app_commands.command(name="transfer", description="Drag the bot out of a voice queue to pull members")
    @app_commands.describe(channel="Voice queue to pull from")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(move_members=True)
    async def transfer(self, interaction: discord.Interaction, channel: discord.VoiceChannel) -> None:
        self._args("transfer", channel=channel)
        guild = self._guild(interaction)
        await self.engine.handle(intents.ArmVoiceTransfer(guild.id, channel.id))
        await guild.change_voice_state(channel=channel)
        await self._reply(
            interaction,
            f"Ready. Drag me from {channel.mention} into a channel to pull members there.",
        )

    @app_commands.command(name="transfer-stop", description="Stop the voice transfer")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(move_members=True)
    async def transfer_stop(self, interaction: discord.Interaction) -> None:
        guild = self._guild(interaction)
        if not await self.engine.handle(intents.DisarmVoiceTransfer(guild.id)):
            raise QueueError("No voice transfer is running.")
        await guild.change_voice_state(channel=None)
        await self._reply(interaction, "Voice transfer stopped.")


async def setup(bot: QueueBot):
    await bot.add_cog(Queues(bot))
