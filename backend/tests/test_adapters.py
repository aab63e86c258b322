"""Discord collaborators, display rendering and command guards."""

from datetime import UTC, datetime
from types import SimpleNamespace

import discord
import pytest
from discord import app_commands

from linekeeper.models.display import DisplayContent
from linekeeper.models.member import MemberEntry, MemberState
from linekeeper.models.queue import QueueSettings
from linekeeper_discord.adapters import (
    EMBED_LINE_LIMIT,
    DiscordChannelMembership,
    DiscordContentBuilder,
    build_embed,
)
from linekeeper_discord.cogs.queues import Queues
from linekeeper_discord.options import OptionError

JOINED = datetime(2026, 1, 1, tzinfo=UTC)


def entry(member_id, order_key, **kwargs):
    return MemberEntry(100, member_id, order_key, JOINED, **kwargs)


def builder():
    return DiscordContentBuilder(SimpleNamespace(get_channel=lambda channel_id: None))


class TestContentBuilder:
    def test_mentions_and_markers(self):
        queue = QueueSettings(queue_channel_id=100, guild_id=1, size_limit=4)
        entries = [entry(1, 1, priority=True), entry(2, 2, state=MemberState.GRACE)]

        content = builder()(queue, entries)

        assert content.lines == ("`1` <@1> ⭐", "`2` <@2> *(away)*")
        assert content.footer.startswith("2/4 in queue")
        assert content.title == "100 queue"

    def test_long_queues_are_truncated(self):
        queue = QueueSettings(queue_channel_id=100, guild_id=1)
        entries = [entry(i, i) for i in range(1, EMBED_LINE_LIMIT + 6)]

        content = builder()(queue, entries)

        assert len(content.lines) == EMBED_LINE_LIMIT + 1
        assert content.lines[-1] == "... and 5 more"


class TestBuildEmbed:
    def test_header_lines_and_color(self):
        content = DisplayContent(100, "Lobby queue", "#51ff7e", "Be nice", ("`1` <@1>",), "1 in queue")

        embed = build_embed(content)

        assert embed.title == "Lobby queue"
        assert embed.description == "Be nice\n\n`1` <@1>"
        assert embed.color == discord.Color.from_str("#51ff7e")
        assert embed.footer.text == "1 in queue"

    def test_empty_queue_and_bad_color(self):
        embed = build_embed(DisplayContent(100, "Lobby queue", "not-a-color"))

        assert embed.description == "*The queue is empty.*"
        assert embed.color == discord.Color.green()


class TestChannelMembership:
    def test_controller_is_the_logged_in_bot(self):
        membership = DiscordChannelMembership(SimpleNamespace(user=SimpleNamespace(id=999)))

        assert membership.controller_id == 999

    def test_controller_before_login(self):
        membership = DiscordChannelMembership(SimpleNamespace(user=None))

        with pytest.raises(RuntimeError):
            membership.controller_id


class TestCommandGuards:
    def test_commands_outside_a_server(self):
        cog = Queues(SimpleNamespace(engine=None))

        with pytest.raises(app_commands.NoPrivateMessage):
            cog._guild(SimpleNamespace(guild=None))

    def test_explicit_channel_wins(self):
        cog = Queues(SimpleNamespace(engine=None))
        channel = SimpleNamespace(id=100)

        assert cog._here(SimpleNamespace(channel=None), channel) is channel

    def test_no_channel_to_fall_back_on(self):
        cog = Queues(SimpleNamespace(engine=None))

        with pytest.raises(OptionError) as exc_info:
            cog._here(SimpleNamespace(channel=None), None)
        assert exc_info.value.message == "**ERROR**: Missing channel argument."
