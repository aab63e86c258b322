"""Command argument contracts."""

import pytest

from linekeeper_discord.options import (
    COMMAND_OPTIONS,
    CommandArgs,
    NumberOption,
    OptionError,
    Requirement,
    options_for,
    verify,
)


class TestVerify:
    def test_lists_every_missing_argument(self):
        with pytest.raises(OptionError) as exc_info:
            verify(options_for("pullnum"), CommandArgs())

        assert exc_info.value.message == "**ERROR**: Missing channel and number arguments."

    def test_single_missing_argument(self):
        with pytest.raises(OptionError) as exc_info:
            verify(options_for("kick"), CommandArgs(channel_id=1))

        assert exc_info.value.message == "**ERROR**: Missing member argument."

    def test_number_is_clamped(self):
        args = verify(options_for("next"), CommandArgs(channel_id=1, number=500))
        assert args.number == 99

        args = verify(options_for("grace"), CommandArgs(channel_id=1, number=-5))
        assert args.number == 0

    def test_absent_optional_number_takes_default(self):
        args = verify(options_for("next"), CommandArgs(channel_id=1))
        assert args.number is None

    def test_voice_only_command_rejects_text_channel(self):
        with pytest.raises(OptionError):
            verify(options_for("transfer"), CommandArgs(channel_id=1, channel_is_voice=False))

    def test_voice_only_command_accepts_voice_channel(self):
        args = verify(options_for("mute"), CommandArgs(channel_id=1, channel_is_voice=True))
        assert args.channel_id == 1

    def test_every_command_is_keyed_by_its_name(self):
        assert all(name == opt.command for name, opt in COMMAND_OPTIONS.items())


class TestNumberOption:
    def test_clamp(self):
        option = NumberOption(Requirement.OPTIONAL, min=2, max=5, default=3)

        assert option.clamp(None) == 3
        assert option.clamp(1) == 2
        assert option.clamp(4) == 4
        assert option.clamp(9) == 5
