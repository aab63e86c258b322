"""Per-command argument contracts.

Every slash command declares which arguments it needs in a ``RequiredOptions`` entry. Arguments
are checked against it before an intent is built, so a missing argument is reported once, with
all of the missing names, instead of failing halfway through a command.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Requirement(Enum):
    OPTIONAL = "optional"
    REQUIRED = "required"


class ChannelKind(Enum):
    ANY = "any"
    VOICE = "voice"
    TEXT = "text"


@dataclass(frozen=True)
class ChannelOption:
    requirement: Requirement = Requirement.REQUIRED
    kind: ChannelKind = ChannelKind.ANY


@dataclass(frozen=True)
class NumberOption:
    requirement: Requirement = Requirement.OPTIONAL
    min: int = 1
    max: int = 99
    default: int | None = None

    def clamp(self, value: int | None) -> int | None:
        """Clamp ``value`` into [min, max]. ``None`` takes the default."""
        if value is None:
            return self.default
        return max(self.min, min(self.max, value))


@dataclass(frozen=True)
class RequiredOptions:
    """Arguments one command understands. Fields left as ``None`` are not accepted at all."""

    command: str
    channel: ChannelOption | None = None
    members: Requirement | None = None
    number: NumberOption | None = None
    text: Requirement | None = None


@dataclass
class CommandArgs:
    """Arguments as received from an interaction."""

    channel_id: int | None = None
    channel_is_voice: bool | None = None
    member_ids: list[int] = field(default_factory=list)
    number: int | None = None
    text: str | None = None


class OptionError(ValueError):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _join_names(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + f" and {names[-1]}"


def verify(options: RequiredOptions, args: CommandArgs) -> CommandArgs:
    """Check ``args`` against ``options`` and return them with the number clamped.

    Raises ``OptionError`` listing every missing required argument, or naming a channel of the
    wrong kind.
    """
    missing: list[str] = []
    if options.channel and options.channel.requirement is Requirement.REQUIRED:
        if args.channel_id is None:
            missing.append("channel")
    if options.members is Requirement.REQUIRED and not args.member_ids:
        missing.append("member")
    if options.number and options.number.requirement is Requirement.REQUIRED:
        if args.number is None:
            missing.append("number")
    if options.text is Requirement.REQUIRED and not args.text:
        missing.append("text")
    if missing:
        noun = "argument" if len(missing) == 1 else "arguments"
        raise OptionError(f"**ERROR**: Missing {_join_names(missing)} {noun}.")

    if options.channel and args.channel_id is not None and args.channel_is_voice is not None:
        if options.channel.kind is ChannelKind.VOICE and not args.channel_is_voice:
            raise OptionError("**ERROR**: That command needs a voice channel.")
        if options.channel.kind is ChannelKind.TEXT and args.channel_is_voice:
            raise OptionError("**ERROR**: That command needs a text channel.")

    if options.number:
        args.number = options.number.clamp(args.number)
    return args


COMMAND_OPTIONS: dict[str, RequiredOptions] = {
    opt.command: opt
    for opt in (
        RequiredOptions("create", channel=ChannelOption(), number=NumberOption(max=10_000)),
        RequiredOptions("delete", channel=ChannelOption()),
        RequiredOptions("join", channel=ChannelOption()),
        RequiredOptions("leave", channel=ChannelOption()),
        RequiredOptions("position", channel=ChannelOption()),
        RequiredOptions("next", channel=ChannelOption(), number=NumberOption()),
        RequiredOptions("enqueue", channel=ChannelOption(), members=Requirement.REQUIRED),
        RequiredOptions("kick", channel=ChannelOption(), members=Requirement.REQUIRED),
        RequiredOptions("shuffle", channel=ChannelOption()),
        RequiredOptions("clear", channel=ChannelOption()),
        RequiredOptions("display", channel=ChannelOption()),
        RequiredOptions("limit", channel=ChannelOption(), number=NumberOption(max=10_000)),
        RequiredOptions(
            "pullnum", channel=ChannelOption(), number=NumberOption(Requirement.REQUIRED)
        ),
        RequiredOptions(
            "grace",
            channel=ChannelOption(),
            number=NumberOption(Requirement.REQUIRED, min=0, max=6_000),
        ),
        RequiredOptions("lock", channel=ChannelOption()),
        RequiredOptions("color", channel=ChannelOption(), text=Requirement.REQUIRED),
        RequiredOptions("header", channel=ChannelOption(), text=Requirement.OPTIONAL),
        RequiredOptions("mute", channel=ChannelOption(kind=ChannelKind.VOICE)),
        RequiredOptions("autofill", channel=ChannelOption(kind=ChannelKind.VOICE)),
        RequiredOptions("target", channel=ChannelOption(kind=ChannelKind.VOICE)),
        RequiredOptions("role", channel=ChannelOption()),
        RequiredOptions("transfer", channel=ChannelOption(kind=ChannelKind.VOICE)),
    )
}


def options_for(command: str) -> RequiredOptions:
    return COMMAND_OPTIONS[command]
