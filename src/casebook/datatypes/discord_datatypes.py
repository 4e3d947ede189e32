"""
Type-safe wrappers for the Discord identifiers a case refers to.

Cases store guild, user, moderator and channel references as snowflake
strings. The wrappers here validate caller input once, at the edge, so the
repositories only ever see canonical decimal strings.
"""

from __future__ import annotations

from typing import Union

import discord


class Snowflake:
    """
    Base wrapper for a Discord snowflake ID.

    Snowflakes are 64-bit integers but are kept as strings, which is also how
    the case tables store them.

    Attributes:
        _value (str): Canonical decimal representation of the snowflake.

    Example:
        >>> gid = GuildID(" 123456789012345678 ")
        >>> str(gid)
        '123456789012345678'
        >>> gid.to_int()
        123456789012345678
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Args:
            value: The snowflake as a string, int, or wrapper of the same kind.

        Raises:
            ValueError: If the value is not a non-negative integer.
        """
        if isinstance(value, Snowflake):
            if not isinstance(value, type(self)):
                raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}")
            self._value = value._value
            return
        if isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        if isinstance(value, int):
            number = value
        elif isinstance(value, str):
            number = int(value.strip())
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")
        if number < 0:
            raise ValueError(f"{type(self).__name__} must be non-negative, got {number}")
        self._value = str(number)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls."""
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, type(self)):
            return self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class GuildID(Snowflake):
    """Snowflake of the guild (tenant) a case belongs to."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        """Create a GuildID from a Discord Guild object."""
        return cls(guild.id)


class UserID(Snowflake):
    """Snowflake of a case subject or of the moderator acting on it."""

    __slots__ = ()

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User]) -> "UserID":
        """Create a UserID from a Discord Member or User object."""
        return cls(member.id)


class ChannelID(Snowflake):
    """Snowflake of the channel where an infraction happened."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel: discord.abc.GuildChannel) -> "ChannelID":
        """Create a ChannelID from a Discord channel object."""
        return cls(channel.id)


class MessageID(Snowflake):
    """Snowflake of the offending message a case points at."""

    __slots__ = ()

    @classmethod
    def from_message(cls, message: discord.Message) -> "MessageID":
        """Create a MessageID from a Discord Message object."""
        return cls(message.id)
