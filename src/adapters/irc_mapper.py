"""pydle-to-core event mapping adapter.

This keeps pydle's callback signatures and user records out of the core
router. Every function here is pure so the mapping can be tested without a
connection.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from core.models import (
    ACTION,
    CONNECTED,
    DISCONNECTED,
    INVITE,
    JOIN,
    KICK,
    MESSAGE,
    MODE,
    NICK,
    PART,
    QUIT,
    TOPIC,
    IRCEvent,
)


def format_usermask(nick: str, user: Optional[Mapping]) -> str:
    """Return ``nick!username@hostname`` from a pydle user record.

    Missing parts are left out rather than guessed.
    """

    if not user:
        return nick
    username = user.get("username")
    hostname = user.get("hostname")
    if not username and not hostname:
        return nick
    return f"{nick}!{username or '*'}@{hostname or '*'}"


def _channel_tuple(channels: Optional[Iterable[str]]) -> Optional[tuple[str, ...]]:
    return tuple(channels) if channels is not None else None


def connected_event() -> IRCEvent:
    return IRCEvent(kind=CONNECTED)


def disconnected_event() -> IRCEvent:
    return IRCEvent(kind=DISCONNECTED)


def message_event(target: str, by: str, message: str, usermask: str = "") -> IRCEvent:
    return IRCEvent(kind=MESSAGE, nick=by, usermask=usermask, target=target, text=message)


def action_event(by: str, target: str, contents: Optional[str], usermask: str = "") -> IRCEvent:
    return IRCEvent(kind=ACTION, nick=by, usermask=usermask, target=target, text=contents or "")


def join_event(channel: str, user: str, usermask: str) -> IRCEvent:
    return IRCEvent(kind=JOIN, nick=user, usermask=usermask, target=channel)


def part_event(channel: str, user: str, usermask: str, message: Optional[str] = None) -> IRCEvent:
    return IRCEvent(kind=PART, nick=user, usermask=usermask, target=channel, text=message or "")


def kick_event(channel: str, target: str, by: str, reason: Optional[str] = None) -> IRCEvent:
    return IRCEvent(kind=KICK, nick=by, target=channel, text=reason or "", args=(target,))


def quit_event(
    user: str,
    usermask: str,
    message: Optional[str] = None,
    channels: Optional[Iterable[str]] = None,
) -> IRCEvent:
    return IRCEvent(kind=QUIT, nick=user, usermask=usermask, text=message or "", channels=_channel_tuple(channels))


def nick_event(
    old: str,
    new: str,
    usermask: str = "",
    channels: Optional[Iterable[str]] = None,
) -> IRCEvent:
    return IRCEvent(kind=NICK, nick=old, usermask=usermask, text=new, channels=_channel_tuple(channels))


def topic_event(channel: str, message: Optional[str], by: str) -> IRCEvent:
    return IRCEvent(kind=TOPIC, nick=by, target=channel, text=message or "")


def mode_event(target: str, modes: Sequence[str], by: Optional[str]) -> IRCEvent:
    """Map a mode change; ``modes`` is the mode string followed by its parameters."""

    return IRCEvent(kind=MODE, nick=by or "", target=target, args=tuple(modes))


def invite_event(channel: str, by: str) -> IRCEvent:
    return IRCEvent(kind=INVITE, nick=by, target=channel)
