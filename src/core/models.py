"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# IRC event kinds
CONNECTED = "connected"
DISCONNECTED = "disconnected"
MESSAGE = "message"
ACTION = "action"
JOIN = "join"
PART = "part"
KICK = "kick"
QUIT = "quit"
NICK = "nick"
MODE = "mode"
TOPIC = "topic"
INVITE = "invite"

IRC_EVENT_KINDS = frozenset(
    {CONNECTED, DISCONNECTED, MESSAGE, ACTION, JOIN, PART, KICK, QUIT, NICK, MODE, TOPIC, INVITE}
)

# Slack message subtypes that are relayed; "" is a plain message.
PLAIN_SUBTYPE = ""
ME_MESSAGE_SUBTYPE = "me_message"


@dataclass(frozen=True)
class IRCEvent:
    """One inbound IRC line, reduced to what the router needs.

    ``target`` is the channel (or our own nick for private messages).
    Per kind:
    - message, action, topic: ``text`` is the body
    - part, quit: ``text`` is the reason
    - kick: ``args`` is (kickee,), ``text`` is the reason
    - nick: ``text`` is the new nick
    - mode: ``args`` is the mode string followed by its parameters
    - invite: ``target`` is the channel we were invited to

    For nick and quit, ``channels`` lists the channels that held the nick
    when the client read the line, or None if the client did not record them.
    """

    kind: str
    nick: str = ""
    usermask: str = ""
    target: str = ""
    text: str = ""
    args: tuple[str, ...] = ()
    channels: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class SlackEvent:
    """One inbound Slack event: a message or a connection lifecycle change."""

    kind: str
    channel_id: str = ""
    user_id: str = ""
    text: str = ""
    subtype: str = PLAIN_SUBTYPE
    bot_id: str = ""

    @property
    def is_from_bot(self) -> bool:
        return bool(self.bot_id)
