"""IRC adapter: pydle client feeding the IRC router.

Callbacks only translate pydle events into core ``IRCEvent`` objects and
queue them; all decisions happen in the router loop. The client also
implements the ``IRCPort`` contract used by both routers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

import pydle

from adapters import irc_mapper
from core.config import IRCConfig
from core.errors import BridgeConnectionError, SendError
from core.models import IRCEvent

LOGGER = logging.getLogger(__name__)


class IRCBridgeClient(pydle.Client):
    """pydle client that queues events for the router and sends on its behalf."""

    def __init__(self, irc_config: IRCConfig, **kwargs) -> None:
        super().__init__(
            irc_config.nickname,
            username=irc_config.name,
            realname=irc_config.name,
            **kwargs,
        )
        self._irc_config = irc_config
        self._inbound: asyncio.Queue[IRCEvent] = asyncio.Queue()
        # Channels whose NAMES list has been fully received
        self._rosters_complete: set[str] = set()

    async def connect_to_server(self) -> None:
        """Open the connection; failures are fatal at startup."""

        config = self._irc_config
        LOGGER.info("Connecting to IRC server %s:%s (tls=%s)", config.server, config.port, config.ssl)
        try:
            await self.connect(
                hostname=config.server,
                port=config.port,
                password=config.password,
                tls=config.ssl,
                tls_verify=config.tls_verify,
            )
        except (OSError, pydle.Error) as exc:
            raise BridgeConnectionError(f"Could not connect to IRC server {config.server}: {exc}") from exc

    async def iter_events(self) -> AsyncIterator[IRCEvent]:
        while True:
            yield await self._inbound.get()

    async def close(self) -> None:
        if self.connected:
            await self.quit("Bye!")

    def _push(self, event: IRCEvent) -> None:
        self._inbound.put_nowait(event)

    def _usermask(self, nick: str) -> str:
        return irc_mapper.format_usermask(nick, self.users.get(nick))

    # IRCPort

    async def send_message(self, channel: str, text: str) -> None:
        self._ensure_connected(channel)
        try:
            await self.message(channel, text)
        except (OSError, pydle.Error) as exc:
            raise SendError(f"IRC message to {channel} failed: {exc}") from exc

    async def send_action(self, channel: str, text: str) -> None:
        self._ensure_connected(channel)
        try:
            await self.ctcp(channel, "ACTION", text)
        except (OSError, pydle.Error) as exc:
            raise SendError(f"IRC action to {channel} failed: {exc}") from exc

    async def join(self, channel: str, password: Optional[str] = None) -> None:
        self._ensure_connected(channel)
        try:
            await super().join(channel, password)
        except pydle.AlreadyInChannel:
            LOGGER.debug("Already in %s", channel)
        except (OSError, pydle.Error) as exc:
            raise SendError(f"Joining {channel} failed: {exc}") from exc

    def current_roster(self, channel: str) -> Optional[set[str]]:
        if not self.in_channel(channel):
            return None
        if self.normalize(channel) not in self._rosters_complete:
            return None
        return set(self.channels[channel]["users"])

    def _channels_holding(self, nick: str) -> list[str]:
        """Channels with a known roster that currently contain ``nick``."""

        holding = []
        for channel in self.channels:
            roster = self.current_roster(channel)
            if roster is not None and nick in roster:
                holding.append(channel)
        return holding

    def _ensure_connected(self, channel: str) -> None:
        if not self.connected:
            raise SendError(f"Not connected to IRC, cannot reach {channel}")

    # pydle callbacks

    async def on_connect(self) -> None:
        await super().on_connect()
        self._rosters_complete.clear()
        self._push(irc_mapper.connected_event())

    async def on_disconnect(self, expected: bool) -> None:
        # No super() call: pydle would schedule a reconnect
        LOGGER.info("IRC connection closed (expected=%s)", expected)
        self._push(irc_mapper.disconnected_event())

    async def on_raw_366(self, message) -> None:
        """RPL_ENDOFNAMES: the roster of a channel is now complete."""

        if len(message.params) > 1:
            self._rosters_complete.add(self.normalize(message.params[1]))
        handler = getattr(super(), "on_raw_366", None)
        if handler is not None:
            await handler(message)

    async def on_message(self, target: str, by: str, message: str) -> None:
        self._push(irc_mapper.message_event(target, by, message, self._usermask(by)))

    async def on_ctcp_action(self, by: str, target: str, contents: Optional[str]) -> None:
        self._push(irc_mapper.action_event(by, target, contents, self._usermask(by)))

    async def on_join(self, channel: str, user: str) -> None:
        if self.is_same_nick(self.nickname, user):
            self._rosters_complete.discard(self.normalize(channel))
        self._push(irc_mapper.join_event(channel, user, self._usermask(user)))

    async def on_part(self, channel: str, user: str, message: Optional[str] = None) -> None:
        self._push(irc_mapper.part_event(channel, user, self._usermask(user), message))

    async def on_kick(self, channel: str, target: str, by: str, reason: Optional[str] = None) -> None:
        self._push(irc_mapper.kick_event(channel, target, by, reason))

    async def on_quit(self, user: str, message: Optional[str] = None) -> None:
        # pydle drops the user from its rosters right after this callback
        usermask = self._usermask(user)
        self._push(irc_mapper.quit_event(user, usermask, message, self._channels_holding(user)))

    async def on_nick_change(self, old: str, new: str) -> None:
        # pydle has already renamed the user, so look for the new nick
        self._push(irc_mapper.nick_event(old, new, self._usermask(new), self._channels_holding(new)))

    async def on_topic_change(self, channel: str, message: Optional[str], by: str) -> None:
        self._push(irc_mapper.topic_event(channel, message, by))

    async def on_mode_change(self, channel: str, modes, by: Optional[str]) -> None:
        self._push(irc_mapper.mode_event(channel, modes, by))

    async def on_user_mode_change(self, modes) -> None:
        self._push(irc_mapper.mode_event(self.nickname, modes, self.nickname))

    async def on_invite(self, channel: str, by: str) -> None:
        self._push(irc_mapper.invite_event(channel, by))
