"""Event routing between IRC and Slack.

This module is integration-agnostic. It only relies on ports for the two
networks, so both routers can be driven by fakes in tests.

Each network gets its own router and its own loop. A loop handles one event
at a time, in arrival order, and never calls into the other loop. The only
state the loops share is the mapping table and the Slack identity caches,
which are read-only once connected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional, TypeVar

from core import notices
from core.channel_map import ChannelMapping
from core.errors import SendError
from core.highlight import HighlightRule, should_highlight
from core.markup import slack_to_irc, split_lines
from core.membership import MembershipSnapshot, MembershipTracker, channels_with
from core.models import (
    ACTION,
    CONNECTED,
    DISCONNECTED,
    INVITE,
    JOIN,
    KICK,
    ME_MESSAGE_SUBTYPE,
    MESSAGE,
    MODE,
    NICK,
    PART,
    PLAIN_SUBTYPE,
    QUIT,
    TOPIC,
    IRCEvent,
    SlackEvent,
)
from core.playback import SYSTEM_SENDER, PlaybackState, advance
from core.ports import DirectoryPort, IRCPort, SlackPort

LOGGER = logging.getLogger(__name__)

RELAYED_SUBTYPES = frozenset({PLAIN_SUBTYPE, ME_MESSAGE_SUBTYPE})
CHANNEL_PREFIXES = "#&+!"

EventT = TypeVar("EventT")


async def _consume(
    events: AsyncIterator[EventT],
    handle: Callable[[EventT], Awaitable[bool]],
    network: str,
) -> None:
    async for event in events:
        try:
            keep_running = await handle(event)
        except Exception:
            LOGGER.exception("Error while processing %s event %r", network, event)
            continue
        if not keep_running:
            LOGGER.info("%s event loop finished", network)
            return


@dataclass
class IRCLoopState:
    """Mutable state owned by the IRC loop."""

    snapshot: MembershipSnapshot = field(default_factory=dict)
    playback: PlaybackState = field(default_factory=PlaybackState)


class IRCEventRouter:
    """Turns IRC events into Slack posts."""

    def __init__(
        self,
        mapping: ChannelMapping,
        irc: IRCPort,
        slack: SlackPort,
        highlight_rules: Iterable[HighlightRule],
        owner: str,
        server: str,
        join_keys: Optional[dict[str, Optional[str]]] = None,
        system_sender: str = SYSTEM_SENDER,
    ) -> None:
        self._mapping = mapping
        self._irc = irc
        self._slack = slack
        self._tracker = MembershipTracker(mapping, irc)
        self._highlight_rules = list(highlight_rules)
        self._owner = owner
        self._server = server
        self._join_keys = join_keys or {}
        self._system_sender = system_sender
        self._handlers: dict[str, Callable[[IRCEvent, IRCLoopState], Awaitable[None]]] = {
            CONNECTED: self._on_connected,
            DISCONNECTED: self._on_disconnected,
            MESSAGE: self._on_message,
            ACTION: self._on_action,
            JOIN: self._on_join,
            PART: self._on_part,
            KICK: self._on_kick,
            MODE: self._on_mode,
            NICK: self._on_nick,
            QUIT: self._on_quit,
            TOPIC: self._on_topic,
            INVITE: self._on_invite,
        }

    def new_state(self) -> IRCLoopState:
        return IRCLoopState(snapshot=self._tracker.snapshot())

    async def run(self, events: AsyncIterator[IRCEvent], state: Optional[IRCLoopState] = None) -> None:
        """Consume IRC events until a disconnect."""

        loop_state = state if state is not None else self.new_state()
        await _consume(events, lambda event: self.handle(event, loop_state), "IRC")

    async def handle(self, event: IRCEvent, state: IRCLoopState) -> bool:
        """Process one IRC event. Returns False once the loop should end."""

        handler = self._handlers.get(event.kind)
        if handler is None:
            LOGGER.warning("Received unrecognized IRC event: %r", event)
            return True

        await handler(event, state)

        # Fallback for nick and quit lines that arrive without recorded channels
        state.snapshot = self._tracker.snapshot()
        return event.kind != DISCONNECTED

    def _slack_channel_for(self, event: IRCEvent) -> Optional[str]:
        slack_channel = self._mapping.lookup_from_irc(event.target)
        if slack_channel is None:
            LOGGER.debug("Ignoring %s for unmapped target %s", event.kind, event.target)
        return slack_channel

    async def _post_as(self, nick: str, slack_channel: str, text: str) -> None:
        try:
            await self._slack.send_as(nick, slack_channel, text)
        except SendError as exc:
            LOGGER.warning("Dropped message from %s to %s: %s", nick, slack_channel, exc)

    async def _post_as_bot(self, slack_channel: str, text: str) -> None:
        try:
            await self._slack.send_as_bot(slack_channel, text)
        except SendError as exc:
            LOGGER.warning("Dropped notice to %s: %s", slack_channel, exc)

    async def _notify_owner(self, text: str) -> None:
        try:
            await self._slack.send_to_owner(text)
        except SendError as exc:
            LOGGER.warning("Could not notify the owner: %s", exc)

    async def _on_connected(self, event: IRCEvent, state: IRCLoopState) -> None:
        LOGGER.info("Connected to IRC on %s", self._server)
        for channel in self._mapping.irc_channels():
            LOGGER.info("Joining IRC channel: %s", channel)
            try:
                await self._irc.join(channel, self._join_keys.get(channel))
            except SendError as exc:
                LOGGER.warning("Could not join %s: %s", channel, exc)
        await self._notify_owner(notices.format_irc_connected(self._server))

    async def _on_disconnected(self, event: IRCEvent, state: IRCLoopState) -> None:
        LOGGER.warning("Disconnected from IRC on %s", self._server)
        await self._notify_owner(notices.format_irc_disconnected(self._server))

    async def _on_message(self, event: IRCEvent, state: IRCLoopState) -> None:
        LOGGER.info("PRIVMSG: (%s) <%s> %s", event.target, event.nick, event.text)

        # The playback state must see every line, relayed or not.
        if not advance(state.playback, event, self._system_sender):
            return

        slack_channel = self._slack_channel_for(event)
        if slack_channel is None:
            return

        if should_highlight(self._highlight_rules, event.nick, event.text):
            await self._post_as_bot(slack_channel, notices.format_highlight(self._owner, event.nick))

        await self._post_as(event.nick, slack_channel, event.text)

    async def _on_action(self, event: IRCEvent, state: IRCLoopState) -> None:
        LOGGER.info("ACTION: (%s) %s %s", event.target, event.nick, event.text)
        if state.playback.is_in_playback:
            return
        slack_channel = self._slack_channel_for(event)
        if slack_channel is None:
            return
        await self._post_as(event.nick, slack_channel, notices.format_action(event.nick, event.text))

    async def _on_join(self, event: IRCEvent, state: IRCLoopState) -> None:
        LOGGER.info("JOIN: %s(%s) has joined %s", event.nick, event.usermask, event.target)
        slack_channel = self._slack_channel_for(event)
        if slack_channel is None:
            return
        await self._post_as_bot(slack_channel, notices.format_join(event.nick, event.usermask))

    async def _on_part(self, event: IRCEvent, state: IRCLoopState) -> None:
        LOGGER.info("PART: (%s) %s(%s) has left (%s)", event.target, event.nick, event.usermask, event.text)
        slack_channel = self._slack_channel_for(event)
        if slack_channel is None:
            return
        await self._post_as_bot(slack_channel, notices.format_part(event.nick, event.usermask))

    async def _on_kick(self, event: IRCEvent, state: IRCLoopState) -> None:
        kickee = event.args[0] if event.args else ""
        LOGGER.info("KICK: (%s) %s has kicked %s (%s)", event.target, event.nick, kickee, event.text)
        slack_channel = self._slack_channel_for(event)
        if slack_channel is None:
            return
        await self._post_as_bot(slack_channel, notices.format_kick(event.nick, kickee, event.text))

    async def _on_mode(self, event: IRCEvent, state: IRCLoopState) -> None:
        if not event.args:
            LOGGER.debug("Ignoring empty mode change: %r", event)
            return
        mode, params = event.args[0], event.args[1:]
        if not event.target.startswith(tuple(CHANNEL_PREFIXES)):
            LOGGER.info("MODE: %s has set mode %s on %s", event.nick, mode, event.target)
            return

        LOGGER.info("MODE: (%s) %s sets %s %s", event.target, event.nick, mode, " ".join(params))
        slack_channel = self._slack_channel_for(event)
        if slack_channel is None:
            return
        await self._post_as_bot(slack_channel, notices.format_mode(event.nick, mode, params))

    async def _on_nick(self, event: IRCEvent, state: IRCLoopState) -> None:
        LOGGER.info("NICK: %s is now known as %s", event.nick, event.text)
        message = notices.format_nick(event.nick, event.text)
        await self._fan_out(self._channels_before(event, state), message)

    async def _on_quit(self, event: IRCEvent, state: IRCLoopState) -> None:
        LOGGER.info("QUIT: %s(%s) has quit (%s)", event.nick, event.usermask, event.text)
        message = notices.format_quit(event.nick, event.usermask, event.text)
        await self._fan_out(self._channels_before(event, state), message)

    def _channels_before(self, event: IRCEvent, state: IRCLoopState) -> Iterable[str]:
        """Channels that held ``event.nick`` just before its line was applied.

        The client records them while reading the line. Lines queued behind
        slow sends have already changed the live roster, and with it the loop
        snapshot, so the snapshot is only used when nothing was recorded.
        """

        if event.channels is not None:
            return event.channels
        return list(channels_with(state.snapshot, event.nick))

    async def _fan_out(self, irc_channels: Iterable[str], message: str) -> None:
        """Post ``message`` to every mapped channel in ``irc_channels``."""

        for irc_channel in irc_channels:
            slack_channel = self._mapping.lookup_from_irc(irc_channel)
            if slack_channel is None:
                continue
            await self._post_as_bot(slack_channel, message)

    async def _on_topic(self, event: IRCEvent, state: IRCLoopState) -> None:
        LOGGER.info('TOPIC: (%s) %s has changed the topic to "%s"', event.target, event.nick, event.text)
        slack_channel = self._slack_channel_for(event)
        if slack_channel is None:
            return
        await self._post_as_bot(slack_channel, notices.format_topic(event.nick, event.text))

    async def _on_invite(self, event: IRCEvent, state: IRCLoopState) -> None:
        # Invites are only logged, the bridge never follows them.
        LOGGER.info("INVITE: %s(%s) invited you to %s", event.nick, event.usermask, event.target)


class SlackEventRouter:
    """Turns Slack messages into IRC messages and actions."""

    def __init__(
        self,
        mapping: ChannelMapping,
        irc: IRCPort,
        directory: DirectoryPort,
        expand_emoji: bool = True,
    ) -> None:
        self._mapping = mapping
        self._irc = irc
        self._directory = directory
        self._expand_emoji = expand_emoji

    async def run(self, events: AsyncIterator[SlackEvent]) -> None:
        """Consume Slack events until a disconnect."""

        await _consume(events, self.handle, "Slack")

    async def handle(self, event: SlackEvent) -> bool:
        """Process one Slack event. Returns False once the loop should end."""

        if event.kind == MESSAGE:
            await self._on_message(event)
            return True
        if event.kind == CONNECTED:
            LOGGER.info("Connected to Slack!")
            return True
        if event.kind == DISCONNECTED:
            LOGGER.warning("Disconnected from Slack")
            return False

        LOGGER.warning("Received unrecognized Slack event: %r", event)
        return True

    async def _on_message(self, event: SlackEvent) -> None:
        # Relaying bot posts, our own included, would echo forever.
        if event.is_from_bot:
            LOGGER.debug("Ignoring bot message in %s", event.channel_id)
            return

        if event.subtype not in RELAYED_SUBTYPES:
            LOGGER.info("Ignoring message with unsupported subtype %r in %s", event.subtype, event.channel_id)
            return

        channel_name = self._directory.channel_name(event.channel_id)
        irc_channel = self._mapping.lookup_from_slack(channel_name) if channel_name else None
        if irc_channel is None:
            LOGGER.debug("Ignoring message in unmapped Slack channel %s", event.channel_id)
            return

        text = slack_to_irc(event.text, self._directory, self._expand_emoji)
        send = self._irc.send_action if event.subtype == ME_MESSAGE_SUBTYPE else self._irc.send_message
        for line in split_lines(text):
            try:
                await send(irc_channel, line)
            except SendError as exc:
                LOGGER.warning("Dropped line to %s: %s", irc_channel, exc)
