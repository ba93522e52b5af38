"""Bouncer buffer-playback detection.

Bouncers replay the channel log on reconnect between two sentinel lines sent
by a system pseudo-user. Relaying that replay would repost old conversation,
so those lines, the sentinels included, are suppressed.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.models import MESSAGE, IRCEvent

SYSTEM_SENDER = "***"
PLAYBACK_START_TEXT = "Buffer Playback..."
PLAYBACK_END_TEXT = "Playback Complete."


@dataclass
class PlaybackState:
    """Playback flags as of the previous line and the current line."""

    was_in_playback: bool = False
    is_in_playback: bool = False


def _is_sentinel(event: IRCEvent, text: str, system_sender: str) -> bool:
    return event.kind == MESSAGE and event.nick == system_sender and event.text == text


def is_playback_start(event: IRCEvent, system_sender: str = SYSTEM_SENDER) -> bool:
    return _is_sentinel(event, PLAYBACK_START_TEXT, system_sender)


def is_playback_end(event: IRCEvent, system_sender: str = SYSTEM_SENDER) -> bool:
    return _is_sentinel(event, PLAYBACK_END_TEXT, system_sender)


def advance(state: PlaybackState, event: IRCEvent, system_sender: str = SYSTEM_SENDER) -> bool:
    """Apply one message line to the state and return whether it may be relayed.

    The check uses the previous line's flag too: on the end sentinel we are
    already out of playback, but that line still has to be dropped.
    """

    if state.is_in_playback:
        if is_playback_end(event, system_sender):
            state.is_in_playback = False
    elif is_playback_start(event, system_sender):
        state.is_in_playback = True

    forwardable = not state.was_in_playback and not state.is_in_playback
    state.was_in_playback = state.is_in_playback
    return forwardable
