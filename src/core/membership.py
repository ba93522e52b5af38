"""Membership snapshots of the mapped IRC channels.

IRC only names the user on NICK and QUIT lines, so the router needs to know
which channels held that user just before the line arrived. The snapshot is
derived from the IRC client's own roster tracking.
"""

from __future__ import annotations

from typing import Iterator

from core.channel_map import ChannelMapping
from core.ports import IRCPort

MembershipSnapshot = dict[str, frozenset[str]]


class MembershipTracker:
    """Builds per-channel nick sets for every mapped IRC channel."""

    def __init__(self, mapping: ChannelMapping, irc: IRCPort) -> None:
        self._mapping = mapping
        self._irc = irc

    def snapshot(self) -> MembershipSnapshot:
        """Return the current nicks per mapped channel.

        Channels whose roster is not known yet are left out, so an absent key
        never reads as an empty channel.
        """

        snapshot: MembershipSnapshot = {}
        for channel in self._mapping.irc_channels():
            roster = self._irc.current_roster(channel)
            if roster is None:
                continue
            snapshot[channel] = frozenset(roster)
        return snapshot


def channels_with(snapshot: MembershipSnapshot, nick: str) -> Iterator[str]:
    """Yield every channel of the snapshot that contains ``nick``."""

    for channel, nicks in snapshot.items():
        if nick in nicks:
            yield channel
