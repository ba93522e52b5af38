"""Bidirectional IRC <-> Slack channel mapping."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from core.errors import ConfigurationError


class ChannelMapping:
    """Immutable one-to-one lookup between IRC and Slack channels."""

    def __init__(self, irc_to_slack: dict[str, str]) -> None:
        self._irc_to_slack = dict(irc_to_slack)
        # IRC channel names are case-insensitive
        self._folded_irc = {irc.lower(): slack for irc, slack in irc_to_slack.items()}
        self._slack_to_irc = {slack: irc for irc, slack in irc_to_slack.items()}

    @classmethod
    def build(
        cls,
        pairs: Iterable[Tuple[str, str]],
        irc_channels: Iterable[str],
        slack_channels: Iterable[str],
    ) -> "ChannelMapping":
        """Validate (irc_channel, slack_channel) pairs and build the table.

        Every channel must be declared under its own network and may appear
        in at most one pair.
        """

        declared_irc = set(irc_channels)
        declared_slack = set(slack_channels)
        irc_to_slack: dict[str, str] = {}
        seen_slack: set[str] = set()

        for irc_channel, slack_channel in pairs:
            if irc_channel not in declared_irc:
                raise ConfigurationError(
                    f"IRC channel '{irc_channel}' was specified in the channel mapping, "
                    "but wasn't configured under irc.channels"
                )
            if slack_channel not in declared_slack:
                raise ConfigurationError(
                    f"Slack channel '{slack_channel}' was specified in the channel mapping, "
                    "but wasn't configured under slack.channels"
                )
            if irc_channel.lower() in {known.lower() for known in irc_to_slack}:
                raise ConfigurationError(f"IRC channel '{irc_channel}' is mapped more than once")
            if slack_channel in seen_slack:
                raise ConfigurationError(f"Slack channel '{slack_channel}' is mapped more than once")
            irc_to_slack[irc_channel] = slack_channel
            seen_slack.add(slack_channel)

        return cls(irc_to_slack)

    def lookup_from_irc(self, irc_channel: str) -> Optional[str]:
        return self._folded_irc.get(irc_channel.lower())

    def lookup_from_slack(self, slack_channel: str) -> Optional[str]:
        return self._slack_to_irc.get(slack_channel)

    def irc_channels(self) -> list[str]:
        return list(self._irc_to_slack)

    def pairs(self) -> list[Tuple[str, str]]:
        return list(self._irc_to_slack.items())

    def __len__(self) -> int:
        return len(self._irc_to_slack)
