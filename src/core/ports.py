"""Ports (interfaces) used by the core routers.

Ports define the minimal contracts for the IRC and Slack adapters so that the
routing logic can be reused with different client libraries, or with fakes in
tests.
"""

from __future__ import annotations

from typing import Optional, Protocol


class IRCPort(Protocol):
    """IRC operations required by the routers."""

    async def send_message(self, channel: str, text: str) -> None:
        ...

    async def send_action(self, channel: str, text: str) -> None:
        ...

    async def join(self, channel: str, key: Optional[str]) -> None:
        ...

    def current_roster(self, channel: str) -> Optional[set[str]]:
        """Return the nicks in a channel, or None while the roster is unknown."""
        ...


class DirectoryPort(Protocol):
    """Slack id lookups backed by the identity caches."""

    def channel_name(self, channel_id: str) -> Optional[str]:
        ...

    def user_name(self, user_id: str) -> Optional[str]:
        ...


class SlackPort(DirectoryPort, Protocol):
    """Slack operations required by the routers."""

    async def send_as(self, name: str, channel: str, text: str) -> None:
        ...

    async def send_as_bot(self, channel: str, text: str) -> None:
        ...

    async def send_to_owner(self, text: str) -> None:
        ...
