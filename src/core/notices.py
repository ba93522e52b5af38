"""Slack notice formatting for IRC events.

Notices use Slack mrkdwn: ``>`` quotes the line and
``*...*`` makes bold text.
"""

from __future__ import annotations

from typing import Sequence


def format_action(nick: str, action: str) -> str:
    return f"> *{nick} {action}*"


def format_join(nick: str, usermask: str) -> str:
    return f"> *{nick}* ({usermask}) joined the channel"


def format_part(nick: str, usermask: str) -> str:
    return f"> *{nick}* ({usermask}) left the channel"


def format_kick(kicker: str, kickee: str, reason: str) -> str:
    return f"> *{kicker}* kicked *{kickee}* from the channel ({reason})"


def format_mode(nick: str, mode: str, params: Sequence[str]) -> str:
    """Format a channel mode change; parameterless modes such as +m are allowed."""

    if not params:
        return f"> *{nick}* sets *{mode}*"
    return f"> *{nick}* sets *{mode}* *{' '.join(params)}*"


def format_nick(old_nick: str, new_nick: str) -> str:
    return f"> {old_nick} is now known as *{new_nick}*"


def format_quit(nick: str, usermask: str, reason: str) -> str:
    return f"> *{nick}* ({usermask}) left IRC ({reason})"


def format_topic(nick: str, topic: str) -> str:
    return f"> *{nick}* changed the topic to *{topic}*"


def format_highlight(owner: str, nick: str) -> str:
    # Sent with link_names so Slack turns @owner into a real mention
    return f"@{owner}: you were pinged by {nick}"


def format_irc_connected(server: str) -> str:
    return f"Connected to IRC on {server}!"


def format_irc_disconnected(server: str) -> str:
    return f"Disconnected from IRC on {server}!"
