"""Slack markup translation for relaying to IRC.

Slack escapes ``&``, ``<`` and ``>`` and wraps channel references, user
mentions, special mentions and links in ``<...>`` bracket sequences. IRC has
none of that, so messages are rendered to plain text before they are relayed.
"""

from __future__ import annotations

import re
from typing import List

import emoji

from core.ports import DirectoryPort

# Slack markup patterns
BRACKET_SEQUENCE = re.compile(r"<(.*?)>")
CHANNEL_REFERENCE = re.compile(r"^#([CGD][A-Z0-9]+)(?:\|.*)?$")
USER_MENTION = re.compile(r"^@([UW][A-Z0-9]+)(?:\|.*)?$")

HTML_ENTITY = re.compile(r"&(amp|lt|gt);")

# HTML entity mappings
HTML_ENTITIES = {
    "amp": "&",
    "lt": "<",
    "gt": ">",
}


def decode_entities(text: str) -> str:
    """Undo Slack's escaping of ``&``, ``<`` and ``>``."""

    # Single pass, so "&amp;lt;" becomes "&lt;" and not "<"
    return HTML_ENTITY.sub(lambda match: HTML_ENTITIES[match.group(1)], text)


def _label_or(body: str, default: str) -> str:
    _, pipe, label = body.partition("|")
    return label if pipe else default


def render_bracket_sequence(body: str, directory: DirectoryPort) -> str:
    """Render the inside of one ``<...>`` sequence.

    Channel and user ids are always replaced by their cached names. An id
    missing from the cache falls back to the raw id so the reader still sees
    what was referenced.
    """

    channel = CHANNEL_REFERENCE.match(body)
    if channel:
        channel_id = channel.group(1)
        # Channel names are cached with their "#" prefix
        return directory.channel_name(channel_id) or f"#{channel_id}"

    user = USER_MENTION.match(body)
    if user:
        user_id = user.group(1)
        return f"@{directory.user_name(user_id) or user_id}"

    # Special sequences like <!here|@here> or <!channel>
    if body.startswith("!"):
        return _label_or(body, f"@{body[1:]}")

    # Anything else is a link: prefer the label over the raw URL
    return _label_or(body, body)


def render_for_display(text: str, directory: DirectoryPort) -> str:
    """Replace every bracket sequence in ``text`` with its display form."""

    return BRACKET_SEQUENCE.sub(lambda match: render_bracket_sequence(match.group(1), directory), text)


def expand_emoji(text: str) -> str:
    """Turn shortcodes such as ``:pizza:`` into the emoji itself."""

    return emoji.emojize(text, language="alias")


def split_lines(text: str) -> List[str]:
    """Split text into the individual lines IRC can carry.

    Blank lines are dropped; IRC servers reject empty messages.
    """

    return [line for line in text.replace("\r\n", "\n").split("\n") if line.strip()]


def slack_to_irc(text: str, directory: DirectoryPort, expand_shortcodes: bool = True) -> str:
    """Full Slack -> IRC text pipeline.

    Rendering runs before entity decoding, otherwise a decoded ``&lt;`` would
    be mistaken for the start of a bracket sequence.
    """

    text = render_for_display(text, directory)
    text = decode_entities(text)
    if expand_shortcodes:
        text = expand_emoji(text)
    return text
