"""Slack-to-core event mapping adapter.

This keeps Slack's JSON payload shapes out of the core router.
"""

from __future__ import annotations

import hashlib
from typing import Any, Mapping, Optional

from core.models import MESSAGE, PLAIN_SUBTYPE, SlackEvent


def build_slack_event(payload: Mapping[str, Any]) -> Optional[SlackEvent]:
    """Build a core SlackEvent from an Events API ``event`` payload.

    Only message events are mapped; anything else returns None.
    """

    if payload.get("type") != MESSAGE:
        return None

    return SlackEvent(
        kind=MESSAGE,
        channel_id=payload.get("channel") or "",
        user_id=payload.get("user") or "",
        text=payload.get("text") or "",
        subtype=payload.get("subtype") or PLAIN_SUBTYPE,
        bot_id=payload.get("bot_id") or "",
    )


def channel_display_name(channel: Mapping[str, Any]) -> str:
    """Return the name we cache for a conversations.list entry."""

    # The API returns channel names without the pound sign
    return f"#{channel['name']}"


def user_icon_url(name: str) -> str:
    """Deterministic identicon for a relayed IRC nick."""

    digest = hashlib.md5(name.encode("utf-8")).hexdigest()
    return f"https://www.gravatar.com/avatar/{digest}?d=identicon"
