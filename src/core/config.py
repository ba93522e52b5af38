"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class HighlightRuleConfig:
    """One raw highlight rule as written in the config file."""

    nick_pattern: Optional[str]
    message_pattern: Optional[str]
    should_highlight: bool


@dataclass(frozen=True)
class IRCConfig:
    """IRC connection settings and per-channel join keys."""

    nickname: str
    name: str
    server: str
    port: int
    password: Optional[str]
    ssl: bool
    tls_verify: bool
    channels: dict[str, Optional[str]]
    highlight_rules: list[HighlightRuleConfig] = field(default_factory=list)


@dataclass(frozen=True)
class SlackConfig:
    """Slack credentials, the owner handle and the declared channels."""

    token: str
    app_token: str
    owner: str
    channels: list[str]


@dataclass(frozen=True)
class RelayConfig:
    """Relay behaviour switches consumed by the routers."""

    expand_emoji: bool = True
    system_sender: str = "***"


@dataclass(frozen=True)
class BridgeConfig:
    """Everything the bridge needs, validated before connecting."""

    irc: IRCConfig
    slack: SlackConfig
    channel_mapping: dict[str, str]
    relay: RelayConfig
    logging: dict
