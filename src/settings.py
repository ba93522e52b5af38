"""Configuration loading for crosstalk.

All user-editable settings (IRC, Slack, channel mapping, relay switches,
logging) live in a single JSON file for quick edits without touching Python.
Secrets are read from the environment (or a .env file) first, so the config
file can be shared without tokens in it.
"""

from __future__ import annotations

import json
import os
from typing import Any, Optional

from dotenv import load_dotenv

from core.config import BridgeConfig, HighlightRuleConfig, IRCConfig, RelayConfig, SlackConfig
from core.errors import ConfigurationError

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Default location of the config file; CROSSTALK_CONFIG overrides it.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

DEFAULT_NAME = "crosstalk"
DEFAULT_PORT = 6667
DEFAULT_TLS_PORT = 6697


def resolve_config_path(path: Optional[str] = None) -> str:
    return path or os.getenv("CROSSTALK_CONFIG") or CONFIG_PATH


def _load_json_config(path: str) -> dict:
    """Load the JSON config file with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Unable to parse config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")
    return data


def _section(config: dict, name: str) -> dict:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"'{name}' must be an object")
    return section


def _require(section: dict, key: str, section_name: str) -> Any:
    value = section.get(key)
    if value is None or value == "":
        raise ConfigurationError(f"{section_name}.{key} must be defined")
    return value


def _normalize_channel_names(raw_channels: Any, section_name: str) -> dict[str, Optional[str]]:
    """Accept either a list of names or a name -> value mapping."""

    if raw_channels is None:
        return {}
    if isinstance(raw_channels, list):
        return {str(name): None for name in raw_channels}
    if isinstance(raw_channels, dict):
        return {str(name): (str(value) if value else None) for name, value in raw_channels.items()}
    raise ConfigurationError(f"{section_name}.channels must be a list or an object")


def _parse_highlight_rules(raw_rules: Any) -> list[HighlightRuleConfig]:
    if raw_rules is None:
        return []
    if not isinstance(raw_rules, list):
        raise ConfigurationError("irc.highlight_rules must be a list")

    rules: list[HighlightRuleConfig] = []
    for index, raw_rule in enumerate(raw_rules, start=1):
        if not isinstance(raw_rule, dict):
            raise ConfigurationError(f"Highlight rule #{index} must be an object")
        rules.append(
            HighlightRuleConfig(
                nick_pattern=raw_rule.get("nick_pattern") or None,
                message_pattern=raw_rule.get("message_pattern") or None,
                should_highlight=bool(raw_rule.get("should_highlight", False)),
            )
        )
    return rules


def _parse_irc(irc: dict) -> IRCConfig:
    ssl = bool(irc.get("ssl", False))
    try:
        port = int(irc.get("port") or (DEFAULT_TLS_PORT if ssl else DEFAULT_PORT))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"irc.port must be a number: {exc}") from exc

    return IRCConfig(
        nickname=_require(irc, "nickname", "irc"),
        name=irc.get("name") or DEFAULT_NAME,
        server=_require(irc, "server", "irc"),
        port=port,
        password=os.getenv("IRC_PASSWORD") or irc.get("password") or None,
        ssl=ssl,
        tls_verify=bool(irc.get("tls_verify", True)),
        channels=_normalize_channel_names(irc.get("channels"), "irc"),
        highlight_rules=_parse_highlight_rules(irc.get("highlight_rules")),
    )


def _parse_slack(slack: dict) -> SlackConfig:
    token = os.getenv("SLACK_BOT_TOKEN") or slack.get("token")
    if not token:
        raise ConfigurationError("SLACK_BOT_TOKEN (or slack.token) must be defined")
    app_token = os.getenv("SLACK_APP_TOKEN") or slack.get("app_token")
    if not app_token:
        raise ConfigurationError("SLACK_APP_TOKEN (or slack.app_token) must be defined")

    return SlackConfig(
        token=token,
        app_token=app_token,
        owner=_require(slack, "owner", "slack"),
        channels=list(_normalize_channel_names(slack.get("channels"), "slack")),
    )


def _parse_relay(relay: dict) -> RelayConfig:
    return RelayConfig(
        expand_emoji=bool(relay.get("expand_emoji", True)),
        system_sender=str(relay.get("system_sender") or "***"),
    )


def load_settings(path: Optional[str] = None) -> BridgeConfig:
    """Load, validate and return the bridge configuration.

    Raises ConfigurationError for anything missing or malformed. Channel
    mapping and highlight pattern checks happen when the mapping table and
    rules are built, still before any connection.
    """

    load_dotenv()
    config = _load_json_config(resolve_config_path(path))

    channel_mapping = config.get("channel_mapping") or {}
    if not isinstance(channel_mapping, dict):
        raise ConfigurationError("channel_mapping must map Slack channels to IRC channels")

    return BridgeConfig(
        irc=_parse_irc(_section(config, "irc")),
        slack=_parse_slack(_section(config, "slack")),
        channel_mapping={str(slack): str(irc) for slack, irc in channel_mapping.items()},
        relay=_parse_relay(_section(config, "relay")),
        logging=_section(config, "logging"),
    )
