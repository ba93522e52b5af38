"""Client factories for crosstalk.

We explicitly manage both clients' lifecycles (connect/close) from the app
so it is obvious when connections are opened and when they end. Both
factories must be called from inside the running event loop.
"""

from __future__ import annotations

import logging

from adapters.irc_client import IRCBridgeClient
from adapters.slack_client import SlackBridgeClient
from core.config import IRCConfig, SlackConfig


def build_irc_client(irc_config: IRCConfig) -> IRCBridgeClient:
    """Create the pydle client for the configured server."""

    logging.getLogger(__name__).info("Initializing IRC client as %s", irc_config.nickname)
    return IRCBridgeClient(irc_config)


def build_slack_client(slack_config: SlackConfig) -> SlackBridgeClient:
    """Create the Slack Web API + Socket Mode client.

    Tokens come from settings, which reads SLACK_BOT_TOKEN/SLACK_APP_TOKEN
    via python-dotenv to keep secrets out of the repo.
    """

    logging.getLogger(__name__).info("Initializing Slack client")
    return SlackBridgeClient(slack_config)
