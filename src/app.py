"""Application entry point for the crosstalk bridge."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import signal
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings
from client import build_irc_client, build_slack_client
from core.channel_map import ChannelMapping
from core.config import BridgeConfig
from core.errors import BridgeConnectionError, ConfigurationError
from core.highlight import HighlightRule, build_highlight_rules
from core.router import IRCEventRouter, SlackEventRouter

NAME = "CROSSTALK"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: BridgeConfig) -> list[str]:
    redact_cfg = config.logging.get("redact", {})
    if not redact_cfg.get("enabled", True):
        return []
    values = [config.slack.token, config.slack.app_token, config.irc.password or ""]
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted({value for value in values if value}, key=len, reverse=True)


def _configure_logging(config: BridgeConfig) -> None:
    logging_cfg = config.logging
    if not logging_cfg.get("enabled", True):
        return

    level_name = str(logging_cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if logging_cfg.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = logging_cfg.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/crosstalk.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def build_channel_mapping(config: BridgeConfig) -> ChannelMapping:
    """Build the mapping table; dangling references are configuration errors."""

    pairs = [(irc_channel, slack_channel) for slack_channel, irc_channel in config.channel_mapping.items()]
    return ChannelMapping.build(pairs, config.irc.channels, config.slack.channels)


def _prepare(config_path: Optional[str]) -> tuple[BridgeConfig, ChannelMapping, list[HighlightRule]]:
    """Everything that can fail on configuration alone, before connecting."""

    config = settings.load_settings(config_path)
    _configure_logging(config)
    mapping = build_channel_mapping(config)
    rules = build_highlight_rules(config.irc.highlight_rules)
    LOGGER.info("%s channel pairs and %s highlight rules are loaded", len(mapping), len(rules))
    return config, mapping, rules


async def _serve(config: BridgeConfig, mapping: ChannelMapping, rules: list[HighlightRule]) -> None:
    slack = build_slack_client(config.slack)
    irc = build_irc_client(config.irc)

    # Slack first: the IRC loop reports to the owner as soon as IRC connects.
    await slack.connect()
    try:
        await irc.connect_to_server()
    except BridgeConnectionError:
        await slack.close()
        raise

    irc_router = IRCEventRouter(
        mapping=mapping,
        irc=irc,
        slack=slack,
        highlight_rules=rules,
        owner=config.slack.owner,
        server=config.irc.server,
        join_keys=config.irc.channels,
        system_sender=config.relay.system_sender,
    )
    slack_router = SlackEventRouter(
        mapping=mapping,
        irc=irc,
        directory=slack,
        expand_emoji=config.relay.expand_emoji,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    tasks = {
        asyncio.create_task(irc_router.run(irc.iter_events()), name="irc-loop"),
        asyncio.create_task(slack_router.run(slack.iter_events()), name="slack-loop"),
        asyncio.create_task(stop.wait(), name="stop-signal"),
    }
    LOGGER.info("Bridge is running. Relaying between IRC and Slack...")

    # Whichever finishes first (a disconnect or a signal) ends the whole bridge.
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        LOGGER.info("Shutting down after %s finished", ", ".join(task.get_name() for task in done))
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await irc.close()
        await slack.close()


def _run(config_path: Optional[str]) -> None:
    _print_banner()
    try:
        config, mapping, rules = _prepare(config_path)
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        raise SystemExit(1) from exc

    LOGGER.info("Starting crosstalk")
    try:
        asyncio.run(_serve(config, mapping, rules))
    except BridgeConnectionError as exc:
        LOGGER.error("%s", exc)
        raise SystemExit(1) from exc


def _check(config_path: Optional[str]) -> None:
    try:
        config, mapping, rules = _prepare(config_path)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}")
        raise SystemExit(1) from exc

    print(f"Configuration OK: {settings.resolve_config_path(config_path)}")
    print(f"IRC: {config.irc.nickname} on {config.irc.server}:{config.irc.port}")
    print(f"Slack owner: {config.slack.owner}")
    for index, (irc_channel, slack_channel) in enumerate(mapping.pairs(), start=1):
        print(f"{index}. {irc_channel} <-> {slack_channel}")
    print(f"{len(rules)} highlight rules")


async def _list_slack_channels(config: BridgeConfig) -> None:
    slack = build_slack_client(config.slack)
    try:
        channels = await slack.list_channels()
    finally:
        await slack.close()

    if not channels:
        print("The bot cannot see any Slack channels.")
        return

    for index, (name, channel_id) in enumerate(sorted(channels.items()), start=1):
        print(f"{index}. {name} | {channel_id}")


def _discover(config_path: Optional[str]) -> None:
    _print_banner()
    try:
        config = settings.load_settings(config_path)
        asyncio.run(_list_slack_channels(config))
    except (ConfigurationError, BridgeConnectionError) as exc:
        print(f"Error: {exc}")
        raise SystemExit(1) from exc


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="crosstalk")
    parser.add_argument("--config", help="Path to the JSON config file (default: config.json)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bridge")
    subparsers.add_parser("check", help="Validate the config and print the channel mapping")
    subparsers.add_parser(
        "discover",
        help="Lists the Slack channels the bot can see, to fill in the config.",
    )

    args = parser.parse_args(argv)
    if args.command == "check":
        _check(args.config)
        return
    if args.command == "discover":
        _discover(args.config)
        return
    _run(args.config)


if __name__ == "__main__":
    main()
