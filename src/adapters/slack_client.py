"""Slack adapter: Web API for posting and Socket Mode for events.

The directory (channels and users) is read once at connect time and kept in
memory; the caches are never pruned. The client implements the ``SlackPort``
contract used by the IRC router and the ``DirectoryPort`` used for rendering
Slack markup.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

import aiohttp
from slack_sdk.errors import SlackClientError
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from adapters.slack_mapper import build_slack_event, channel_display_name, user_icon_url
from core.config import SlackConfig
from core.errors import BridgeConnectionError, SendError
from core.models import CONNECTED, DISCONNECTED, SlackEvent

LOGGER = logging.getLogger(__name__)

BOT_USERNAME = "IRC"
PAGE_SIZE = 200

_TRANSPORT_ERRORS = (SlackClientError, aiohttp.ClientError, asyncio.TimeoutError)


class SlackBridgeClient:
    """Slack connection plus the identity caches."""

    def __init__(
        self,
        slack_config: SlackConfig,
        web_client: Optional[AsyncWebClient] = None,
        socket_client: Optional[SocketModeClient] = None,
    ) -> None:
        self._config = slack_config
        self._web = web_client or AsyncWebClient(token=slack_config.token)
        self._socket = socket_client or SocketModeClient(
            app_token=slack_config.app_token,
            web_client=self._web,
            # Dropped sessions are re-established inside slack_sdk, without limit
            auto_reconnect_enabled=True,
        )
        self._inbound: asyncio.Queue[SlackEvent] = asyncio.Queue()
        self._channel_name_to_id: dict[str, str] = {}
        self._channel_id_to_name: dict[str, str] = {}
        self._user_id_to_name: dict[str, str] = {}
        self._owner_id: Optional[str] = None
        self._owner_dm_id: Optional[str] = None

    async def connect(self) -> None:
        """Load the directory, open the owner DM and start receiving events.

        Any failure here leaves the bridge unusable, so it is raised as
        BridgeConnectionError.
        """

        try:
            await self._load_channels()
            await self._load_users()
            self._owner_dm_id = await self._open_owner_dm()
            self._socket.socket_mode_request_listeners.append(self._on_request)
            await self._socket.connect()
        except _TRANSPORT_ERRORS as exc:
            raise BridgeConnectionError(f"Slack connection error: {exc}") from exc

        self._inbound.put_nowait(SlackEvent(kind=CONNECTED))

    async def list_channels(self) -> dict[str, str]:
        """Return the channel name -> id mapping visible to the bot."""

        try:
            await self._load_channels()
        except _TRANSPORT_ERRORS as exc:
            raise BridgeConnectionError(f"Could not get Slack channels: {exc}") from exc
        return dict(self._channel_name_to_id)

    async def iter_events(self) -> AsyncIterator[SlackEvent]:
        while True:
            yield await self._inbound.get()

    async def close(self) -> None:
        await self._socket.close()
        self._inbound.put_nowait(SlackEvent(kind=DISCONNECTED))

    async def _load_channels(self) -> None:
        async for page in await self._web.conversations_list(
            types="public_channel,private_channel",
            exclude_archived=True,
            limit=PAGE_SIZE,
        ):
            for channel in page["channels"]:
                name = channel_display_name(channel)
                self._channel_name_to_id[name] = channel["id"]
                self._channel_id_to_name[channel["id"]] = name
        LOGGER.info("Loaded %s Slack channels", len(self._channel_name_to_id))
        LOGGER.debug("Slack channel name to id mapping: %s", self._channel_name_to_id)

    async def _load_users(self) -> None:
        async for page in await self._web.users_list(limit=PAGE_SIZE):
            for user in page["members"]:
                if user["name"] == self._config.owner:
                    self._owner_id = user["id"]
                self._user_id_to_name[user["id"]] = user["name"]
        LOGGER.info("Loaded %s Slack users", len(self._user_id_to_name))

        if self._owner_id is None:
            raise BridgeConnectionError(
                f"Could not find a Slack user that matched the configured owner: {self._config.owner}"
            )

    async def _open_owner_dm(self) -> str:
        try:
            response = await self._web.conversations_open(users=self._owner_id)
        except SlackClientError as exc:
            raise BridgeConnectionError(
                f"Could not open a Slack DM with the owner: {self._config.owner} ({self._owner_id})"
            ) from exc
        return response["channel"]["id"]

    async def _on_request(self, client: SocketModeClient, request: SocketModeRequest) -> None:
        # Unacknowledged envelopes are redelivered
        await client.send_socket_mode_response(SocketModeResponse(envelope_id=request.envelope_id))
        if request.type != "events_api":
            return
        event = build_slack_event(request.payload.get("event", {}))
        if event is not None:
            self._inbound.put_nowait(event)

    # DirectoryPort

    def channel_name(self, channel_id: str) -> Optional[str]:
        return self._channel_id_to_name.get(channel_id)

    def user_name(self, user_id: str) -> Optional[str]:
        return self._user_id_to_name.get(user_id)

    # SlackPort

    async def send_as(self, name: str, channel: str, text: str) -> None:
        await self._post(self._channel_id(channel), text, username=name, icon_url=user_icon_url(name))

    async def send_as_bot(self, channel: str, text: str) -> None:
        await self._post(self._channel_id(channel), text, username=BOT_USERNAME, link_names=True)

    async def send_to_owner(self, text: str) -> None:
        if self._owner_dm_id is None:
            raise SendError("The owner DM is not open")
        await self._post(self._owner_dm_id, text)

    def _channel_id(self, channel: str) -> str:
        channel_id = self._channel_name_to_id.get(channel)
        if channel_id is None:
            raise SendError(f"Unknown Slack channel {channel}")
        return channel_id

    async def _post(self, channel_id: str, text: str, **params: Any) -> None:
        try:
            await self._web.chat_postMessage(channel=channel_id, text=text, **params)
        except _TRANSPORT_ERRORS as exc:
            raise SendError(f"Slack post to {channel_id} failed: {exc}") from exc
