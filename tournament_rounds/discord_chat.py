from __future__ import annotations

import logging

import discord

from .errors import BlockedRecipientError, MessageNotFoundError
from .models import is_synthetic_id

log = logging.getLogger(__name__)


class DiscordChatPlatform:
    """Chat platform port backed by a ``discord.Client``."""

    def __init__(self, client: discord.Client) -> None:
        self._client = client

    async def _channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = self._client.get_channel(channel_id)
        if channel is None:
            channel = await self._client.fetch_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise TypeError(f"Channel {channel_id} is not a text channel")
        return channel

    async def send_message(self, channel_id: int, text: str) -> int:
        channel = await self._channel(channel_id)
        message = await channel.send(text)
        return message.id

    async def edit_message(self, channel_id: int, message_id: int, text: str) -> None:
        try:
            channel = await self._channel(channel_id)
            await channel.get_partial_message(message_id).edit(content=text)
        except discord.NotFound as exc:
            raise MessageNotFoundError(
                f"Message {message_id} in channel {channel_id} no longer exists"
            ) from exc

    async def _user(self, user_id: str) -> discord.User:
        user = self._client.get_user(int(user_id))
        if user is None:
            user = await self._client.fetch_user(int(user_id))
        return user

    async def send_direct_message(self, user_id: str, text: str) -> None:
        user = await self._user(user_id)
        try:
            await user.send(text)
        except discord.Forbidden as exc:
            raise BlockedRecipientError(user_id) from exc

    async def resolve_display_name(self, user_id: str) -> str | None:
        if is_synthetic_id(user_id):
            return None
        try:
            user = await self._user(user_id)
        except discord.NotFound:
            log.warning("User %s not found", user_id)
            return None
        except discord.HTTPException as exc:
            log.warning("Cannot fetch user %s, HTTP error: %s", user_id, exc)
            return None
        return user.name


__all__ = ["DiscordChatPlatform"]
