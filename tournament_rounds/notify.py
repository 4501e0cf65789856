from __future__ import annotations

import logging
from collections.abc import Iterable

from .ports import ChatPlatform

log = logging.getLogger(__name__)


async def message_channels(
    chat: ChatPlatform, channels: Iterable[int], text: str
) -> int:
    """Send ``text`` to every channel, logging failures; returns how many succeeded."""
    sent = 0
    for channel_id in channels:
        try:
            await chat.send_message(channel_id, text)
        except Exception as exc:  # pylint: disable=broad-except
            log.error("Failed to message channel %s: %s", channel_id, exc)
            continue
        sent += 1
    return sent


__all__ = ["message_channels"]
