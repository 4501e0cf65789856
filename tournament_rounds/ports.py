"""Boundaries the engine talks through.

Concrete implementations live elsewhere: ``discord_chat`` adapts a
``discord.Client``, ``storage`` wraps a DynamoDB table, and the bracket
provider client is supplied by the caller.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Protocol

from .models import Countdown, Match, Player


class ChatPlatform(Protocol):
    async def send_message(self, channel_id: int, text: str) -> int: ...

    async def edit_message(self, channel_id: int, message_id: int, text: str) -> None:
        """Raises ``MessageNotFoundError`` if the message was deleted."""

    async def send_direct_message(self, user_id: str, text: str) -> None:
        """Raises ``BlockedRecipientError`` if the user refuses DMs."""

    async def resolve_display_name(self, user_id: str) -> str | None: ...


class BracketProvider(Protocol):
    async def list_matches(
        self,
        tournament_id: str,
        open_only: bool = False,
        player_id: int | None = None,
    ) -> list[Match]: ...

    async def submit_score(
        self,
        tournament_id: str,
        match: Match,
        winner_id: int,
        winner_score: int,
        loser_score: int,
    ) -> None: ...

    async def remove_player(self, tournament_id: str, player_id: int) -> None: ...

    async def set_seed(self, tournament_id: str, player_id: int, seed: int) -> None: ...

    async def register_player(
        self, tournament_id: str, name: str, external_id: str
    ) -> int: ...

    async def list_players(self, tournament_id: str) -> list[Player]: ...


class CountdownStore(Protocol):
    def save_countdown(self, countdown: Countdown) -> None: ...

    def list_countdowns(self) -> list[Countdown]: ...

    def delete_countdown(self, countdown_id: str) -> None: ...


class ParticipantLookup(Protocol):
    def get_participant(self, tournament_id: str, bracket_id: int) -> Player | None:
        """Returns the stored row, dropped or not, or None if there is no record."""

    def mark_participant_dropped(self, tournament_id: str, bracket_id: int) -> bool: ...


class ParticipantSync(Protocol):
    def sync_participants(self, tournament_id: str, players: Iterable[Player]) -> int: ...


class CancellationHandle(Protocol):
    def cancel(self) -> None: ...


class PeriodicScheduler(Protocol):
    def every(
        self, seconds: float, callback: Callable[[], Awaitable[None]]
    ) -> CancellationHandle: ...


__all__ = [
    "ChatPlatform",
    "BracketProvider",
    "CountdownStore",
    "ParticipantLookup",
    "ParticipantSync",
    "CancellationHandle",
    "PeriodicScheduler",
]
