from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from botocore.exceptions import ClientError

from tournament_rounds.errors import BlockedRecipientError, MessageNotFoundError
from tournament_rounds.models import Player
from tournament_rounds.storage import TournamentStorage

START = datetime(2024, 5, 1, 18, 0, tzinfo=UTC)


class FakeTable:
    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}

    def get_item(self, *, Key):
        return {"Item": self.items.get((Key["pk"], Key["sk"]))}

    def put_item(self, *, Item):
        self.items[(Item["pk"], Item["sk"])] = Item

    def query(self, *, KeyConditionExpression, Select="COUNT", **_kwargs):
        pk_value = None
        sk_prefix = ""
        for condition in KeyConditionExpression._values:  # type: ignore[attr-defined]
            key, value = condition._values  # type: ignore[attr-defined]
            if key.name == "pk":  # pragma: no branch - helper
                pk_value = value
            elif key.name == "sk":
                sk_prefix = value
        matching_keys = [
            key
            for key in sorted(self.items)
            if key[0] == pk_value and key[1].startswith(sk_prefix)
        ]
        items = [self.items[key] for key in matching_keys]
        if Select == "COUNT":
            return {"Count": len(items)}
        return {"Items": [item.copy() for item in items], "Count": len(items)}

    def delete_item(self, *, Key, ConditionExpression):
        del ConditionExpression  # pragma: no cover - unused in fake implementation
        item_key = (Key["pk"], Key["sk"])
        if item_key not in self.items:
            raise ClientError(
                {
                    "Error": {
                        "Code": "ConditionalCheckFailedException",
                        "Message": "Item not found",
                    }
                },
                "DeleteItem",
            )
        self.items.pop(item_key)


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records periodic callbacks; tests drive them by calling ``tick``."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[float, object, FakeHandle]] = []

    def every(self, seconds, callback):
        handle = FakeHandle()
        self.scheduled.append((seconds, callback, handle))
        return handle


class FakeChat:
    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []
        self.edits: list[tuple[int, int, str]] = []
        self.dms: list[tuple[str, str]] = []
        self.names: dict[str, str] = {}
        self.blocked: set[str] = set()
        self.failing_dms: set[str] = set()
        self.failing_names: set[str] = set()
        self.failing_channels: set[int] = set()
        self.missing_messages: set[int] = set()
        self.edit_error: Exception | None = None
        self.edit_attempts = 0
        self._next_message_id = 5000

    def messages_to(self, channel_id: int) -> list[str]:
        return [text for channel, text in self.sent if channel == channel_id]

    async def send_message(self, channel_id: int, text: str) -> int:
        if channel_id in self.failing_channels:
            raise RuntimeError(f"cannot send to {channel_id}")
        self.sent.append((channel_id, text))
        self._next_message_id += 1
        return self._next_message_id

    async def edit_message(self, channel_id: int, message_id: int, text: str) -> None:
        self.edit_attempts += 1
        if message_id in self.missing_messages:
            raise MessageNotFoundError(f"{message_id} is gone")
        if self.edit_error is not None:
            raise self.edit_error
        self.edits.append((channel_id, message_id, text))

    async def send_direct_message(self, user_id: str, text: str) -> None:
        if user_id in self.blocked:
            raise BlockedRecipientError(user_id)
        if user_id in self.failing_dms:
            raise RuntimeError(f"cannot DM {user_id}")
        self.dms.append((user_id, text))

    async def resolve_display_name(self, user_id: str) -> str | None:
        if user_id in self.failing_names:
            raise RuntimeError(f"cannot resolve {user_id}")
        return self.names.get(user_id)


class FakeBracket:
    """Bracket provider double that records every call in order."""

    def __init__(self, matches=None, players=None) -> None:
        self.matches = list(matches or [])
        self.players = list(players or [])
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}
        self._next_player_id = 900

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def calls_named(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    async def list_matches(self, tournament_id, open_only=False, player_id=None):
        self._record("list_matches", tournament_id, open_only, player_id)
        return [
            match
            for match in self.matches
            if (not open_only or match.open)
            and (player_id is None or player_id in (match.player_one, match.player_two))
        ]

    async def submit_score(
        self, tournament_id, match, winner_id, winner_score, loser_score
    ):
        self._record(
            "submit_score",
            tournament_id,
            match.match_id,
            winner_id,
            winner_score,
            loser_score,
        )

    async def remove_player(self, tournament_id, player_id):
        self._record("remove_player", tournament_id, player_id)

    async def set_seed(self, tournament_id, player_id, seed):
        self._record("set_seed", tournament_id, player_id, seed)

    async def register_player(self, tournament_id, name, external_id):
        self._record("register_player", tournament_id, name, external_id)
        self._next_player_id += 1
        self.players.append(
            Player(discord_id=external_id, bracket_id=self._next_player_id)
        )
        return self._next_player_id

    async def list_players(self, tournament_id):
        self._record("list_players", tournament_id)
        return list(self.players)


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def storage(table: FakeTable) -> TournamentStorage:
    return TournamentStorage(table)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def bracket() -> FakeBracket:
    return FakeBracket()
