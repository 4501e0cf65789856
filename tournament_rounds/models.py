from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import ClassVar

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    return datetime.now(UTC)


def isoformat_utc(value: datetime) -> str:
    """Return ``value`` as a UTC ISO-8601 string (ms precision)."""
    return value.astimezone(UTC).strftime(ISO_FORMAT)[:-4] + "Z"


def parse_iso_utc(value: str) -> datetime:
    return datetime.strptime(value, ISO_FORMAT).replace(tzinfo=UTC)


class TournamentStatus(StrEnum):
    PREPARING = "preparing"
    IN_PROGRESS = "in progress"
    COMPLETE = "complete"


class TournamentFormat(StrEnum):
    SWISS = "swiss"
    SINGLE_ELIMINATION = "single elimination"
    DOUBLE_ELIMINATION = "double elimination"
    ROUND_ROBIN = "round robin"


def is_synthetic_id(discord_id: str) -> bool:
    # Chat user ids are numeric snowflakes; sentinels such as BYE#1 are not.
    return not discord_id[:1].isdigit()


@dataclass(slots=True)
class Tournament:
    tournament_id: str
    name: str
    status: TournamentStatus
    format: TournamentFormat
    public_channels: list[int] = field(default_factory=list)
    private_channels: list[int] = field(default_factory=list)
    participant_role_id: int | None = None
    players: list[str] = field(default_factory=list)
    byes: list[str] = field(default_factory=list)

    def role_mention(self) -> str:
        if self.participant_role_id is None:
            return ""
        return f"<@&{self.participant_role_id}>"


@dataclass(slots=True)
class Player:
    discord_id: str
    bracket_id: int
    deck: str | None = None
    has_bye: bool = False
    active: bool = True
    seed: int | None = None

    @property
    def is_synthetic(self) -> bool:
        return is_synthetic_id(self.discord_id)

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_TEMPLATE: ClassVar[str] = "PARTICIPANT#%s"

    @classmethod
    def key(cls, tournament_id: str, bracket_id: int) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % tournament_id,
            "sk": cls.SK_TEMPLATE % bracket_id,
        }

    def to_item(self, tournament_id: str) -> dict[str, object]:
        item = self.key(tournament_id, self.bracket_id)
        item.update(
            {
                "discord_id": self.discord_id,
                "bracket_id": self.bracket_id,
                "has_bye": self.has_bye,
                "active": self.active,
            }
        )
        if self.deck is not None:
            item["deck"] = self.deck
        if self.seed is not None:
            item["seed"] = self.seed
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Player:
        seed_value = item.get("seed")
        deck_value = item.get("deck")
        return cls(
            discord_id=str(item.get("discord_id", "")),
            bracket_id=int(item["bracket_id"]),
            deck=str(deck_value) if deck_value is not None else None,
            has_bye=bool(item.get("has_bye", False)),
            active=bool(item.get("active", True)),
            seed=int(seed_value) if seed_value is not None else None,
        )


@dataclass(slots=True)
class Match:
    match_id: int
    round: int
    player_one: int | None
    player_two: int | None
    open: bool
    winner_id: int | None = None
    score: str | None = None

    def opponent_of(self, bracket_id: int) -> int | None:
        if self.player_one == bracket_id:
            return self.player_two
        if self.player_two == bracket_id:
            return self.player_one
        return None


def current_round(matches: Iterable[Match]) -> int | None:
    rounds = [match.round for match in matches]
    return max(rounds) if rounds else None


@dataclass(slots=True)
class Countdown:
    """Persisted state of a round timer.

    ``end`` never changes once the row is written; a timer is only ever
    created or deleted.
    """

    countdown_id: str
    end: str
    channel_id: int
    message_id: int
    final_message: str
    tick_interval_seconds: int
    tournament_id: str | None = None

    PK_VALUE: ClassVar[str] = "COUNTDOWNS"
    SK_TEMPLATE: ClassVar[str] = "COUNTDOWN#%s"

    @classmethod
    def key(cls, countdown_id: str) -> dict[str, str]:
        return {"pk": cls.PK_VALUE, "sk": cls.SK_TEMPLATE % countdown_id}

    @property
    def end_at(self) -> datetime:
        return parse_iso_utc(self.end)

    def to_item(self) -> dict[str, object]:
        item = self.key(self.countdown_id)
        item.update(
            {
                "countdown_id": self.countdown_id,
                "end": self.end,
                "channel_id": str(self.channel_id),
                "message_id": str(self.message_id),
                "final_message": self.final_message,
                "tick_interval_seconds": self.tick_interval_seconds,
            }
        )
        if self.tournament_id is not None:
            item["tournament_id"] = self.tournament_id
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Countdown:
        raw_id = item.get("countdown_id")
        if raw_id is None:
            raw_id = str(item["sk"]).split("#", 1)[1]
        tournament_value = item.get("tournament_id")
        return cls(
            countdown_id=str(raw_id),
            end=str(item["end"]),
            channel_id=int(item["channel_id"]),
            message_id=int(item["message_id"]),
            final_message=str(item.get("final_message", "")),
            tick_interval_seconds=int(item.get("tick_interval_seconds", 5)),
            tournament_id=(
                str(tournament_value)
                if tournament_value not in (None, "", "None")
                else None
            ),
        )


@dataclass(frozen=True, slots=True)
class SyntheticBye:
    """Placeholder participant that absorbs a round-1 bye pairing."""

    number: int

    @property
    def name(self) -> str:
        return f"Round 1 Bye #{self.number}"

    @property
    def external_id(self) -> str:
        return f"BYE#{self.number}"


@dataclass(frozen=True, slots=True)
class SeedMove:
    player: object
    seed: int


__all__ = [
    "ISO_FORMAT",
    "utc_now",
    "isoformat_utc",
    "parse_iso_utc",
    "TournamentStatus",
    "TournamentFormat",
    "is_synthetic_id",
    "Tournament",
    "Player",
    "Match",
    "current_round",
    "Countdown",
    "SyntheticBye",
    "SeedMove",
]
