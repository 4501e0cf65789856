from __future__ import annotations

from collections.abc import Iterable

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from .models import Countdown, Player


class TournamentStorage:
    def __init__(self, table) -> None:
        self._table = table

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Tournament table is not configured")

    # ----- Countdowns -----
    def save_countdown(self, countdown: Countdown) -> None:
        self.ensure_table()
        self._table.put_item(Item=countdown.to_item())

    def get_countdown(self, countdown_id: str) -> Countdown | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Countdown.key(countdown_id))
        item = resp.get("Item")
        if not item:
            return None
        return Countdown.from_item(item)

    def list_countdowns(self) -> list[Countdown]:
        self.ensure_table()
        resp = self._table.query(
            KeyConditionExpression=Key("pk").eq(Countdown.PK_VALUE)
            & Key("sk").begins_with("COUNTDOWN#"),
            Select="ALL_ATTRIBUTES",
        )
        items = resp.get("Items", [])
        countdowns = [Countdown.from_item(item) for item in items]
        countdowns.sort(key=lambda entry: (entry.end, entry.countdown_id))
        return countdowns

    def delete_countdown(self, countdown_id: str) -> None:
        self.ensure_table()
        try:
            self._table.delete_item(
                Key=Countdown.key(countdown_id),
                ConditionExpression="attribute_exists(pk)",
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code != "ConditionalCheckFailedException":
                raise

    # ----- Participants -----
    def save_participant(self, tournament_id: str, player: Player) -> None:
        self.ensure_table()
        self._table.put_item(Item=player.to_item(tournament_id))

    def get_participant(self, tournament_id: str, bracket_id: int) -> Player | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Player.key(tournament_id, bracket_id))
        item = resp.get("Item")
        if not item:
            return None
        return Player.from_item(item)

    def get_active_participant(
        self, tournament_id: str, bracket_id: int
    ) -> Player | None:
        player = self.get_participant(tournament_id, bracket_id)
        if player is None or not player.active:
            return None
        return player

    def list_participants(self, tournament_id: str) -> list[Player]:
        self.ensure_table()
        resp = self._table.query(
            KeyConditionExpression=Key("pk").eq(Player.PK_TEMPLATE % tournament_id)
            & Key("sk").begins_with("PARTICIPANT#"),
            Select="ALL_ATTRIBUTES",
        )
        players = [Player.from_item(item) for item in resp.get("Items", [])]
        players.sort(key=lambda entry: entry.bracket_id)
        return players

    def sync_participants(self, tournament_id: str, players: Iterable[Player]) -> int:
        """Upsert rows for the bracket roster; returns how many rows were written.

        Synthetic players are skipped and a row already marked dropped stays
        dropped.
        """
        stored = {
            player.bracket_id: player for player in self.list_participants(tournament_id)
        }
        written = 0
        for player in players:
            if player.is_synthetic:
                continue
            existing = stored.get(player.bracket_id)
            if existing is not None and not existing.active:
                continue
            if existing == player:
                continue
            self.save_participant(tournament_id, player)
            written += 1
        return written

    def mark_participant_dropped(self, tournament_id: str, bracket_id: int) -> bool:
        """Record the drop; returns False if there was no row to update.

        A missing row is written as an inactive placeholder so later
        opponent checks still see the drop.
        """
        player = self.get_participant(tournament_id, bracket_id)
        if player is None:
            placeholder = Player(discord_id="", bracket_id=bracket_id, active=False)
            self.save_participant(tournament_id, placeholder)
            return False
        player.active = False
        self.save_participant(tournament_id, player)
        return True


__all__ = ["TournamentStorage"]
