"""Withdrawing a player from a running tournament.

The bracket provider is the source of truth for pairings, so the
player's current match is settled before they are removed: an open
match is conceded 2-0 to the opponent, and a closed match against an
opponent who has also left is amended to a 0-0 tie. Removing a player
whose match is still open would leave the bracket inconsistent, so a
failed concession stops the drop before removal.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .errors import BlockedRecipientError, FatalInconsistency
from .models import Match, TournamentStatus, current_round, is_synthetic_id
from .notify import message_channels
from .ports import BracketProvider, ChatPlatform, ParticipantLookup

log = logging.getLogger(__name__)


class DropCoordinator:
    def __init__(
        self,
        bracket: BracketProvider,
        chat: ChatPlatform,
        participants: ParticipantLookup,
    ) -> None:
        self._bracket = bracket
        self._chat = chat
        self._participants = participants

    async def drop_player(
        self,
        tournament_id: str,
        private_channels: Sequence[int],
        status: TournamentStatus,
        bracket_player_id: int,
        display_name: str,
    ) -> bool:
        """Drop a player from the bracket. Never raises.

        Returns True only if every step succeeded; problems are reported to
        ``private_channels``.
        """
        try:
            clean = True
            in_progress = status == TournamentStatus.IN_PROGRESS
            if in_progress:
                settled = await self._settle_current_match(
                    tournament_id, private_channels, bracket_player_id, display_name
                )
                if settled is None:
                    return False
                clean = settled
            await self._remove(
                tournament_id, bracket_player_id, display_name, in_progress
            )
        except FatalInconsistency as exc:
            log.critical(
                "Drop of %s (%s) from %s left inconsistent state: %s",
                display_name,
                bracket_player_id,
                tournament_id,
                exc,
            )
            await message_channels(self._chat, private_channels, str(exc))
            return False
        except Exception as exc:  # pylint: disable=broad-except
            log.exception(
                "Unexpected failure dropping %s from %s: %s",
                bracket_player_id,
                tournament_id,
                exc,
            )
            await message_channels(
                self._chat,
                private_channels,
                f"Unexpected error while dropping {display_name} from **{tournament_id}**. "
                "Please check the bracket manually.",
            )
            return False
        return clean

    async def _find_current_match(
        self, tournament_id: str, player_id: int
    ) -> Match | None:
        matches = await self._bracket.list_matches(tournament_id, player_id=player_id)
        if not matches:
            return None
        for match in matches:
            if match.open:
                return match
        latest = max(matches, key=lambda match: match.round)
        # a closed match from an earlier round means a natural bye this round
        round_now = current_round(await self._bracket.list_matches(tournament_id))
        if round_now is not None and latest.round < round_now:
            return None
        return latest

    async def _settle_current_match(
        self,
        tournament_id: str,
        private_channels: Sequence[int],
        player_id: int,
        who: str,
    ) -> bool | None:
        """Returns None to stop before removal, otherwise whether it went cleanly."""
        try:
            match = await self._find_current_match(tournament_id, player_id)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception(
                "Failed to find current match of %s in %s: %s",
                player_id,
                tournament_id,
                exc,
            )
            await message_channels(
                self._chat,
                private_channels,
                f"Could not look up the current match of {who} in **{tournament_id}**, "
                "so they were not dropped. Please retry later.",
            )
            return None
        log.info(
            "Dropping %s from %s with current match %s",
            player_id,
            tournament_id,
            match.match_id if match else None,
        )
        if match is None:
            return True
        opponent_id = match.opponent_of(player_id)
        if opponent_id is None:
            return True
        if match.open:
            return await self._concede(
                tournament_id, private_channels, match, opponent_id, who
            )
        return await self._amend_to_tie(
            tournament_id, private_channels, match, opponent_id, who
        )

    async def _concede(
        self,
        tournament_id: str,
        private_channels: Sequence[int],
        match: Match,
        opponent_id: int,
        who: str,
    ) -> bool | None:
        try:
            await self._bracket.submit_score(tournament_id, match, opponent_id, 2, 0)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception(
                "Failed to concede match %s in %s: %s",
                match.match_id,
                tournament_id,
                exc,
            )
            await message_channels(
                self._chat,
                private_channels,
                f"Error automatically submitting score for {who} in **{tournament_id}**. "
                "They have not been dropped; please manually override later.",
            )
            return None
        log.info(
            "Conceded match %s in %s to %s", match.match_id, tournament_id, opponent_id
        )
        return await self._tell_opponent(tournament_id, private_channels, opponent_id, who)

    async def _tell_opponent(
        self,
        tournament_id: str,
        private_channels: Sequence[int],
        opponent_id: int,
        who: str,
    ) -> bool:
        try:
            roster = await self._bracket.list_players(tournament_id)
            opponent = next(
                (player for player in roster if player.bracket_id == opponent_id), None
            )
            if opponent is None:
                raise LookupError(f"{opponent_id} missing from {tournament_id} roster")
            if is_synthetic_id(opponent.discord_id):
                return True
            await self._chat.send_direct_message(
                opponent.discord_id,
                f"Your opponent {who} has dropped from the tournament, conceding this "
                "round to you. You don't need to submit a score for this round.",
            )
        except BlockedRecipientError as exc:
            await message_channels(self._chat, private_channels, str(exc))
            return False
        except Exception as exc:  # pylint: disable=broad-except
            log.error(
                "Failed to notify opponent %s in %s: %s", opponent_id, tournament_id, exc
            )
            await message_channels(
                self._chat,
                private_channels,
                f"Failed to get the opponent of {who} in **{tournament_id}**. "
                "Please tell them that their opponent dropped.",
            )
            return False
        return True

    async def _amend_to_tie(
        self,
        tournament_id: str,
        private_channels: Sequence[int],
        match: Match,
        opponent_id: int,
        who: str,
    ) -> bool:
        try:
            opponent = self._participants.get_participant(tournament_id, opponent_id)
        except Exception as exc:  # pylint: disable=broad-except
            log.error(
                "Could not check whether %s is still playing in %s: %s",
                opponent_id,
                tournament_id,
                exc,
            )
            await message_channels(
                self._chat,
                private_channels,
                f"Could not check whether the last opponent of {who} in **{tournament_id}** "
                "is still playing. If they have also dropped, please record a 0-0 tie manually.",
            )
            return False
        if opponent is None:
            # no record means unknown, not dropped
            log.warning(
                "No participant record for %s in %s, leaving match %s as reported",
                opponent_id,
                tournament_id,
                match.match_id,
            )
            await message_channels(
                self._chat,
                private_channels,
                f"I have no record of whether the last opponent of {who} in "
                f"**{tournament_id}** is still playing, so their match result was left "
                "as is. If they have also dropped, please record a 0-0 tie manually.",
            )
            return False
        if opponent.active:
            return True
        try:
            await self._bracket.submit_score(tournament_id, match, opponent_id, 0, 0)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception(
                "Failed to amend match %s in %s to a tie: %s",
                match.match_id,
                tournament_id,
                exc,
            )
            await message_channels(
                self._chat,
                private_channels,
                f"Error automatically resetting score for {who} in **{tournament_id}**. "
                "Please manually override later.",
            )
            return False
        log.info("Amended match %s in %s to a tie", match.match_id, tournament_id)
        return True

    async def _remove(
        self, tournament_id: str, player_id: int, who: str, in_progress: bool
    ) -> None:
        try:
            await self._bracket.remove_player(tournament_id, player_id)
        except Exception as exc:
            log.error(
                "Failed to remove %s from %s: %s", player_id, tournament_id, exc
            )
            if in_progress:
                raise FatalInconsistency(
                    f"Could not remove {who} from **{tournament_id}** after settling "
                    "their match. Manual intervention needed: remove them on the "
                    "bracket site before the next round is paired."
                ) from exc
            raise FatalInconsistency(
                f"Could not remove {who} from **{tournament_id}**. They will still be "
                "paired once the tournament starts; please remove them manually."
            ) from exc
        log.info("Removed %s from %s", player_id, tournament_id)
        try:
            self._participants.mark_participant_dropped(tournament_id, player_id)
        except Exception as exc:  # pylint: disable=broad-except
            log.warning(
                "Removed %s from %s but could not record the drop: %s",
                player_id,
                tournament_id,
                exc,
            )


__all__ = ["DropCoordinator"]
