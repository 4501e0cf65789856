from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from discord.utils import escape_markdown

from .errors import UserFacingError
from .models import (
    Tournament,
    TournamentFormat,
    current_round,
    is_synthetic_id,
    utc_now,
)
from .notify import message_channels
from .ports import BracketProvider, ChatPlatform, ParticipantSync
from .registry import TimerRegistry

log = logging.getLogger(__name__)

DEFAULT_PAIRINGS_URL = "https://challonge.com/{tournament_id}"
_TIME_FORMAT_HELP = "Round timer must be given in the form `mm` or `hh:mm`."


def parse_round_minutes(value: str) -> int:
    """Parse a round duration in the form ``mm`` or ``hh:mm`` into minutes."""
    parts = value.strip().split(":")
    if len(parts) > 2:
        raise UserFacingError(_TIME_FORMAT_HELP)
    try:
        numbers = [int(part) for part in parts]
    except ValueError as exc:
        raise UserFacingError(_TIME_FORMAT_HELP) from exc
    if any(number < 0 for number in numbers):
        raise UserFacingError(_TIME_FORMAT_HELP)
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    return numbers[0]


class RoundAnnouncer:
    def __init__(
        self,
        bracket: BracketProvider,
        chat: ChatPlatform,
        timers: TimerRegistry,
        *,
        participants: ParticipantSync | None = None,
        pairings_url_template: str = DEFAULT_PAIRINGS_URL,
        tick_interval_seconds: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._bracket = bracket
        self._chat = chat
        self._timers = timers
        self._participants = participants
        self._pairings_url_template = pairings_url_template
        self._tick_interval_seconds = tick_interval_seconds
        self._clock = clock

    def pairings_url(self, tournament_id: str) -> str:
        return self._pairings_url_template.format(tournament_id=tournament_id)

    async def advance_round(
        self, tournament: Tournament, minutes: int, skip: bool = False
    ) -> None:
        """Announce the round that just started. Never raises.

        ``skip`` only posts the public summary; used when retrying after the
        pairing DMs already went out.
        """
        try:
            await self._advance_round(tournament, minutes, skip)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception(
                "Failed to advance round for %s: %s", tournament.tournament_id, exc
            )
            await message_channels(
                self._chat,
                tournament.private_channels,
                f"Something went wrong starting the next round of **{tournament.name}**. "
                "Please check the pairings and retry.",
            )

    async def _advance_round(
        self, tournament: Tournament, minutes: int, skip: bool
    ) -> None:
        tournament_id = tournament.tournament_id
        await self._timers.cancel(tournament_id)
        log.info(
            "Advancing round for %s (minutes=%s, skip=%s)", tournament_id, minutes, skip
        )
        matches = await self._bracket.list_matches(tournament_id, open_only=True)
        round_number = current_round(matches)
        if round_number is None:
            log.warning("No open matches found for %s", tournament_id)
            await message_channels(
                self._chat,
                tournament.private_channels,
                f"I couldn't find any open matches for **{tournament.name}**, "
                "so no round was announced.",
            )
            return
        intro = f"Round {round_number} of {tournament.name} has begun!"
        log.info("Round %s of %s has %s matches", round_number, tournament_id, len(matches))

        role = tournament.role_mention()
        heading = f"{intro} {role}" if role else intro
        url = self.pairings_url(tournament_id)
        if skip:
            announcement = f"{heading}\nPairings can be found here: {url}"
        else:
            announcement = (
                f"{heading}\nPairings will be sent out by Direct Message shortly, "
                f"or can be found here: {url}"
            )
        await message_channels(self._chat, tournament.public_channels, announcement)

        if not skip:
            await self._send_pairings(tournament, intro, matches)

        if minutes > 0:
            final_message = (
                f"That's time in the round, {role}! " if role else "That's time in the round! "
            ) + "Please follow appropriate time procedures as determined by your tournament hosts."
            await self._timers.start(
                tournament_id,
                tournament.public_channels,
                self._clock() + timedelta(minutes=minutes),
                final_message,
                self._tick_interval_seconds,
            )

    async def _send_pairings(self, tournament: Tournament, intro: str, matches) -> None:
        tournament_id = tournament.tournament_id
        players = await self._bracket.list_players(tournament_id)
        self._record_roster(tournament_id, players)
        roster = {
            player.bracket_id: player.discord_id for player in players if player.active
        }
        log.info(
            "Sending pairings for %s: %s players, %s matches",
            tournament_id,
            len(roster),
            len(matches),
        )
        for match in matches:
            first = roster.pop(match.player_one, None)
            second = roster.pop(match.player_two, None)
            if first is None or second is None:
                log.warning(
                    "Bracket ids %s and/or %s in match %s are not on the roster of %s",
                    match.player_one,
                    match.player_two,
                    match.match_id,
                    tournament_id,
                )
                continue
            first_name = await self._resolve(first)
            second_name = await self._resolve(second)
            await self._send_pairing(tournament, intro, first, second, second_name)
            await self._send_pairing(tournament, intro, second, first, first_name)

        if tournament.format != TournamentFormat.SWISS or not roster:
            return
        for discord_id in roster.values():
            if is_synthetic_id(discord_id):
                continue
            try:
                await self._chat.send_direct_message(
                    discord_id, f"{intro} You have a bye for this round."
                )
                log.info("Natural bye in %s for %s", tournament_id, discord_id)
            except Exception as exc:  # pylint: disable=broad-except
                log.warning("Bye DM to %s failed: %s", discord_id, exc)
                await self._report_failure(tournament, discord_id, "nobody (natural bye)")
        if len(roster) > 1:
            log.warning("%s natural byes identified in %s", len(roster), tournament_id)

    def _record_roster(self, tournament_id: str, players) -> None:
        if self._participants is None:
            return
        try:
            written = self._participants.sync_participants(tournament_id, players)
        except Exception as exc:  # pylint: disable=broad-except
            log.warning("Could not record the roster of %s: %s", tournament_id, exc)
            return
        log.debug("Recorded %s participant rows for %s", written, tournament_id)

    async def _resolve(self, discord_id: str) -> str | None:
        if is_synthetic_id(discord_id):
            return None
        try:
            return await self._chat.resolve_display_name(discord_id)
        except Exception as exc:  # pylint: disable=broad-except
            log.warning("Could not resolve display name of %s: %s", discord_id, exc)
            return None

    async def _send_pairing(
        self,
        tournament: Tournament,
        intro: str,
        receiver: str,
        opponent: str,
        opponent_name: str | None,
    ) -> None:
        if is_synthetic_id(receiver):
            return
        if is_synthetic_id(opponent):
            text = (
                f"{intro} I couldn't find your opponent. If you don't think you should "
                "have a bye for this round, please check the pairings."
            )
        else:
            described = f"<@{opponent}>"
            if opponent_name:
                described += f" ({escape_markdown(opponent_name)})"
            text = (
                f"{intro} Your opponent is {described}. "
                "Make sure to report your score after the match is over!"
            )
        try:
            await self._chat.send_direct_message(receiver, text)
        except Exception as exc:  # pylint: disable=broad-except
            log.warning("Pairing DM to %s failed: %s", receiver, exc)
            await self._report_failure(tournament, receiver, f"<@{opponent}>")

    async def _report_failure(
        self, tournament: Tournament, user_id: str, opponent: str
    ) -> None:
        log.info(
            "Direct message to %s failed in %s (opponent %s)",
            user_id,
            tournament.tournament_id,
            opponent,
        )
        await message_channels(
            self._chat,
            tournament.private_channels,
            f"I couldn't send a DM to <@{user_id}> about their pairing for "
            f"**{tournament.name}**. If they're not a human player, this is normal, "
            f"but otherwise please tell them their opponent is {opponent}.",
        )


__all__ = ["DEFAULT_PAIRINGS_URL", "parse_round_minutes", "RoundAnnouncer"]
