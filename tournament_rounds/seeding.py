"""Round-1 bye placement.

Pairings are generated by splitting the seeded pool in half: seed ``i``
faces seed ``i + maxSeed // 2`` and an odd pool leaves the last seed with
a natural bye. A player holding a bye is either moved onto that natural
bye slot or packed into the low end of the top half with a synthetic
player as their partner, so two bye holders never meet each other.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable, Sequence

from .errors import UserFacingError
from .models import SeedMove, SyntheticBye
from .ports import BracketProvider, ParticipantSync

log = logging.getLogger(__name__)


def _move(order: list, player: object, seed: int) -> None:
    order.remove(player)
    order.insert(seed - 1, player)


def reseed(order: Sequence, moves: Iterable[SeedMove]) -> list:
    """Apply ``moves`` in sequence with move-and-shift semantics.

    Synthetic players named by the moves but absent from ``order`` are
    appended first, the same way registering them does.
    """
    result = list(order)
    moves = list(moves)
    for move in moves:
        if isinstance(move.player, SyntheticBye) and move.player not in result:
            result.append(move.player)
    for move in moves:
        _move(result, move.player, move.seed)
    return result


def compute_bye_seeds(
    players: Sequence[Hashable],
    bye_players: Iterable[Hashable],
    current_seed_of: Callable[[Hashable], int],
) -> list[SeedMove]:
    """Return the ordered seed moves placing every bye holder.

    ``players`` is the seed-ordered roster. The moves must be applied in
    the returned order, after the synthetic players have been registered
    at the bottom of the pool.
    """
    byes = list(dict.fromkeys(bye_players))
    if not byes:
        return []
    missing = [player for player in byes if player not in players]
    if missing:
        raise UserFacingError(
            f"Cannot assign byes to players outside the roster: {missing}"
        )
    byes.sort(key=current_seed_of)

    is_sum_even = (len(players) + len(byes)) % 2 == 0
    synthetic = [
        SyntheticBye(number)
        for number in range(1, len(byes) - (1 if is_sum_even else 0) + 1)
    ]
    order: list = list(players) + synthetic
    max_seed = len(order)
    half = max_seed // 2
    moves: list[SeedMove] = []

    if is_sum_even:
        natural = byes.pop()
        if order.index(natural) + 1 != max_seed:
            _move(order, natural, max_seed)
            moves.append(SeedMove(natural, max_seed))
        if not byes:
            return moves

    placed: list[int] = []
    for index, player in enumerate(byes):
        target = half - len(byes) + index + 1
        seed = order.index(player) + 1
        if seed > target:
            _move(order, player, target)
            moves.append(SeedMove(player, target))
            seed = target
        placed.append(seed)

    for seed, bye in zip(placed, synthetic, strict=True):
        partner = seed + half
        _move(order, bye, partner)
        moves.append(SeedMove(bye, partner))
    return moves


async def assign_byes(
    bracket: BracketProvider,
    tournament_id: str,
    bye_discord_ids: Iterable[str],
    participants: ParticipantSync | None = None,
) -> list[int]:
    """Seed the bracket so every bye holder gets a round-1 bye.

    Returns the bracket ids of the synthetic players, which must be removed
    with ``remove_synthetic_byes`` once round-1 pairings exist.
    When ``participants`` is given the confirmed roster is recorded there,
    marking bye holders.
    """
    bye_ids = list(dict.fromkeys(bye_discord_ids))
    if not bye_ids:
        return []
    roster = await bracket.list_players(tournament_id)
    roster.sort(key=lambda player: (player.seed or 0, player.bracket_id))
    if len(roster) < 2:
        raise UserFacingError(
            "Cannot assign byes without at least 2 confirmed participants!"
        )

    by_discord = {player.discord_id: player for player in roster}
    unknown = [discord_id for discord_id in bye_ids if discord_id not in by_discord]
    if unknown:
        mentions = ", ".join(f"<@{discord_id}>" for discord_id in unknown)
        raise UserFacingError(
            f"Cannot assign byes in {tournament_id}: {mentions} not confirmed."
        )

    order = [player.bracket_id for player in roster]
    seeds = {bracket_id: seed for seed, bracket_id in enumerate(order, start=1)}
    moves = compute_bye_seeds(
        order,
        [by_discord[discord_id].bracket_id for discord_id in bye_ids],
        seeds.__getitem__,
    )

    registered: dict[SyntheticBye, int] = {}
    for move in moves:
        if isinstance(move.player, SyntheticBye) and move.player not in registered:
            registered[move.player] = await bracket.register_player(
                tournament_id, move.player.name, move.player.external_id
            )
            log.info(
                "Registered %s as %s in %s",
                move.player.name,
                registered[move.player],
                tournament_id,
            )

    for move in moves:
        player_id = registered.get(move.player, move.player)
        await bracket.set_seed(tournament_id, player_id, move.seed)
    log.info(
        "Placed %s byes in %s with %s synthetic players and %s seed moves",
        len(bye_ids),
        tournament_id,
        len(registered),
        len(moves),
    )
    log.debug("Seed order for %s: %s", tournament_id, reseed(order, moves))
    if participants is not None:
        for player in roster:
            player.has_bye = player.discord_id in bye_ids
        participants.sync_participants(tournament_id, roster)
    return list(registered.values())


async def remove_synthetic_byes(
    bracket: BracketProvider, tournament_id: str, synthetic_ids: Iterable[int]
) -> list[int]:
    failed: list[int] = []
    for player_id in synthetic_ids:
        try:
            await bracket.remove_player(tournament_id, player_id)
        except Exception as exc:  # pylint: disable=broad-except
            log.exception(
                "Failed to remove synthetic bye %s from %s: %s",
                player_id,
                tournament_id,
                exc,
            )
            failed.append(player_id)
    return failed


__all__ = [
    "reseed",
    "compute_bye_seeds",
    "assign_byes",
    "remove_synthetic_byes",
]
