from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from .models import utc_now
from .ports import ChatPlatform, CountdownStore, PeriodicScheduler
from .timer import DiscordLoopScheduler, RoundTimer

log = logging.getLogger(__name__)


class TimerRegistry:
    """Owns every live round timer, keyed by tournament id."""

    def __init__(
        self,
        chat: ChatPlatform,
        store: CountdownStore,
        scheduler: PeriodicScheduler | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._chat = chat
        self._store = store
        self._scheduler = scheduler if scheduler is not None else DiscordLoopScheduler()
        self._clock = clock
        self._timers: dict[str, list[RoundTimer]] = {}
        self._loaded = False

    async def load(self) -> int:
        """Resume persisted timers once per process; returns how many were kept."""
        if self._loaded:
            log.warning("Timer registry load called more than once, ignoring")
            return 0
        self._loaded = True
        try:
            timers = await RoundTimer.load_all(
                self._chat, self._store, self._scheduler, clock=self._clock
            )
        except Exception as exc:  # pylint: disable=broad-except
            log.exception("Failed to load persisted countdowns: %s", exc)
            return 0
        count = 0
        for timer in timers:
            if timer.tournament:
                self._timers.setdefault(timer.tournament, []).append(timer)
                count += 1
            else:
                log.warning(
                    "Aborting orphaned countdown %s", timer.countdown.countdown_id
                )
                await timer.abort()
        log.info(
            "Loaded %s of %s countdowns for %s tournaments",
            count,
            len(timers),
            len(self._timers),
        )
        return count

    async def start(
        self,
        tournament_id: str,
        channels: Iterable[int],
        end: datetime,
        final_message: str,
        tick_interval_seconds: int,
    ) -> list[RoundTimer]:
        if self.timers_for(tournament_id):
            log.warning("Replacing live timers for %s", tournament_id)
            await self.cancel(tournament_id)
        started: list[RoundTimer] = []
        for channel_id in channels:
            try:
                timer = await RoundTimer.create(
                    self._chat,
                    self._store,
                    self._scheduler,
                    channel_id=channel_id,
                    end=end,
                    final_message=final_message,
                    tick_interval_seconds=tick_interval_seconds,
                    tournament_id=tournament_id,
                    clock=self._clock,
                )
            except Exception as exc:  # pylint: disable=broad-except
                log.exception(
                    "Failed to start timer for %s in channel %s: %s",
                    tournament_id,
                    channel_id,
                    exc,
                )
                continue
            started.append(timer)
        self._timers[tournament_id] = started
        return started

    async def cancel(self, tournament_id: str) -> None:
        timers = self._timers.pop(tournament_id, [])
        log.debug("Cancelling %s timers for %s", len(timers), tournament_id)
        for timer in timers:
            await timer.abort()

    def timers_for(self, tournament_id: str) -> list[RoundTimer]:
        """Live timers of a tournament; timers that already fired are forgotten."""
        live = [
            timer for timer in self._timers.get(tournament_id, []) if timer.is_active()
        ]
        if live:
            self._timers[tournament_id] = live
        else:
            self._timers.pop(tournament_id, None)
        return live


__all__ = ["TimerRegistry"]
