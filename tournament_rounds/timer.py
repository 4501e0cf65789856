"""Durable round countdowns.

A ``RoundTimer`` posts a status message, persists a ``Countdown`` row and
ticks once a second until the end time, when it posts the final message
and deletes the row. The message is edited every minute, and every tick
interval inside the last five minutes. States:

    init:  status message sent, row not yet written
    ready: row written (or the write failed and the timer runs in memory)
    done:  fired or aborted, never reused
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import StrEnum

from discord.ext import tasks

from .errors import MessageNotFoundError
from .models import Countdown, isoformat_utc, utc_now
from .ports import CancellationHandle, ChatPlatform, CountdownStore, PeriodicScheduler

log = logging.getLogger(__name__)

STATUS_TEMPLATE = "Time left in the round: `{left}`"
TICK_SECONDS = 1
COARSE_INTERVAL_SECONDS = 60
FINE_WINDOW_SECONDS = 300


def format_time(milliseconds: int | float) -> str:
    """Render a duration as ``mm:ss``, or ``hh:mm:ss`` from one hour up."""
    total_seconds = int(max(milliseconds, 0) // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


class _LoopHandle:
    def __init__(self, loop: tasks.Loop) -> None:
        self._loop = loop

    def cancel(self) -> None:
        # stop() lets an in-flight iteration finish instead of cancelling it
        self._loop.stop()


class DiscordLoopScheduler:
    """Runs periodic callbacks on the bot's event loop via ``discord.ext.tasks``."""

    def every(
        self, seconds: float, callback: Callable[[], Awaitable[None]]
    ) -> CancellationHandle:
        loop = tasks.loop(seconds=seconds)(callback)
        loop.start()
        return _LoopHandle(loop)


class TimerState(StrEnum):
    INIT = "init"
    READY = "ready"
    DONE = "done"


class RoundTimer:
    def __init__(
        self,
        countdown: Countdown,
        chat: ChatPlatform,
        store: CountdownStore,
        scheduler: PeriodicScheduler,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._countdown = countdown
        self._chat = chat
        self._store = store
        self._scheduler = scheduler
        self._clock = clock
        self._handle: CancellationHandle | None = None
        self._state = TimerState.INIT
        self._last_edit_seconds: int | None = None

    @property
    def countdown(self) -> Countdown:
        return self._countdown

    @property
    def tournament(self) -> str | None:
        return self._countdown.tournament_id

    @property
    def state(self) -> TimerState:
        return self._state

    def is_active(self) -> bool:
        return self._state is not TimerState.DONE and self._handle is not None

    def _start(self) -> None:
        self._handle = self._scheduler.every(TICK_SECONDS, self.tick)

    @classmethod
    async def create(
        cls,
        chat: ChatPlatform,
        store: CountdownStore,
        scheduler: PeriodicScheduler,
        *,
        channel_id: int,
        end: datetime,
        final_message: str,
        tick_interval_seconds: int,
        tournament_id: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> RoundTimer:
        remaining_ms = (end - clock()).total_seconds() * 1000
        message_id = await chat.send_message(
            channel_id, STATUS_TEMPLATE.format(left=format_time(remaining_ms))
        )
        countdown = Countdown(
            countdown_id=uuid.uuid4().hex,
            end=isoformat_utc(end),
            channel_id=channel_id,
            message_id=message_id,
            final_message=final_message,
            tick_interval_seconds=tick_interval_seconds,
            tournament_id=tournament_id,
        )
        timer = cls(countdown, chat, store, scheduler, clock=clock)
        timer._last_edit_seconds = math.ceil(remaining_ms / 1000)
        timer._start()
        try:
            store.save_countdown(countdown)
        except Exception as exc:  # pylint: disable=broad-except
            log.warning(
                "Countdown %s in channel %s was not persisted and will not survive a restart: %s",
                countdown.countdown_id,
                channel_id,
                exc,
            )
        timer._state = TimerState.READY
        return timer

    @classmethod
    async def load_all(
        cls,
        chat: ChatPlatform,
        store: CountdownStore,
        scheduler: PeriodicScheduler,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> list[RoundTimer]:
        """Resume every persisted countdown that has not ended yet.

        Expired rows are deleted without sending their final message.
        """
        countdowns = store.list_countdowns()
        now = clock()
        active: list[RoundTimer] = []
        for countdown in countdowns:
            if countdown.end_at > now:
                timer = cls(countdown, chat, store, scheduler, clock=clock)
                timer._start()
                timer._state = TimerState.READY
                active.append(timer)
        for countdown in countdowns:
            if countdown.end_at <= now:
                try:
                    store.delete_countdown(countdown.countdown_id)
                except Exception as exc:  # pylint: disable=broad-except
                    log.error(
                        "Failed to prune expired countdown %s: %s",
                        countdown.countdown_id,
                        exc,
                    )
        return active

    async def abort(self) -> None:
        if self._state is TimerState.DONE:
            return
        self._state = TimerState.DONE
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        try:
            self._store.delete_countdown(self._countdown.countdown_id)
        except Exception as exc:  # pylint: disable=broad-except
            log.warning(
                "Failed to delete countdown %s: %s", self._countdown.countdown_id, exc
            )

    async def tick(self) -> None:
        if self._state is TimerState.DONE:
            return
        try:
            await self._tick()
        except Exception as exc:  # pylint: disable=broad-except
            log.exception(
                "Countdown %s tick failed: %s", self._countdown.countdown_id, exc
            )

    async def _tick(self) -> None:
        countdown = self._countdown
        remaining = countdown.end_at - self._clock()
        remaining_ms = remaining.total_seconds() * 1000
        if remaining_ms <= 0:
            try:
                await self._chat.send_message(
                    countdown.channel_id, countdown.final_message
                )
            except Exception as exc:  # pylint: disable=broad-except
                log.warning(
                    "Countdown %s could not send its final message to %s: %s",
                    countdown.countdown_id,
                    countdown.channel_id,
                    exc,
                )
            await self.abort()
            return

        seconds = math.ceil(remaining_ms / 1000)
        if not self._edit_due(seconds, countdown.tick_interval_seconds):
            return
        text = STATUS_TEMPLATE.format(left=format_time(remaining_ms))
        try:
            await self._chat.edit_message(
                countdown.channel_id, countdown.message_id, text
            )
        except MessageNotFoundError:
            log.warning(
                "Countdown %s lost message %s in channel %s, aborting",
                countdown.countdown_id,
                countdown.message_id,
                countdown.channel_id,
            )
            await self.abort()
            return
        except Exception as exc:  # pylint: disable=broad-except
            log.warning(
                "Countdown %s could not edit %s/%s: %s",
                countdown.countdown_id,
                countdown.channel_id,
                countdown.message_id,
                exc,
            )
        # a failed attempt still uses up this slot; retry on the next one
        self._last_edit_seconds = seconds

    def _edit_due(self, seconds: int, fine_interval: int) -> bool:
        interval = (
            COARSE_INTERVAL_SECONDS
            if seconds > FINE_WINDOW_SECONDS
            else max(fine_interval, 1)
        )
        last = self._last_edit_seconds
        if last is None:
            return True
        if seconds == last:
            return False
        # catch up when a tick landed late and skipped the aligned second
        return seconds % interval == 0 or last - seconds >= interval


__all__ = [
    "STATUS_TEMPLATE",
    "format_time",
    "DiscordLoopScheduler",
    "TimerState",
    "RoundTimer",
]
