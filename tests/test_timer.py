from datetime import timedelta

import pytest

from tournament_rounds import Countdown, RoundTimer, format_time
from tournament_rounds.models import isoformat_utc
from tournament_rounds.timer import TimerState


@pytest.mark.parametrize(
    ("milliseconds", "expected"),
    [
        (610000, "10:10"),
        (61000, "01:01"),
        (0, "00:00"),
        (1, "00:00"),
        (1500, "00:01"),
        (-2000, "00:00"),
        (3_600_000, "01:00:00"),
        (5_025_000, "01:23:45"),
    ],
)
def test_format_time(milliseconds, expected):
    assert format_time(milliseconds) == expected


async def make_timer(chat, storage, scheduler, clock, *, minutes=10, tournament="t1"):
    return await RoundTimer.create(
        chat,
        storage,
        scheduler,
        channel_id=42,
        end=clock() + timedelta(minutes=minutes),
        final_message="Time!",
        tick_interval_seconds=5,
        tournament_id=tournament,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_create_sends_status_persists_and_schedules(chat, storage, scheduler, clock):
    timer = await make_timer(chat, storage, scheduler, clock)

    assert timer.is_active()
    assert timer.state is TimerState.READY
    assert chat.sent == [(42, "Time left in the round: `10:00`")]
    stored = storage.get_countdown(timer.countdown.countdown_id)
    assert stored is not None
    assert stored.tournament_id == "t1"
    assert stored.message_id == timer.countdown.message_id
    assert [entry[0] for entry in scheduler.scheduled] == [1]


@pytest.mark.asyncio
async def test_create_survives_persistence_failure(chat, scheduler, clock):
    class BrokenStore:
        def save_countdown(self, countdown):
            raise RuntimeError("table unavailable")

        def delete_countdown(self, countdown_id):
            raise RuntimeError("table unavailable")

    timer = await make_timer(chat, BrokenStore(), scheduler, clock)

    assert timer.is_active()
    await timer.abort()
    assert not timer.is_active()


@pytest.mark.asyncio
async def test_tick_after_end_fires_once_and_deletes_row(chat, storage, scheduler, clock):
    timer = await make_timer(chat, storage, scheduler, clock, minutes=1)
    clock.advance(minutes=1)

    await timer.tick()
    await timer.tick()

    assert not timer.is_active()
    assert chat.messages_to(42).count("Time!") == 1
    assert storage.list_countdowns() == []
    assert scheduler.scheduled[0][2].cancelled


@pytest.mark.asyncio
async def test_tick_edits_every_minute_outside_last_five(chat, storage, scheduler, clock):
    timer = await make_timer(chat, storage, scheduler, clock, minutes=10)

    for _ in range(60):
        clock.advance(seconds=1)
        await timer.tick()

    assert [edit[2] for edit in chat.edits] == ["Time left in the round: `09:00`"]


@pytest.mark.asyncio
async def test_tick_uses_fine_interval_in_last_five_minutes(chat, storage, scheduler, clock):
    timer = await make_timer(chat, storage, scheduler, clock, minutes=4)

    for _ in range(12):
        clock.advance(seconds=1)
        await timer.tick()

    assert [edit[2] for edit in chat.edits] == [
        "Time left in the round: `03:55`",
        "Time left in the round: `03:50`",
    ]


@pytest.mark.asyncio
async def test_tick_catches_up_after_a_late_tick(chat, storage, scheduler, clock):
    timer = await make_timer(chat, storage, scheduler, clock, minutes=4)

    clock.advance(seconds=4)
    await timer.tick()
    clock.advance(seconds=3)  # skips the 03:55 mark
    await timer.tick()

    assert [edit[2] for edit in chat.edits] == ["Time left in the round: `03:53`"]


@pytest.mark.asyncio
async def test_missing_message_aborts_timer(chat, storage, scheduler, clock):
    timer = await make_timer(chat, storage, scheduler, clock, minutes=4)
    chat.missing_messages.add(timer.countdown.message_id)

    clock.advance(seconds=5)
    await timer.tick()

    assert not timer.is_active()
    assert storage.list_countdowns() == []


@pytest.mark.asyncio
async def test_other_edit_failures_keep_ticking(chat, storage, scheduler, clock):
    timer = await make_timer(chat, storage, scheduler, clock, minutes=4)
    chat.edit_error = RuntimeError("rate limited")

    clock.advance(seconds=5)
    await timer.tick()

    assert timer.is_active()
    chat.edit_error = None
    for _ in range(5):
        clock.advance(seconds=1)
        await timer.tick()
    assert [edit[2] for edit in chat.edits] == ["Time left in the round: `03:50`"]


@pytest.mark.asyncio
async def test_failing_edits_are_retried_on_cadence_only(chat, storage, scheduler, clock):
    timer = await make_timer(chat, storage, scheduler, clock, minutes=30)
    chat.edit_error = RuntimeError("403 Forbidden")

    for _ in range(120):
        clock.advance(seconds=1)
        await timer.tick()

    assert timer.is_active()
    assert chat.edit_attempts == 2


@pytest.mark.asyncio
async def test_abort_is_idempotent(chat, storage, scheduler, clock):
    timer = await make_timer(chat, storage, scheduler, clock)

    await timer.abort()
    await timer.abort()
    clock.advance(minutes=20)
    await timer.tick()

    assert not timer.is_active()
    assert "Time!" not in chat.messages_to(42)
    assert storage.list_countdowns() == []


@pytest.mark.asyncio
async def test_load_all_resumes_live_and_prunes_expired(chat, storage, scheduler, clock):
    storage.save_countdown(
        Countdown(
            countdown_id="live",
            end=isoformat_utc(clock() + timedelta(minutes=3)),
            channel_id=7,
            message_id=70,
            final_message="Time!",
            tick_interval_seconds=5,
            tournament_id="t1",
        )
    )
    storage.save_countdown(
        Countdown(
            countdown_id="expired",
            end=isoformat_utc(clock() - timedelta(minutes=3)),
            channel_id=8,
            message_id=80,
            final_message="Old time!",
            tick_interval_seconds=5,
            tournament_id="t2",
        )
    )

    timers = await RoundTimer.load_all(chat, storage, scheduler, clock=clock)

    assert [timer.countdown.countdown_id for timer in timers] == ["live"]
    assert timers[0].is_active()
    assert [c.countdown_id for c in storage.list_countdowns()] == ["live"]
    assert chat.sent == []

    clock.advance(seconds=1)
    await timers[0].tick()
    assert chat.edits == [(7, 70, "Time left in the round: `02:59`")]
