import asyncio
from datetime import datetime, timedelta, timezone

from examhall.client.timer import ExamTimer, format_seconds
from examhall.services.timing import deadline_for, remaining_seconds, is_expired, is_within_window

T0 = datetime(2024, 3, 1, 9, 0, 0)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def test_deadline_and_remaining_from_start_and_limit():
    deadline = deadline_for(T0, 60)

    assert deadline == T0 + timedelta(minutes=60)
    assert remaining_seconds(deadline, T0 + timedelta(minutes=59)) == 60
    assert remaining_seconds(deadline, T0 + timedelta(minutes=61)) == 0


def test_aware_datetimes_are_compared_as_utc():
    aware_start = T0.replace(tzinfo=timezone.utc)
    assert deadline_for(aware_start, 10) == T0 + timedelta(minutes=10)


def test_expiry_respects_grace():
    assert not is_expired(T0, 60, T0 + timedelta(minutes=60))
    assert is_expired(T0, 60, T0 + timedelta(minutes=60, seconds=1))
    assert not is_expired(T0, 60, T0 + timedelta(minutes=60, seconds=20), grace_seconds=30)


def test_availability_window_bounds():
    assert is_within_window(None, None, T0)
    assert is_within_window(T0 - timedelta(hours=1), T0 + timedelta(hours=1), T0)
    assert not is_within_window(T0 + timedelta(minutes=1), None, T0)
    assert not is_within_window(None, T0 - timedelta(minutes=1), T0)


def test_format_seconds():
    assert format_seconds(3725) == "01:02:05"
    assert format_seconds(59.9) == "00:00:59"
    assert format_seconds(-4) == "00:00:00"


async def test_time_up_fires_exactly_once():
    calls = []
    clock = FakeClock(T0 + timedelta(minutes=61))
    timer = ExamTimer(T0, 60, on_time_up=lambda: calls.append("up"), clock=clock)

    assert timer.remaining() == 0
    for _ in range(3):
        assert await timer.tick() == 0

    assert calls == ["up"]
    assert timer.fired


async def test_tick_before_deadline_does_not_fire():
    calls = []
    clock = FakeClock(T0 + timedelta(minutes=30))
    ticks = []
    timer = ExamTimer(T0, 60, on_time_up=lambda: calls.append("up"), clock=clock, on_tick=ticks.append)

    remaining = await timer.tick()

    assert remaining == 30 * 60
    assert timer.format_remaining() == "00:30:00"
    assert ticks == [30 * 60]
    assert calls == []


async def test_remaining_catches_up_after_clock_jump():
    clock = FakeClock(T0)
    timer = ExamTimer(T0, 5, on_time_up=lambda: None, clock=clock)
    assert timer.remaining() == 300

    clock.now = T0 + timedelta(minutes=4, seconds=30)
    assert timer.remaining() == 30


async def test_running_timer_awaits_async_callback_and_stops():
    fired = asyncio.Event()

    async def on_time_up():
        fired.set()

    clock = FakeClock(T0 + timedelta(seconds=59))
    timer = ExamTimer(T0, 1, on_time_up=on_time_up, tick_interval=0.01, clock=clock)
    task = timer.start()

    await asyncio.sleep(0.03)
    assert not fired.is_set()
    clock.now = T0 + timedelta(minutes=2)

    await asyncio.wait_for(task, timeout=1)
    assert fired.is_set()
    assert task.done()


async def test_cancel_stops_the_loop():
    clock = FakeClock(T0)
    timer = ExamTimer(T0, 60, on_time_up=lambda: None, tick_interval=0.01, clock=clock)
    timer.start()

    timer.cancel()
    await timer.wait()

    assert not timer.fired
