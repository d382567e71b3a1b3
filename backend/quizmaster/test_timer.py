from __future__ import annotations

import asyncio
from unittest import IsolatedAsyncioTestCase

from .timer import CountdownTimer


class _Recorder:
    def __init__(self):
        self.ticks: list[int] = []
        self.expiries = 0

    async def on_tick(self, remaining: int) -> None:
        self.ticks.append(remaining)

    async def on_expire(self) -> None:
        self.expiries += 1


class CountdownTimerTests(IsolatedAsyncioTestCase):
    async def test_counts_down_and_expires_once(self):
        rec = _Recorder()
        timer = CountdownTimer(3, rec.on_tick, rec.on_expire, interval=0.001)

        timer.start()
        await timer.wait()

        self.assertEqual(rec.ticks, [2, 1, 0])
        self.assertEqual(rec.expiries, 1)
        self.assertTrue(timer.expired)
        self.assertFalse(timer.active)

    async def test_cancel_suppresses_remaining_ticks_and_expiry(self):
        rec = _Recorder()
        timer = CountdownTimer(50, rec.on_tick, rec.on_expire, interval=0.01)

        timer.start()
        await asyncio.sleep(0.035)
        timer.cancel()
        seen = list(rec.ticks)
        await timer.wait()
        await asyncio.sleep(0.05)

        self.assertEqual(rec.ticks, seen)
        self.assertEqual(rec.expiries, 0)
        self.assertTrue(timer.cancelled)
        self.assertFalse(timer.active)

    async def test_cancel_from_tick_callback_stops_before_zero(self):
        rec = _Recorder()

        async def on_tick(remaining: int) -> None:
            await rec.on_tick(remaining)
            if remaining == 3:
                timer.cancel()

        timer = CountdownTimer(5, on_tick, rec.on_expire, interval=0.001)
        timer.start()
        await timer.wait()

        self.assertEqual(rec.ticks, [4, 3])
        self.assertEqual(rec.expiries, 0)

    async def test_new_timer_starts_from_full_limit(self):
        first = _Recorder()
        timer = CountdownTimer(4, first.on_tick, first.on_expire, interval=0.005)
        timer.start()
        await asyncio.sleep(0.012)
        timer.cancel()

        second = _Recorder()
        replacement = CountdownTimer(4, second.on_tick, second.on_expire, interval=0.001)
        replacement.start()
        await replacement.wait()

        self.assertEqual(second.ticks, [3, 2, 1, 0])
        self.assertEqual(first.expiries, 0)

    async def test_timer_cannot_be_started_twice(self):
        rec = _Recorder()
        timer = CountdownTimer(2, rec.on_tick, rec.on_expire, interval=1.0)
        timer.start()

        with self.assertRaises(RuntimeError):
            timer.start()
        timer.cancel()

    def test_limit_must_be_positive(self):
        async def noop(*_args):
            return None

        with self.assertRaises(ValueError):
            CountdownTimer(0, noop, noop)
