"""
Unit tests for UpdateThrottler, driven by a fake loop and clock.
"""

import asyncio

from agentrelay.throttle import UpdateThrottler


class Recorder:
    def __init__(self):
        self.value = 0
        self.calls = []

    def snapshot(self):
        return self.value

    def __call__(self, snapshot):
        self.calls.append(snapshot)


def make_throttler(fake_loop, clock, interval_ms=150):
    recorder = Recorder()
    throttler = UpdateThrottler(
        recorder.snapshot, recorder, interval_ms=interval_ms, loop=fake_loop, clock=clock,
    )
    return throttler, recorder


class TestNotify:
    def test_first_notify_emits_immediately(self, fake_loop, clock):
        throttler, recorder = make_throttler(fake_loop, clock)
        throttler.notify()
        assert recorder.calls == [0]
        assert not throttler.pending

    def test_burst_coalesces_into_one_deferred_emission(self, fake_loop, clock):
        """Many changes inside one interval produce exactly one trailing emit."""
        throttler, recorder = make_throttler(fake_loop, clock)
        throttler.notify()

        for value in range(1, 50):
            recorder.value = value
            clock.now += 0.001
            throttler.notify()

        assert recorder.calls == [0]
        assert throttler.pending
        assert len(fake_loop.active) == 1

        fake_loop.advance(0.2)
        # Deferred emission reads the state at fire time
        assert recorder.calls == [0, 49]
        assert not throttler.pending

    def test_deferred_delay_is_remaining_interval(self, fake_loop, clock):
        throttler, recorder = make_throttler(fake_loop, clock)
        throttler.notify()
        clock.now += 0.1
        throttler.notify()

        (timer,) = fake_loop.active
        assert abs(timer.when - (clock.now + 0.05)) < 1e-9

    def test_notify_after_interval_emits_immediately(self, fake_loop, clock):
        throttler, recorder = make_throttler(fake_loop, clock)
        throttler.notify()
        clock.now += 0.15
        recorder.value = 1
        throttler.notify()
        assert recorder.calls == [0, 1]
        assert fake_loop.active == []

    def test_emissions_are_spaced_by_interval(self, fake_loop, clock):
        emitted_at = []
        throttler = UpdateThrottler(
            lambda: None, lambda _: emitted_at.append(clock.now),
            interval_ms=100, loop=fake_loop, clock=clock,
        )
        for _ in range(100):
            throttler.notify()
            fake_loop.advance(0.007)

        gaps = [b - a for a, b in zip(emitted_at, emitted_at[1:])]
        assert len(emitted_at) > 2
        assert all(gap >= 0.1 - 1e-6 for gap in gaps)


class TestForceAndClose:
    def test_force_notify_bypasses_interval_and_cancels_timer(self, fake_loop, clock):
        throttler, recorder = make_throttler(fake_loop, clock)
        throttler.notify()
        clock.now += 0.01
        throttler.notify()
        assert throttler.pending

        recorder.value = 7
        throttler.force_notify()

        assert recorder.calls == [0, 7]
        assert not throttler.pending
        fake_loop.advance(1.0)
        assert recorder.calls == [0, 7]

    def test_close_cancels_pending_and_blocks_emission(self, fake_loop, clock):
        throttler, recorder = make_throttler(fake_loop, clock)
        throttler.notify()
        clock.now += 0.01
        throttler.notify()

        throttler.close()
        fake_loop.advance(1.0)
        throttler.notify()
        throttler.force_notify()

        assert throttler.closed
        assert recorder.calls == [0]

    def test_force_then_close_is_final_emission(self, fake_loop, clock):
        throttler, recorder = make_throttler(fake_loop, clock)
        throttler.notify()
        recorder.value = 1
        throttler.notify()
        recorder.value = 2
        throttler.force_notify()
        throttler.close()
        fake_loop.advance(1.0)

        assert recorder.calls[-1] == 2
        assert throttler.emit_count == 2


class TestCallbackHandling:
    def test_no_callback_is_noop(self, fake_loop, clock):
        throttler = UpdateThrottler(lambda: 1, None, loop=fake_loop, clock=clock)
        throttler.notify()
        throttler.force_notify()
        assert throttler.emit_count == 0
        assert fake_loop.timers == []

    def test_callback_error_is_logged_not_raised(self, fake_loop, clock, caplog):
        def explode(snapshot):
            raise RuntimeError("ui crashed")

        throttler = UpdateThrottler(lambda: 1, explode, loop=fake_loop, clock=clock)
        throttler.notify()
        throttler.force_notify()

        assert throttler.emit_count == 2
        assert "Progress callback failed" in caplog.text

    def test_uses_running_loop_by_default(self):
        async def scenario():
            calls = []
            throttler = UpdateThrottler(lambda: len(calls), calls.append, interval_ms=20)
            throttler.notify()
            throttler.notify()
            assert throttler.pending
            await asyncio.sleep(0.1)
            throttler.close()
            return calls

        assert asyncio.run(scenario()) == [0, 1]
