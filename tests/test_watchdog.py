"""Tests for scribe.session.watchdog — single-shot silence timer."""

import asyncio

import pytest

from scribe.session.watchdog import SilenceWatchdog

TIMEOUT = 0.1


class _Counter:
    def __init__(self) -> None:
        self.count = 0

    async def __call__(self) -> None:
        self.count += 1


@pytest.fixture
def fired() -> _Counter:
    return _Counter()


@pytest.fixture
def watchdog(fired):
    w = SilenceWatchdog(TIMEOUT, fired)
    yield w
    w.disarm()


class TestArm:

    async def test_initially_disarmed(self, watchdog):
        assert watchdog.is_armed is False

    async def test_fires_once_after_timeout(self, watchdog, fired):
        watchdog.arm()
        assert watchdog.is_armed
        await asyncio.sleep(TIMEOUT * 3)
        assert fired.count == 1

    async def test_auto_disarms_after_firing(self, watchdog, fired):
        watchdog.arm()
        await asyncio.sleep(TIMEOUT * 1.5)
        assert watchdog.is_armed is False
        await asyncio.sleep(TIMEOUT * 2)
        assert fired.count == 1

    async def test_does_not_fire_early(self, watchdog, fired):
        watchdog.arm()
        await asyncio.sleep(TIMEOUT / 2)
        assert fired.count == 0

    async def test_rearm_resets_full_window(self, watchdog, fired):
        """Re-arming replaces the deadline rather than adding to it."""
        watchdog.arm()
        await asyncio.sleep(TIMEOUT * 0.7)
        watchdog.arm()
        await asyncio.sleep(TIMEOUT * 0.7)
        assert fired.count == 0
        await asyncio.sleep(TIMEOUT)
        assert fired.count == 1

    async def test_rearm_does_not_stack_timers(self, watchdog, fired):
        for _ in range(5):
            watchdog.arm()
        await asyncio.sleep(TIMEOUT * 3)
        assert fired.count == 1

    async def test_can_fire_again_after_rearm(self, watchdog, fired):
        watchdog.arm()
        await asyncio.sleep(TIMEOUT * 2)
        watchdog.arm()
        await asyncio.sleep(TIMEOUT * 2)
        assert fired.count == 2


class TestDisarm:

    async def test_disarm_prevents_firing(self, watchdog, fired):
        watchdog.arm()
        watchdog.disarm()
        await asyncio.sleep(TIMEOUT * 2)
        assert fired.count == 0
        assert watchdog.is_armed is False

    async def test_disarm_when_not_armed_is_safe(self, watchdog):
        watchdog.disarm()
        watchdog.disarm()
        assert watchdog.is_armed is False


class TestCallback:

    async def test_callback_may_rearm(self):
        fired = 0
        watchdog: SilenceWatchdog

        async def rearm_once() -> None:
            nonlocal fired
            fired += 1
            if fired == 1:
                watchdog.arm()

        watchdog = SilenceWatchdog(TIMEOUT, rearm_once)
        watchdog.arm()
        await asyncio.sleep(TIMEOUT * 3.5)
        assert fired == 2
        watchdog.disarm()

    async def test_callback_may_disarm_without_cancelling_itself(self):
        finished = asyncio.Event()
        watchdog: SilenceWatchdog

        async def disarm_then_await() -> None:
            watchdog.disarm()
            await asyncio.sleep(0)
            finished.set()

        watchdog = SilenceWatchdog(TIMEOUT, disarm_then_await)
        watchdog.arm()
        await asyncio.wait_for(finished.wait(), timeout=TIMEOUT * 5)

    async def test_failing_callback_is_logged_not_raised(self, caplog):
        async def boom() -> None:
            raise RuntimeError("boom")

        watchdog = SilenceWatchdog(TIMEOUT, boom)
        watchdog.arm()
        await asyncio.sleep(TIMEOUT * 2)
        assert "Silence timeout handler failed" in caplog.text
