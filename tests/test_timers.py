"""
Unit Tests for DeferredTask
"""

import asyncio
from unittest.mock import Mock

import pytest

from buybot.services.ingestion.timers import DeferredTask


class TestDeferredTask:
    """Test arm / cancel semantics"""

    @pytest.mark.asyncio
    async def test_action_runs_after_delay(self, wait_until):
        handle = DeferredTask("test")
        ran = asyncio.Event()

        async def action():
            ran.set()

        assert handle.arm(0.01, action) is True
        assert handle.armed is True

        await asyncio.wait_for(ran.wait(), timeout=1)
        await wait_until(lambda: not handle.active)

    @pytest.mark.asyncio
    async def test_arm_is_idempotent(self):
        handle = DeferredTask("test")
        calls = []

        async def action():
            calls.append(1)

        assert handle.arm(0.05, action) is True
        assert handle.arm(0.05, action) is False

        await asyncio.sleep(0.15)

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_cancel_before_fire(self):
        handle = DeferredTask("test")
        calls = []

        async def action():
            calls.append(1)

        handle.arm(0.05, action)

        assert handle.cancel() is True
        assert handle.cancel() is False
        assert handle.active is False

        await asyncio.sleep(0.1)
        assert calls == []

    @pytest.mark.asyncio
    async def test_cancel_idle_handle(self):
        handle = DeferredTask("test")

        assert handle.cancel() is False
        await handle.wait_cancelled()

    @pytest.mark.asyncio
    async def test_not_armed_once_running(self, wait_until):
        """Running actions are active but no longer armed"""
        handle = DeferredTask("test")
        release = asyncio.Event()
        started = asyncio.Event()

        async def action():
            started.set()
            await release.wait()

        handle.arm(0, action)
        await asyncio.wait_for(started.wait(), timeout=1)

        assert handle.active is True
        assert handle.armed is False

        release.set()
        await wait_until(lambda: not handle.active)

    @pytest.mark.asyncio
    async def test_rearm_from_own_action(self, wait_until):
        """An action can schedule its own handle again"""
        handle = DeferredTask("test")
        runs = []

        async def action():
            runs.append(1)
            if len(runs) < 3:
                assert handle.arm(0, action) is True

        handle.arm(0, action)

        await wait_until(lambda: len(runs) == 3 and not handle.active)

    @pytest.mark.asyncio
    async def test_cancel_running_action(self):
        handle = DeferredTask("test")
        started = asyncio.Event()

        async def action():
            started.set()
            await asyncio.sleep(10)

        handle.arm(0, action)
        await asyncio.wait_for(started.wait(), timeout=1)

        await handle.wait_cancelled()

        assert handle.active is False

    @pytest.mark.asyncio
    async def test_unexpected_error_reported(self, wait_until):
        on_error = Mock()
        handle = DeferredTask("test", on_error=on_error)

        async def action():
            raise RuntimeError("boom")

        handle.arm(0, action)

        await wait_until(lambda: on_error.called)

        exc = on_error.call_args[0][0]
        assert isinstance(exc, RuntimeError)
        assert handle.active is False

    @pytest.mark.asyncio
    async def test_cancellation_not_reported(self):
        on_error = Mock()
        handle = DeferredTask("test", on_error=on_error)

        async def action():
            await asyncio.sleep(10)

        handle.arm(0, action)
        await asyncio.sleep(0.01)
        await handle.wait_cancelled()

        on_error.assert_not_called()
