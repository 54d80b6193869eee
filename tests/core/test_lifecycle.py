"""Lifecycle Management Tests

Tests for LifecycleComponent (configuration service) and AsyncLifecycleComponent
(bus-facing services) start/stop semantics.
"""

import asyncio

import pytest

from traywatch.core.base.lifecycle_component import (
    AsyncLifecycleComponent,
    ComponentState,
    LifecycleComponent,
)


class MockLifecycleComponent(LifecycleComponent):
    """Mock component for testing lifecycle behavior"""

    def __init__(self, name: str = "TestComponent"):
        super().__init__(name)
        self.start_count = 0
        self.stop_count = 0
        self.should_start_succeed = True
        self.should_stop_succeed = True
        self.start_exception = None
        self.stop_exception = None

    def _do_start(self) -> bool:
        self.start_count += 1
        if self.start_exception:
            raise self.start_exception
        return self.should_start_succeed

    def _do_stop(self) -> bool:
        self.stop_count += 1
        if self.stop_exception:
            raise self.stop_exception
        return self.should_stop_succeed


class MockAsyncComponent(AsyncLifecycleComponent):
    """Async counterpart; start awaits once so the loop actually runs"""

    def __init__(self, name: str = "AsyncComponent"):
        super().__init__(name)
        self.start_count = 0
        self.stop_count = 0
        self.start_exception = None
        self.block_start = False

    async def _do_start(self) -> bool:
        self.start_count += 1
        if self.block_start:
            await asyncio.Event().wait()
        await asyncio.sleep(0)
        if self.start_exception:
            raise self.start_exception
        return True

    async def _do_stop(self) -> bool:
        self.stop_count += 1
        await asyncio.sleep(0)
        return True


class TestLifecycleStartStop:
    """Test start and stop operations"""

    def test_initial_state_is_stopped(self):
        component = MockLifecycleComponent("MyService")

        assert component.component_name == "MyService"
        assert component.state == ComponentState.STOPPED
        assert component.is_running is False
        assert component.last_error is None

    def test_start_stop_cycle(self):
        """Test complete start-stop cycle"""
        component = MockLifecycleComponent()

        assert component.start() is True
        assert component.state == ComponentState.RUNNING

        assert component.stop() is True
        assert component.state == ComponentState.STOPPED

        assert component.start_count == 1
        assert component.stop_count == 1

    def test_multiple_start_stop_cycles(self):
        component = MockLifecycleComponent()

        for _ in range(3):
            component.start()
            component.stop()

        assert component.start_count == 3
        assert component.stop_count == 3
        assert component.state == ComponentState.STOPPED


class TestLifecycleIdempotency:
    """Test idempotent start/stop operations"""

    def test_start_when_already_running(self):
        component = MockLifecycleComponent()
        component.start()

        assert component.start() is True
        assert component.start_count == 1

    def test_stop_when_already_stopped(self):
        component = MockLifecycleComponent()

        assert component.stop() is True
        assert component.stop_count == 0


class TestLifecycleErrorHandling:
    """Test failures move the component to ERROR"""

    def test_start_failure_returns_false(self):
        component = MockLifecycleComponent()
        component.should_start_succeed = False

        assert component.start() is False
        assert component.state == ComponentState.ERROR

    def test_start_exception_is_recorded(self):
        """Test the exception is kept in last_error instead of propagating"""
        component = MockLifecycleComponent()
        error = RuntimeError("Start failed")
        component.start_exception = error

        assert component.start() is False
        assert component.state == ComponentState.ERROR
        assert component.last_error is error

    def test_stop_exception_is_recorded(self):
        component = MockLifecycleComponent()
        component.start()
        component.stop_exception = RuntimeError("Stop failed")

        assert component.stop() is False
        assert component.state == ComponentState.ERROR

    def test_successful_restart_clears_error(self):
        component = MockLifecycleComponent()
        component.start_exception = RuntimeError("Start failed")
        component.start()

        component.start_exception = None
        assert component.start() is True
        assert component.last_error is None

    def test_component_failure_does_not_affect_others(self):
        healthy = MockLifecycleComponent("Healthy")
        broken = MockLifecycleComponent("Broken")
        broken.start_exception = RuntimeError("Failure")

        healthy.start()
        broken.start()

        assert healthy.is_running
        assert broken.state == ComponentState.ERROR


class TestAsyncLifecycle:
    """Test the coroutine variant used by bus services"""

    def test_async_start_stop(self):
        async def run():
            component = MockAsyncComponent()
            assert await component.start() is True
            running = component.state
            assert await component.stop() is True
            return component, running

        component, running = asyncio.run(run())

        assert running == ComponentState.RUNNING
        assert component.state == ComponentState.STOPPED
        assert (component.start_count, component.stop_count) == (1, 1)

    def test_async_start_exception_is_recorded(self):
        async def run():
            component = MockAsyncComponent()
            component.start_exception = ValueError("bad config")
            return component, await component.start()

        component, started = asyncio.run(run())

        assert started is False
        assert component.state == ComponentState.ERROR
        assert isinstance(component.last_error, ValueError)

    def test_async_start_is_idempotent(self):
        async def run():
            component = MockAsyncComponent()
            await component.start()
            await component.start()
            return component.start_count

        assert asyncio.run(run()) == 1

    def test_cancellation_propagates(self):
        """Test cancelling start() is not turned into an ERROR state"""
        async def run():
            component = MockAsyncComponent()
            component.block_start = True
            task = asyncio.ensure_future(component.start())
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return component

        component = asyncio.run(run())

        assert component.state == ComponentState.STOPPED
        assert component.last_error is None
