"""Simplified lifecycle management base classes

Provides minimal lifecycle management for components that need start/stop semantics.
`LifecycleComponent` is for plain services (configuration), `AsyncLifecycleComponent`
for the bus-facing services that run on the asyncio loop.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from ...utils import app_logger, log_component_lifecycle


class ComponentState(Enum):
    """Simple 3-state component lifecycle"""

    STOPPED = "stopped"  # Component is stopped (initial state)
    RUNNING = "running"  # Component is actively running
    ERROR = "error"  # Component encountered an error


class _LifecycleBase:
    def __init__(self, component_name: str):
        """Initialize lifecycle component

        Args:
            component_name: Name for logging and identification
        """
        self._component_name = component_name
        self._state = ComponentState.STOPPED
        self._last_error: Optional[Exception] = None

    def _mark_failed(self, error: Exception, action: str) -> None:
        self._state = ComponentState.ERROR
        self._last_error = error
        app_logger.log_error(error, f"{self._component_name}_{action}")

    @property
    def is_running(self) -> bool:
        """Check if component is currently running"""
        return self._state == ComponentState.RUNNING

    @property
    def state(self) -> ComponentState:
        """Get current component state"""
        return self._state

    @property
    def component_name(self) -> str:
        """Get component name"""
        return self._component_name

    @property
    def last_error(self) -> Optional[Exception]:
        """Exception raised by the last failed start/stop, if any"""
        return self._last_error


class LifecycleComponent(_LifecycleBase, ABC):
    """Simplified base class for lifecycle-managed components

    Usage:
        class MyComponent(LifecycleComponent):
            def __init__(self):
                super().__init__("MyComponent")

            def _do_start(self) -> bool:
                return True

            def _do_stop(self) -> bool:
                return True
    """

    def start(self) -> bool:
        """Start the component

        Returns:
            True if start successful, False otherwise
        """
        if self._state == ComponentState.RUNNING:
            return True

        try:
            log_component_lifecycle(self._component_name, "starting")
            success = self._do_start()

            if success:
                self._state = ComponentState.RUNNING
                self._last_error = None
                log_component_lifecycle(self._component_name, "started")
            else:
                self._state = ComponentState.ERROR

            return success

        except Exception as e:
            self._mark_failed(e, "start")
            return False

    def stop(self) -> bool:
        """Stop the component

        Returns:
            True if stop successful, False otherwise
        """
        if self._state == ComponentState.STOPPED:
            return True

        try:
            log_component_lifecycle(self._component_name, "stopping")
            success = self._do_stop()

            if success:
                self._state = ComponentState.STOPPED
                log_component_lifecycle(self._component_name, "stopped")
            else:
                self._state = ComponentState.ERROR

            return success

        except Exception as e:
            self._mark_failed(e, "stop")
            return False

    @abstractmethod
    def _do_start(self) -> bool:
        """Subclass-specific start logic"""
        pass

    @abstractmethod
    def _do_stop(self) -> bool:
        """Subclass-specific stop logic"""
        pass


class AsyncLifecycleComponent(_LifecycleBase, ABC):
    """Lifecycle base class for components driven by the asyncio loop

    Same state model as LifecycleComponent; `start()`/`stop()` are coroutines.
    Cancellation is never swallowed.
    """

    async def start(self) -> bool:
        if self._state == ComponentState.RUNNING:
            return True

        try:
            log_component_lifecycle(self._component_name, "starting")
            success = await self._do_start()

            if success:
                self._state = ComponentState.RUNNING
                self._last_error = None
                log_component_lifecycle(self._component_name, "started")
            else:
                self._state = ComponentState.ERROR

            return success

        except Exception as e:
            self._mark_failed(e, "start")
            return False

    async def stop(self) -> bool:
        if self._state == ComponentState.STOPPED:
            return True

        try:
            log_component_lifecycle(self._component_name, "stopping")
            success = await self._do_stop()

            if success:
                self._state = ComponentState.STOPPED
                log_component_lifecycle(self._component_name, "stopped")
            else:
                self._state = ComponentState.ERROR

            return success

        except Exception as e:
            self._mark_failed(e, "stop")
            return False

    @abstractmethod
    async def _do_start(self) -> bool:
        pass

    @abstractmethod
    async def _do_stop(self) -> bool:
        pass
