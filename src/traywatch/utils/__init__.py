"""Utilities: structured exceptions and the unified logging system"""

from .exceptions import *  # noqa: F403, F401
from .unified_logger import (  # noqa: F401
    logger,
    unified_logger,
    app_logger_compat,
    LogLevel,
    LogCategory,
)

app_logger = app_logger_compat


def log_component_lifecycle(
    component: str, event: str, state: str = None, details: dict = None
):
    ctx = {"event_type": "lifecycle", "lifecycle_event": event}
    if state:
        ctx["state"] = state
    if details:
        ctx.update(details)
    logger.info(
        f"Lifecycle: {component} {event}", LogCategory.STARTUP, ctx, component
    )
