"""Structured exception hierarchy for traywatch

Provides structured error handling with context information,
error codes, and recovery suggestions.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(Enum):
    """Error severity levels"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for better classification"""

    BUS = "bus"
    PROTOCOL = "protocol"
    REGISTRY = "registry"
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    LIFECYCLE = "lifecycle"
    SYSTEM = "system"


class TrayWatchError(Exception):
    """Base exception for traywatch

    Provides structured error information including:
    - Error codes for programmatic handling
    - Context information for debugging
    - Severity levels for appropriate response
    - Recovery suggestions for user guidance
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recovery_suggestions: Optional[List[str]] = None,
        original_exception: Optional[Exception] = None,
    ):
        """
        Args:
            message: Human-readable error message
            error_code: Unique error code for programmatic handling
            category: Error category for classification
            severity: Error severity level
            context: Additional context information
            recovery_suggestions: List of suggested recovery actions
            original_exception: Original exception if this is a wrapper
        """
        super().__init__(message)

        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        self.original_exception = original_exception
        self.timestamp = time.time()
        self.error_code = error_code or self._generate_error_code()

        if "component" not in self.context:
            self.context["component"] = self.__class__.__name__

    def _generate_error_code(self) -> str:
        """Generate a default error code based on class name"""
        class_name = self.__class__.__name__
        return f"{class_name.upper()}_{int(self.timestamp)}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "context": self.context,
            "recovery_suggestions": self.recovery_suggestions,
            "timestamp": self.timestamp,
            "exception_type": self.__class__.__name__,
            "original_exception": str(self.original_exception)
            if self.original_exception
            else None,
        }

    def is_recoverable(self) -> bool:
        """Check if error is potentially recoverable"""
        return (
            len(self.recovery_suggestions) > 0
            and self.severity != ErrorSeverity.CRITICAL
        )


# =============================================================================
# Bus Exceptions
# =============================================================================


class BusError(TrayWatchError):
    """Bus operation failure scoped to a single call"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            category=kwargs.pop("category", ErrorCategory.BUS),
            severity=kwargs.pop("severity", ErrorSeverity.MEDIUM),
            recovery_suggestions=kwargs.pop(
                "recovery_suggestions",
                ["The next signal from the item triggers a fresh attempt"],
            ),
            **kwargs,
        )


class BusCallError(BusError):
    """A remote method call returned an error reply"""

    def __init__(self, message: str, error_name: str = "", **kwargs):
        context = kwargs.pop("context", {})
        context["error_name"] = error_name
        super().__init__(message, context=context, **kwargs)
        self.error_name = error_name


class BusTimeoutError(BusCallError):
    """A remote method call did not answer within the call timeout"""

    def __init__(self, message: str, timeout: Optional[float] = None, **kwargs):
        context = kwargs.pop("context", {})
        context["timeout"] = timeout
        super().__init__(
            message,
            error_name="org.freedesktop.DBus.Error.Timeout",
            context=context,
            **kwargs,
        )
        self.timeout = timeout


class BusConnectionError(TrayWatchError):
    """The bus connection itself is gone; no tray state can be trusted"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.BUS,
            severity=kwargs.pop("severity", ErrorSeverity.CRITICAL),
            recovery_suggestions=kwargs.pop(
                "recovery_suggestions",
                [
                    "Check that the session bus is running",
                    "Restart the tray engine",
                ],
            ),
            **kwargs,
        )


class BusMethodError(TrayWatchError):
    """Error returned to a remote caller of an exported method"""

    def __init__(self, error_name: str, message: str, **kwargs):
        context = kwargs.pop("context", {})
        context["error_name"] = error_name
        super().__init__(
            message=message,
            category=ErrorCategory.PROTOCOL,
            severity=kwargs.pop("severity", ErrorSeverity.LOW),
            context=context,
            **kwargs,
        )
        self.error_name = error_name


# =============================================================================
# Tray Protocol Exceptions
# =============================================================================


class NotifierAddressError(TrayWatchError):
    """A registration argument could not be turned into an item address"""

    def __init__(self, message: str, service: str = "", **kwargs):
        context = kwargs.pop("context", {})
        context["service"] = service
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=kwargs.pop("severity", ErrorSeverity.LOW),
            context=context,
            **kwargs,
        )
        self.service = service


class ResolutionError(TrayWatchError):
    """Fetching an item's properties failed; the attempt is dropped"""

    def __init__(self, message: str, address: Any = None, **kwargs):
        context = kwargs.pop("context", {})
        if address is not None:
            context["address"] = str(address)
        super().__init__(
            message=message,
            category=ErrorCategory.REGISTRY,
            severity=kwargs.pop("severity", ErrorSeverity.LOW),
            context=context,
            recovery_suggestions=kwargs.pop(
                "recovery_suggestions",
                ["The item is resolved again on its next property change"],
            ),
            **kwargs,
        )
        self.address = address


class WatcherUnavailableError(TrayWatchError):
    """The watcher name is owned elsewhere and host fallback is disabled"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            category=ErrorCategory.LIFECYCLE,
            severity=kwargs.pop("severity", ErrorSeverity.HIGH),
            recovery_suggestions=kwargs.pop(
                "recovery_suggestions",
                [
                    "Stop the other StatusNotifierWatcher",
                    "Enable watcher.fallback_to_host in the configuration",
                ],
            ),
            **kwargs,
        )


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationError(TrayWatchError):
    """配置相关异常"""

    def __init__(self, message: str, config_key: str = "unknown", **kwargs):
        context = kwargs.pop("context", {})
        context["config_key"] = config_key

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=kwargs.pop("severity", ErrorSeverity.MEDIUM),
            context=context,
            recovery_suggestions=kwargs.pop(
                "recovery_suggestions",
                [
                    "Check the configuration file syntax",
                    "Delete the configuration file to restore defaults",
                ],
            ),
            **kwargs,
        )


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    original_exception: Exception, message: str = None, exception_type: type = None
) -> TrayWatchError:
    """Wrap a standard exception in the TrayWatchError hierarchy

    Args:
        original_exception: Original exception to wrap
        message: Optional custom message
        exception_type: Exception type to use for wrapping

    Returns:
        Wrapped exception
    """
    if isinstance(original_exception, TrayWatchError):
        return original_exception

    if exception_type is None:
        exception_type = TrayWatchError

    if message is None:
        message = str(original_exception)

    return exception_type(
        message,
        original_exception=original_exception,
        context={"original_type": type(original_exception).__name__},
    )


__all__ = [
    "ErrorSeverity",
    "ErrorCategory",
    "TrayWatchError",
    "BusError",
    "BusCallError",
    "BusTimeoutError",
    "BusConnectionError",
    "BusMethodError",
    "NotifierAddressError",
    "ResolutionError",
    "WatcherUnavailableError",
    "ConfigurationError",
    "wrap_exception",
]
