"""Error Handling Package

This package provides the error taxonomy and centralized error tracking
for the performance telemetry core.
"""

from .error_manager import (
    TelemetryError,
    MalformedPayloadError,
    TransportFailureError,
    UnknownResourceError,
    ErrorHandler,
    ErrorRecord,
    ErrorContext,
    ErrorSeverity,
    ErrorCategory
)

__all__ = [
    "TelemetryError",
    "MalformedPayloadError",
    "TransportFailureError",
    "UnknownResourceError",
    "ErrorHandler",
    "ErrorRecord",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory"
]
