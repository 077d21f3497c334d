"""Error Handling Manager

This module provides the error taxonomy and centralized error tracking for the
telemetry core. Failures on the ingestion path, the push channel and the query
surface are recorded here and logged; nothing in this module retries.
"""

import logging
import traceback
from datetime import datetime
from typing import Dict, Any, Optional, Callable, List
from enum import Enum
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class TelemetryError(Exception):
    """Base exception for telemetry core errors"""
    pass


class MalformedPayloadError(TelemetryError):
    """Raised when an ingested or inbound payload cannot be interpreted"""
    pass


class TransportFailureError(TelemetryError):
    """Raised when a subscriber connection cannot be written to or read from"""
    pass


class UnknownResourceError(TelemetryError):
    """Raised when a referenced resource (e.g. an alert id) does not exist"""
    pass


class ErrorSeverity(Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification"""
    MALFORMED_PAYLOAD = "malformed_payload"
    TRANSPORT_FAILURE = "transport_failure"
    UNKNOWN_RESOURCE = "unknown_resource"
    SCHEDULER = "scheduler"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Context information for error tracking"""
    component: str
    operation: str
    timestamp: datetime = field(default_factory=datetime.now)
    additional_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ErrorRecord:
    """Aggregated record for a recurring error signature"""
    error_id: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    context: ErrorContext
    exception_type: str
    traceback_info: Optional[str] = None
    occurrence_count: int = 1
    first_occurred: datetime = field(default_factory=datetime.now)
    last_occurred: datetime = field(default_factory=datetime.now)


class ErrorHandler:
    """Centralized error recording and logging"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize error handler

        Args:
            config: Configuration dictionary for error handling
        """
        self.config = config or {}
        self.error_records: Dict[str, ErrorRecord] = {}
        self.error_callbacks: Dict[ErrorCategory, List[Callable]] = {}

        self.max_error_records = self.config.get("max_error_records", 1000)

        # category -> severity -> count
        self.error_counters: Dict[str, Dict[str, int]] = {}

        logger.info("Error handler initialized")

    def register_error_callback(self, category: ErrorCategory, callback: Callable):
        """Register a callback for specific error categories

        Args:
            category: Error category to handle
            callback: Callback invoked with the ErrorRecord
        """
        self.error_callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        error: Exception,
        context: ErrorContext,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM
    ) -> ErrorRecord:
        """Record and log an error

        Args:
            error: The exception that occurred
            context: Context information about the error
            category: Category of the error
            severity: Severity level of the error

        Returns:
            ErrorRecord tracking this error signature
        """
        error_id = self._generate_error_id(error, context)

        if error_id in self.error_records:
            error_record = self.error_records[error_id]
            error_record.occurrence_count += 1
            error_record.last_occurred = datetime.now()
        else:
            error_record = ErrorRecord(
                error_id=error_id,
                category=category,
                severity=severity,
                message=str(error),
                context=context,
                exception_type=type(error).__name__,
                traceback_info=traceback.format_exc() if logger.isEnabledFor(logging.DEBUG) else None
            )
            self.error_records[error_id] = error_record

        self._log_error(error_record)
        self._update_error_counters(category, severity)
        self._execute_error_callbacks(category, error_record)
        self._cleanup_old_errors()

        return error_record

    def _generate_error_id(self, error: Exception, context: ErrorContext) -> str:
        """Generate a stable ID for an error signature"""
        error_signature = f"{type(error).__name__}:{str(error)}:{context.component}:{context.operation}"
        return f"err_{hash(error_signature) % 1000000:06d}"

    def _log_error(self, error_record: ErrorRecord):
        """Log error with level chosen by severity"""
        log_message = (
            f"[{error_record.error_id}] {error_record.category.value.upper()}: "
            f"{error_record.message} in {error_record.context.component}.{error_record.context.operation}"
        )

        if error_record.occurrence_count > 1:
            log_message += f" (occurrence #{error_record.occurrence_count})"

        if error_record.context.additional_data:
            log_message += f" - Context: {error_record.context.additional_data}"

        if error_record.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message)
        elif error_record.severity == ErrorSeverity.HIGH:
            logger.error(log_message)
        elif error_record.severity == ErrorSeverity.MEDIUM:
            logger.warning(log_message)
        else:
            logger.info(log_message)

        if error_record.traceback_info and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Traceback for {error_record.error_id}:\n{error_record.traceback_info}")

    def _update_error_counters(self, category: ErrorCategory, severity: ErrorSeverity):
        counters = self.error_counters.setdefault(category.value, {})
        counters[severity.value] = counters.get(severity.value, 0) + 1

    def _execute_error_callbacks(self, category: ErrorCategory, error_record: ErrorRecord):
        for callback in self.error_callbacks.get(category, []):
            try:
                callback(error_record)
            except Exception as e:
                logger.error(f"Error callback failed: {e}")

    def _cleanup_old_errors(self):
        """Drop the least recently seen records beyond the configured cap"""
        if len(self.error_records) <= self.max_error_records:
            return

        sorted_records = sorted(
            self.error_records.items(),
            key=lambda x: x[1].last_occurred
        )
        num_to_remove = len(self.error_records) - self.max_error_records
        for error_id, _ in sorted_records[:num_to_remove]:
            del self.error_records[error_id]

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get error statistics

        Returns:
            Dictionary containing totals, per-category counters and the ten
            most recent error signatures
        """
        total_errors = sum(
            sum(severities.values()) for severities in self.error_counters.values()
        )

        return {
            "total_errors": total_errors,
            "unique_errors": len(self.error_records),
            "error_by_category": {k: dict(v) for k, v in self.error_counters.items()},
            "recent_errors": [
                {
                    "error_id": record.error_id,
                    "category": record.category.value,
                    "severity": record.severity.value,
                    "message": record.message,
                    "occurrence_count": record.occurrence_count,
                    "last_occurred": record.last_occurred.isoformat()
                }
                for record in sorted(
                    self.error_records.values(),
                    key=lambda x: x.last_occurred,
                    reverse=True
                )[:10]
            ]
        }

    def get_error_record(self, error_id: str) -> Optional[ErrorRecord]:
        return self.error_records.get(error_id)
