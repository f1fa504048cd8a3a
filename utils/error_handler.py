"""Centralized error handling for the scheduling core

This module provides:
- The booking error taxonomy (validation errors and storage failures)
- Error classification by severity
- Translation of driver errors into StorageUnavailable
- Structured error logging and Sentry reporting
"""

import asyncio
import functools
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

import aiosqlite
import asyncpg
import sentry_sdk
from pydantic import ValidationError

import config

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorSeverity(Enum):
    """Error severity levels"""

    LOW = "low"  # Expected, shown to the user
    MEDIUM = "medium"  # Recoverable, logged
    HIGH = "high"  # May need manual intervention
    CRITICAL = "critical"  # Requires immediate attention


class RetryableError(Exception):
    """Base class for errors the caller may retry"""

    pass


class BookingError(Exception):
    """Base class for expected, user-facing scheduling errors

    Every subclass has a stable ``code`` so the UI can pick a specific
    message, and keeps the structured fields passed as keyword arguments
    in ``details``.
    """

    code = config.ERROR_INVALID_INPUT
    severity = ErrorSeverity.LOW
    default_message = "Invalid request"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class InvalidTimeFormat(BookingError):
    code = config.ERROR_INVALID_TIME
    default_message = "Time must be HH:MM or HH:MM:SS"


class InvalidDateFormat(BookingError):
    code = config.ERROR_INVALID_DATE
    default_message = "Date must be YYYY-MM-DD"


class InvalidInput(BookingError):
    code = config.ERROR_INVALID_INPUT


class InvalidRecord(BookingError):
    """A record was constructed in a state the data model forbids"""

    code = config.ERROR_INVALID_RECORD
    severity = ErrorSeverity.HIGH
    default_message = "Invalid record"


class ServiceNotFound(BookingError):
    code = config.ERROR_SERVICE_NOT_FOUND
    default_message = "Service not found"


class ServiceInactive(BookingError):
    code = config.ERROR_SERVICE_INACTIVE
    default_message = "Service is not active"


class ClientNotFound(BookingError):
    code = config.ERROR_CLIENT_NOT_FOUND
    default_message = "Client not found"


class AppointmentNotFound(BookingError):
    code = config.ERROR_APPOINTMENT_NOT_FOUND
    default_message = "Appointment not found"


class OutsideWorkingHours(BookingError):
    code = config.ERROR_OUTSIDE_WORKING_HOURS
    default_message = "Requested time is outside working hours"


class SlotBlocked(BookingError):
    code = config.ERROR_SLOT_BLOCKED
    default_message = "Requested time is blocked"


class SlotConflict(BookingError):
    code = config.ERROR_SLOT_CONFLICT
    default_message = "Requested time overlaps another appointment"


class SlotNotOffered(BookingError):
    code = config.ERROR_SLOT_NOT_OFFERED
    default_message = "Requested time is not offered for online booking"


class InvalidTransition(BookingError):
    code = config.ERROR_INVALID_TRANSITION
    default_message = "Status change not allowed"


class ProfessionalNotFound(BookingError):
    code = config.ERROR_PROFESSIONAL_NOT_FOUND
    default_message = "Professional not found"


class BookingDisabled(BookingError):
    code = config.ERROR_BOOKING_DISABLED
    default_message = "Online booking is disabled for this professional"


class StorageUnavailable(BookingError, RetryableError):
    """Persistence call failed or timed out; nothing was committed"""

    code = config.ERROR_STORAGE_UNAVAILABLE
    severity = ErrorSeverity.HIGH
    default_message = "Storage is temporarily unavailable"


# === ERROR CLASSIFICATION ===

STORAGE_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    aiosqlite.Error,
    OSError,
    asyncio.TimeoutError,
)


def classify_error(error: Exception) -> ErrorSeverity:
    """Classify error by severity

    Args:
        error: Exception to classify

    Returns:
        ErrorSeverity level
    """
    if isinstance(error, BookingError):
        return error.severity

    if isinstance(error, ValidationError):
        return ErrorSeverity.LOW

    if isinstance(error, (asyncio.TimeoutError, asyncpg.InterfaceError)):
        return ErrorSeverity.MEDIUM

    if isinstance(error, (aiosqlite.OperationalError, OSError)):
        return ErrorSeverity.MEDIUM

    if isinstance(error, (asyncpg.IntegrityConstraintViolationError, aiosqlite.IntegrityError)):
        return ErrorSeverity.HIGH

    # Unknown errors are critical
    return ErrorSeverity.CRITICAL


def report_error(error: Exception) -> None:
    """Send HIGH/CRITICAL errors to Sentry when monitoring is enabled"""
    if config.SENTRY_ENABLED and classify_error(error) in (
        ErrorSeverity.HIGH,
        ErrorSeverity.CRITICAL,
    ):
        sentry_sdk.capture_exception(error)


def to_storage_error(error: Exception, operation: str) -> StorageUnavailable:
    """Wrap a driver error into StorageUnavailable with logging"""
    severity = classify_error(error)
    logger.error(
        f"Storage failure in {operation}: {error!r}",
        exc_info=error,
        extra={"operation": operation, "severity": severity.value},
    )
    report_error(error)
    return StorageUnavailable(operation=operation)


# === DECORATORS ===


def translate_storage_errors(func: Callable[..., T]) -> Callable[..., T]:
    """Decorator for async repository methods

    Driver errors, connection errors and timeouts are re-raised as
    StorageUnavailable. Booking errors pass through untouched.

    Example:
        @staticmethod
        @translate_storage_errors
        async def get_service(user_id, service_id):
            ...
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except STORAGE_ERRORS as e:
            raise to_storage_error(e, func.__qualname__) from e

    return wrapper


# === CONTEXT MANAGERS ===


class storage_guard:
    """Context manager around a whole read-validate-write transaction

    Applies the transaction timeout and turns driver failures into
    StorageUnavailable. The driver rolls back on any exception raised
    inside, so a failed write never leaves partial state.

    Example:
        async with storage_guard("create_appointment", user_id=1):
            async with db_adapter.acquire() as conn:
                async with conn.transaction():
                    ...
    """

    def __init__(self, operation: str, timeout: Optional[float] = None, **context):
        self.operation = operation
        self.context = context
        self.timeout = timeout if timeout is not None else config.DB_TRANSACTION_TIMEOUT
        self.start_time = None
        self._timeout_cm = None

    async def __aenter__(self):
        self.start_time = time.monotonic()
        self._timeout_cm = asyncio.timeout(self.timeout)
        await self._timeout_cm.__aenter__()
        logger.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            await self._timeout_cm.__aexit__(exc_type, exc_val, exc_tb)
        except TimeoutError as e:
            logger.error(
                f"Transaction timeout ({self.timeout}s) in {self.operation}",
                extra=self.context,
            )
            raise StorageUnavailable(operation=self.operation, reason="timeout") from e

        duration = time.monotonic() - self.start_time

        if exc_type is None:
            logger.debug(
                f"Operation completed: {self.operation} ({duration:.2f}s)",
                extra={**self.context, "duration": duration},
            )
            return False

        if isinstance(exc_val, STORAGE_ERRORS):
            raise to_storage_error(exc_val, self.operation) from exc_val

        if isinstance(exc_val, BookingError):
            logger.info(
                f"Operation rejected: {self.operation}: {exc_val.code}",
                extra={**self.context, "duration": duration},
            )
            return False

        logger.error(
            f"Operation failed: {self.operation} ({duration:.2f}s): {exc_val}",
            exc_info=(exc_type, exc_val, exc_tb),
            extra={**self.context, "duration": duration},
        )
        report_error(exc_val)

        # Don't suppress exception
        return False


# === VALIDATION ERROR HANDLERS ===


def format_validation_error(error: ValidationError) -> str:
    """Format Pydantic validation error to user-friendly message

    Args:
        error: Pydantic ValidationError

    Returns:
        User-friendly error message
    """
    errors = error.errors()
    if not errors:
        return "Invalid data"

    # Get first error
    first_error = errors[0]
    field = " → ".join(str(loc) for loc in first_error["loc"])
    msg = first_error["msg"]

    if not field:
        return msg
    return f"Error in field '{field}': {msg}"


def to_invalid_input(error: ValidationError) -> InvalidInput:
    """Convert a pydantic ValidationError into InvalidInput"""
    return InvalidInput(format_validation_error(error), errors=error.errors(include_url=False))
