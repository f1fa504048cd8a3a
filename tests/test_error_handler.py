"""Тесты обработки ошибок"""

import asyncio
from unittest.mock import patch

import aiosqlite
import pytest
from pydantic import ValidationError

import config
from utils.error_handler import (
    BookingError,
    ErrorSeverity,
    InvalidInput,
    RetryableError,
    SlotConflict,
    StorageUnavailable,
    classify_error,
    format_validation_error,
    report_error,
    storage_guard,
    to_invalid_input,
    translate_storage_errors,
)
from validation.schemas import ClientInput


class TestBookingError:

    def test_to_dict(self):
        error = SlotConflict(time="10:00", conflicting_appointment_id=7)
        assert error.to_dict() == {
            "code": "SLOT_CONFLICT",
            "message": "Requested time overlaps another appointment",
            "time": "10:00",
            "conflicting_appointment_id": 7,
        }

    def test_custom_message(self):
        error = InvalidInput("Name is required", field="name")
        assert str(error) == "Name is required"
        assert error.details == {"field": "name"}

    def test_storage_unavailable_is_retryable(self):
        error = StorageUnavailable(operation="create_appointment")
        assert isinstance(error, RetryableError)
        assert isinstance(error, BookingError)

    def test_classify(self):
        assert classify_error(SlotConflict()) == ErrorSeverity.LOW
        assert classify_error(StorageUnavailable()) == ErrorSeverity.HIGH
        assert classify_error(aiosqlite.OperationalError("locked")) == ErrorSeverity.MEDIUM
        assert classify_error(ValueError("boom")) == ErrorSeverity.CRITICAL


class TestTranslateStorageErrors:

    @pytest.mark.asyncio
    async def test_driver_error_translated(self):
        @translate_storage_errors
        async def failing():
            raise aiosqlite.OperationalError("disk I/O error")

        with pytest.raises(StorageUnavailable) as exc:
            await failing()
        assert "failing" in exc.value.details["operation"]

    @pytest.mark.asyncio
    async def test_booking_error_passes_through(self):
        @translate_storage_errors
        async def rejecting():
            raise SlotConflict(time="10:00")

        with pytest.raises(SlotConflict):
            await rejecting()


class TestStorageGuard:

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(StorageUnavailable) as exc:
            async with storage_guard("slow_operation", timeout=0.01):
                await asyncio.sleep(1)
        assert exc.value.details == {"operation": "slow_operation", "reason": "timeout"}

    @pytest.mark.asyncio
    async def test_driver_error(self):
        with pytest.raises(StorageUnavailable):
            async with storage_guard("write", user_id=1):
                raise aiosqlite.OperationalError("database is locked")

    @pytest.mark.asyncio
    async def test_booking_error_untouched(self):
        with pytest.raises(SlotConflict):
            async with storage_guard("write", user_id=1):
                raise SlotConflict(time="10:00")

    @pytest.mark.asyncio
    async def test_success(self):
        async with storage_guard("write", user_id=1) as guard:
            pass
        assert guard.operation == "write"


class TestReportError:

    def test_disabled(self):
        with patch.object(config, "SENTRY_ENABLED", False), patch(
            "utils.error_handler.sentry_sdk"
        ) as mock_sentry:
            report_error(RuntimeError("boom"))
        mock_sentry.capture_exception.assert_not_called()

    def test_high_severity_reported(self):
        error = StorageUnavailable()
        with patch.object(config, "SENTRY_ENABLED", True), patch(
            "utils.error_handler.sentry_sdk"
        ) as mock_sentry:
            report_error(error)
        mock_sentry.capture_exception.assert_called_once_with(error)

    def test_expected_errors_not_reported(self):
        with patch.object(config, "SENTRY_ENABLED", True), patch(
            "utils.error_handler.sentry_sdk"
        ) as mock_sentry:
            report_error(SlotConflict())
        mock_sentry.capture_exception.assert_not_called()


class TestValidationErrors:

    def test_format(self):
        with pytest.raises(ValidationError) as exc:
            ClientInput(name="   ")
        message = format_validation_error(exc.value)
        assert message.startswith("Error in field 'name'")

    def test_to_invalid_input(self):
        with pytest.raises(ValidationError) as exc:
            ClientInput(name="Ana", email="no-at-sign")
        error = to_invalid_input(exc.value)
        assert isinstance(error, InvalidInput)
        assert error.details["errors"][0]["loc"] == ("email",)
