"""Тесты моделей: конструкторы отклоняют недопустимые состояния"""

from datetime import date
from decimal import Decimal

import pytest

from database.models import (
    Appointment,
    AppointmentStatus,
    BlockedSlot,
    OccupiedInterval,
    Service,
    TimeWindow,
    WorkingHours,
)
from utils.error_handler import InvalidRecord


class TestBlockedSlot:
    def test_full_day_with_time_rejected(self):
        with pytest.raises(InvalidRecord):
            BlockedSlot(None, 1, date(2030, 1, 7), "10:00", is_full_day=True)

    def test_point_without_time_rejected(self):
        with pytest.raises(InvalidRecord):
            BlockedSlot(None, 1, date(2030, 1, 7), None, is_full_day=False)

    def test_from_row_normalizes(self):
        block = BlockedSlot.from_row(
            {
                "id": 3,
                "user_id": 1,
                "blocked_date": "2030-01-07",
                "blocked_time": "9:00:00",
                "is_full_day": 0,
                "reason": "Dentista",
            }
        )
        assert block.blocked_date == date(2030, 1, 7)
        assert block.blocked_time == "09:00"
        assert block.is_full_day is False

    def test_bad_time_is_invalid_record(self):
        with pytest.raises(InvalidRecord):
            BlockedSlot(None, 1, "2030-01-07", "25:00", is_full_day=False)


class TestService:
    def test_duration_must_be_positive(self):
        with pytest.raises(InvalidRecord):
            Service(id=None, user_id=1, name="X", duration_minutes=0)

    def test_price_to_decimal(self):
        service = Service(id=1, user_id=1, name="X", duration_minutes=60, suggested_price="120.50")
        assert service.suggested_price == Decimal("120.50")

    def test_soft_deleted_not_bookable(self):
        service = Service(id=1, user_id=1, name="X", duration_minutes=60, deleted_at="2030-01-01")
        assert not service.is_bookable

    @pytest.mark.parametrize(
        "minutes, expected", [(30, "30min"), (60, "1h"), (90, "1h 30min")]
    )
    def test_duration_display(self, minutes, expected):
        service = Service(id=1, user_id=1, name="X", duration_minutes=minutes)
        assert service.get_duration_display() == expected


class TestWorkingHours:
    def test_active_requires_start_before_end(self):
        with pytest.raises(InvalidRecord):
            WorkingHours(None, 1, 1, "12:00", "09:00", is_active=True)

    def test_inactive_range_not_checked(self):
        hours = WorkingHours(None, 1, 1, "12:00", "09:00", is_active=False)
        assert not hours.is_active

    def test_day_of_week_range(self):
        with pytest.raises(InvalidRecord):
            WorkingHours(None, 1, 7, "09:00", "18:00")

    def test_window(self):
        hours = WorkingHours(None, 1, 1, "09:00", "12:00")
        assert hours.window == TimeWindow(540, 720)
        assert hours.window.contains(540)
        assert not hours.window.contains(720)


class TestAppointment:
    def test_negative_price_rejected(self):
        with pytest.raises(InvalidRecord):
            Appointment(None, 1, 1, 1, date(2030, 1, 7), "10:00", price=Decimal("-1"))

    def test_from_row(self):
        appointment = Appointment.from_row(
            {
                "id": 5,
                "user_id": 1,
                "client_id": 2,
                "service_id": 3,
                "appointment_date": "2030-01-07",
                "appointment_time": "10:00:00",
                "price": "80.00",
                "status": "confirmed",
                "payment_method": None,
                "payment_status": None,
                "include_salon_percentage": 0,
            }
        )
        assert appointment.status == AppointmentStatus.CONFIRMED
        assert appointment.appointment_time == "10:00"
        assert appointment.start_minutes == 600
        assert appointment.price == Decimal("80.00")
        assert appointment.occupies_time

    def test_cancelled_does_not_occupy(self):
        appointment = Appointment(
            1, 1, 1, 1, date(2030, 1, 7), "10:00", price=0, status="cancelled"
        )
        assert not appointment.occupies_time


class TestOccupiedInterval:
    def test_build(self):
        interval = OccupiedInterval.build(540, 90, 7, "scheduled")
        assert (interval.start, interval.end) == (540, 630)
        assert interval.as_strings() == ("09:00", "10:30")
