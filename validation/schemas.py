"""Pydantic schemas for input validation

This module provides input validation using Pydantic v2.
Every mutation validates its input before touching storage.
"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from database.models import PaymentMethod, PaymentStatus, PriceMode
from services.time_grid import format_time, parse_time
from utils.error_handler import InvalidTimeFormat

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalize_time(v: str) -> str:
    """'9:00:00' -> '09:00' as a pydantic-friendly ValueError"""
    try:
        return format_time(parse_time(v))
    except InvalidTimeFormat as e:
        raise ValueError(e.message) from e


class AppointmentCreateInput(BaseModel):
    """Validation for creating an appointment"""

    client_id: Optional[int] = Field(None, gt=0, description="Client ID (None until created)")
    service_id: int = Field(..., gt=0, description="Service ID")
    appointment_date: date = Field(..., description="Appointment date")
    appointment_time: str = Field(..., description="Start time (HH:MM)")
    price: Decimal = Field(default=Decimal("0"), ge=0, description="Price")
    notes: Optional[str] = Field(None, max_length=1000, description="Notes")
    include_salon_percentage: bool = Field(default=False)
    salon_percentage: Optional[Decimal] = Field(None, ge=0, le=100)

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _normalize_time(v)

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = v.strip()
        return v or None


class RescheduleInput(BaseModel):
    """Validation for moving an appointment"""

    appointment_date: date = Field(..., description="New date")
    appointment_time: str = Field(..., description="New start time (HH:MM)")

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _normalize_time(v)


class AppointmentUpdateInput(BaseModel):
    """Validation for editing appointment details"""

    service_id: Optional[int] = Field(None, gt=0)
    price: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1000)


class CompletionInput(BaseModel):
    """Validation for completing an appointment

    Without a payment method the payment stays pending; with one it is
    paid. An explicit payment_status must agree with that rule.
    """

    final_price: Decimal = Field(..., ge=0, description="Final charged price")
    payment_method: Optional[PaymentMethod] = Field(None, description="money/card/pix")
    payment_status: Optional[PaymentStatus] = Field(None, description="pending/paid")

    @model_validator(mode="after")
    def validate_payment(self) -> "CompletionInput":
        expected = PaymentStatus.PENDING if self.payment_method is None else PaymentStatus.PAID
        if self.payment_status is None:
            self.payment_status = expected
        elif self.payment_status != expected:
            if self.payment_method is None:
                raise ValueError("Payment status must be 'pending' without a payment method")
            raise ValueError("Payment status must be 'paid' when a payment method is set")
        return self


class BlockInput(BaseModel):
    """Validation for blocking a date or a time point"""

    blocked_date: date = Field(..., description="Date to block")
    blocked_time: Optional[str] = Field(None, description="Time to block; None = full day")
    reason: Optional[str] = Field(None, max_length=500, description="Block reason")

    @field_validator("blocked_time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_time(v) if v is not None else None

    @field_validator("reason")
    @classmethod
    def sanitize_reason(cls, v: Optional[str]) -> Optional[str]:
        """Sanitize reason text"""
        if v:
            v = re.sub(r"\s+", " ", v.strip())
        return v or None


class BlockPeriodInput(BaseModel):
    """Validation for blocking a period of a day hour by hour"""

    blocked_date: date = Field(..., description="Date to block")
    start_time: str = Field(..., description="First blocked hour")
    end_time: str = Field(..., description="End of the period (exclusive)")
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _normalize_time(v)

    @field_validator("reason")
    @classmethod
    def sanitize_reason(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = re.sub(r"\s+", " ", v.strip())
        return v or None

    @model_validator(mode="after")
    def validate_range(self) -> "BlockPeriodInput":
        """Validate start hour < end hour; minutes are dropped"""
        if parse_time(self.start_time) // 60 >= parse_time(self.end_time) // 60:
            raise ValueError("Start hour must be before end hour")
        return self


class WorkingHoursEntry(BaseModel):
    """One weekday of the working week (0 = Sunday)"""

    day_of_week: int = Field(..., ge=0, le=6)
    start_time: str = Field(default="09:00")
    end_time: str = Field(default="18:00")
    is_active: bool = Field(default=False)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _normalize_time(v)

    @model_validator(mode="after")
    def validate_range(self) -> "WorkingHoursEntry":
        if self.is_active and parse_time(self.start_time) >= parse_time(self.end_time):
            raise ValueError("Start time must be before end time")
        return self


class WorkingWeekInput(BaseModel):
    """Validation for saving the whole working week"""

    days: List[WorkingHoursEntry] = Field(..., max_length=7)

    @field_validator("days")
    @classmethod
    def validate_unique_days(cls, v: List[WorkingHoursEntry]) -> List[WorkingHoursEntry]:
        seen = [entry.day_of_week for entry in v]
        if len(seen) != len(set(seen)):
            raise ValueError("Each day of week may appear only once")
        return sorted(v, key=lambda entry: entry.day_of_week)


class CatalogInput(BaseModel):
    """Validation for the public booking time catalog"""

    times: List[str] = Field(default_factory=list, max_length=24 * 60)

    @field_validator("times")
    @classmethod
    def normalize_times(cls, v: List[str]) -> List[str]:
        """Normalize, de-duplicate and sort"""
        normalized = {_normalize_time(item) for item in v}
        return sorted(normalized, key=parse_time)


def _clean_service_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Service name cannot be empty")
    # Remove excessive whitespace
    return re.sub(r"\s+", " ", v)


class ServiceInput(BaseModel):
    """Validation for service creation"""

    name: str = Field(..., min_length=1, max_length=100, description="Service name")
    duration_minutes: int = Field(..., gt=0, le=24 * 60, description="Duration in minutes")
    price_mode: PriceMode = Field(default=PriceMode.FIXED)
    suggested_price: Optional[Decimal] = Field(None, ge=0)
    include_salon_percentage: bool = Field(default=False)
    salon_percentage: Optional[Decimal] = Field(None, ge=0, le=100)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Sanitize service name"""
        return _clean_service_name(v)


class ServiceUpdateInput(BaseModel):
    """Partial service update: only the given fields are checked"""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    price_mode: Optional[PriceMode] = None
    suggested_price: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _clean_service_name(v)


class ClientInput(BaseModel):
    """Validation for client contact data"""

    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = sanitize_input(v, max_length=100)
        if not v:
            raise ValueError("Name cannot be empty")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = v.strip()
            if not _EMAIL_RE.match(v):
                raise ValueError("Invalid email format")
        return v or None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        if v:
            v = v.strip()
            if not re.match(r"^[\d\s()+\-]{8,30}$", v):
                raise ValueError("Invalid phone format")
        return v or None


class PublicBookingInput(ClientInput):
    """Validation for a booking made on the public page"""

    service_id: int = Field(..., gt=0)
    appointment_date: date = Field(...)
    appointment_time: str = Field(...)

    @field_validator("appointment_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _normalize_time(v)


# === VALIDATION HELPERS ===


def sanitize_input(text: str, max_length: int = 500) -> str:
    """Sanitize user input text

    Raises:
        ValueError: If text is too long
    """
    if not text:
        return ""

    # Remove control characters
    text = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", text)
    # Normalize whitespace
    text = re.sub(r"\s+", " ", text).strip()

    if len(text) > max_length:
        raise ValueError(f"Text too long (max {max_length} characters)")

    return text
