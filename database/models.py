"""Модели данных

Typed records for every persisted entity. Constructors reject states the
data model forbids, so a record that exists is a valid record.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from services.time_grid import add_minutes, format_time, parse_date, parse_time
from utils.error_handler import BookingError, InvalidRecord


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class PaymentMethod(str, Enum):
    MONEY = "money"
    CARD = "card"
    PIX = "pix"


class PriceMode(str, Enum):
    FIXED = "fixed"
    FREE = "free"
    RANGE = "range"


# Statuses that still hold their time interval
OCCUPYING_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.COMPLETED,
)

TERMINAL_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _to_date(value: Any) -> date:
    return value if isinstance(value, date) else parse_date(str(value))


def _normalize_time(value: Any) -> str:
    """'9:00:00' -> '09:00'"""
    return format_time(parse_time(str(value)))


def _invalid(entity: str, error: BookingError) -> InvalidRecord:
    return InvalidRecord(f"{entity}: {error.message}", **error.details)


@dataclass
class Profile:
    """Профессионал (владелец календаря)"""

    id: int
    full_name: str
    booking_slug: Optional[str] = None
    booking_enabled: bool = False

    @classmethod
    def from_row(cls, row: Dict) -> "Profile":
        return cls(
            id=row["id"],
            full_name=row["full_name"],
            booking_slug=row.get("booking_slug"),
            booking_enabled=bool(row.get("booking_enabled")),
        )


@dataclass
class Client:
    """Клиент"""

    id: Optional[int]
    user_id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    birth_date: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise InvalidRecord("Client name cannot be empty")

    @classmethod
    def from_row(cls, row: Dict) -> "Client":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            email=row.get("email"),
            phone=row.get("phone"),
            notes=row.get("notes"),
            birth_date=row.get("birth_date"),
        )


@dataclass
class Service:
    """Модель услуги/процедуры"""

    id: Optional[int]
    user_id: int
    name: str
    duration_minutes: int
    price_mode: PriceMode = PriceMode.FIXED
    suggested_price: Optional[Decimal] = None
    is_active: bool = True
    include_salon_percentage: bool = False
    salon_percentage: Optional[Decimal] = None
    deleted_at: Optional[str] = None

    def __post_init__(self):
        if int(self.duration_minutes) <= 0:
            raise InvalidRecord(
                "Service duration must be positive", duration_minutes=self.duration_minutes
            )
        self.duration_minutes = int(self.duration_minutes)
        self.price_mode = PriceMode(self.price_mode)
        self.suggested_price = _to_decimal(self.suggested_price)
        self.salon_percentage = _to_decimal(self.salon_percentage)

    @property
    def is_bookable(self) -> bool:
        return self.is_active and self.deleted_at is None

    def get_duration_display(self) -> str:
        """Отображение длительности в читаемом формате"""
        hours = self.duration_minutes // 60
        minutes = self.duration_minutes % 60

        if hours and minutes:
            return f"{hours}h {minutes}min"
        elif hours:
            return f"{hours}h"
        else:
            return f"{minutes}min"

    @classmethod
    def from_row(cls, row: Dict) -> "Service":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            duration_minutes=row["duration_minutes"],
            price_mode=row.get("price_mode") or PriceMode.FIXED,
            suggested_price=row.get("suggested_price"),
            is_active=bool(row["is_active"]),
            include_salon_percentage=bool(row.get("include_salon_percentage")),
            salon_percentage=row.get("salon_percentage"),
            deleted_at=row.get("deleted_at"),
        )


@dataclass
class WorkingHours:
    """Рабочее окно для дня недели (0 = воскресенье)"""

    id: Optional[int]
    user_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool = True

    def __post_init__(self):
        if not 0 <= int(self.day_of_week) <= 6:
            raise InvalidRecord("day_of_week must be 0-6", day_of_week=self.day_of_week)
        try:
            self.start_time = _normalize_time(self.start_time)
            self.end_time = _normalize_time(self.end_time)
        except BookingError as e:
            raise _invalid("WorkingHours", e) from e
        if self.is_active and parse_time(self.start_time) >= parse_time(self.end_time):
            raise InvalidRecord(
                "Working hours must start before they end",
                start_time=self.start_time,
                end_time=self.end_time,
            )

    @property
    def window(self) -> "TimeWindow":
        return TimeWindow(parse_time(self.start_time), parse_time(self.end_time))

    @classmethod
    def from_row(cls, row: Dict) -> "WorkingHours":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            day_of_week=row["day_of_week"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            is_active=bool(row["is_active"]),
        )


@dataclass
class BlockedSlot:
    """Блокировка: весь день (blocked_time=None) или одна точка времени"""

    id: Optional[int]
    user_id: int
    blocked_date: date
    blocked_time: Optional[str]
    is_full_day: bool
    reason: Optional[str] = None

    def __post_init__(self):
        try:
            self.blocked_date = _to_date(self.blocked_date)
            if self.blocked_time is not None:
                self.blocked_time = _normalize_time(self.blocked_time)
        except BookingError as e:
            raise _invalid("BlockedSlot", e) from e

        if self.is_full_day and self.blocked_time is not None:
            raise InvalidRecord(
                "A full-day block cannot have a blocked_time",
                blocked_time=self.blocked_time,
            )
        if not self.is_full_day and self.blocked_time is None:
            raise InvalidRecord("A point block requires a blocked_time")

    @classmethod
    def from_row(cls, row: Dict) -> "BlockedSlot":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            blocked_date=row["blocked_date"],
            blocked_time=row.get("blocked_time"),
            is_full_day=bool(row["is_full_day"]),
            reason=row.get("reason"),
        )


@dataclass
class BookingTimeSlot:
    """Время, предлагаемое на публичной странице записи"""

    id: Optional[int]
    user_id: int
    time_slot: str
    is_active: bool = True

    def __post_init__(self):
        try:
            self.time_slot = _normalize_time(self.time_slot)
        except BookingError as e:
            raise _invalid("BookingTimeSlot", e) from e

    @property
    def minutes(self) -> int:
        return parse_time(self.time_slot)

    @classmethod
    def from_row(cls, row: Dict) -> "BookingTimeSlot":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            time_slot=row["time_slot"],
            is_active=bool(row["is_active"]),
        )


@dataclass
class Appointment:
    """Запись клиента"""

    id: Optional[int]
    user_id: int
    client_id: int
    service_id: int
    appointment_date: date
    appointment_time: str
    price: Decimal
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    payment_method: Optional[PaymentMethod] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = None
    include_salon_percentage: bool = False
    salon_percentage: Optional[Decimal] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    deleted_at: Optional[str] = None

    def __post_init__(self):
        try:
            self.appointment_date = _to_date(self.appointment_date)
            self.appointment_time = _normalize_time(self.appointment_time)
        except BookingError as e:
            raise _invalid("Appointment", e) from e
        self.status = AppointmentStatus(self.status)
        self.price = _to_decimal(self.price) or Decimal("0")
        self.salon_percentage = _to_decimal(self.salon_percentage)
        if self.payment_method is not None:
            self.payment_method = PaymentMethod(self.payment_method)
        if self.payment_status is not None:
            self.payment_status = PaymentStatus(self.payment_status)
        if self.price < 0:
            raise InvalidRecord("Price cannot be negative", price=str(self.price))

    @property
    def start_minutes(self) -> int:
        return parse_time(self.appointment_time)

    @property
    def occupies_time(self) -> bool:
        return self.status in OCCUPYING_STATUSES and self.deleted_at is None

    @classmethod
    def from_row(cls, row: Dict) -> "Appointment":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            client_id=row["client_id"],
            service_id=row["service_id"],
            appointment_date=row["appointment_date"],
            appointment_time=row["appointment_time"],
            price=row["price"],
            status=row["status"],
            payment_method=row.get("payment_method"),
            payment_status=row.get("payment_status"),
            notes=row.get("notes"),
            include_salon_percentage=bool(row.get("include_salon_percentage")),
            salon_percentage=row.get("salon_percentage"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            deleted_at=row.get("deleted_at"),
        )


# === VALUE TYPES ===


@dataclass(frozen=True)
class TimeWindow:
    """Half-open working window [start, end) in minutes since midnight"""

    start: int
    end: int

    def contains(self, minutes: int) -> bool:
        return self.start <= minutes < self.end

    def as_strings(self) -> tuple:
        return format_time(self.start), format_time(self.end)


@dataclass
class DayBlocks:
    """Блокировки на конкретную дату"""

    full_day: bool = False
    points: Set[str] = field(default_factory=set)
    reasons: Dict[str, List[str]] = field(default_factory=dict)

    def is_blocked(self, time_str: str) -> bool:
        return self.full_day or time_str in self.points


@dataclass(frozen=True)
class OccupiedInterval:
    """[start, end) занятый записью"""

    start: int
    end: int
    appointment_id: int
    status: AppointmentStatus

    @classmethod
    def build(cls, start: int, duration: int, appointment_id: int, status) -> "OccupiedInterval":
        return cls(start, add_minutes(start, duration), appointment_id, AppointmentStatus(status))

    def as_strings(self) -> tuple:
        return format_time(self.start), format_time(self.end)


class AvailabilityReason(str, Enum):
    AVAILABLE = "available"
    NO_FREE_SLOTS = "no_free_slots"
    FULL_DAY_BLOCKED = "full_day_blocked"
    CLOSED = "closed"
    NO_CATALOG = "no_catalog"
    PAST_DATE = "past_date"
    ERROR = "error"


@dataclass
class AvailabilityResult:
    """Результат запроса свободных слотов

    ``slots`` is empty whenever ``reason`` is not AVAILABLE; ``error`` is
    set only for reason ERROR.
    """

    date: Optional[date]
    service_id: Any
    slots: List[str] = field(default_factory=list)
    reason: AvailabilityReason = AvailabilityReason.AVAILABLE
    error: Optional[BookingError] = None

    @property
    def is_error(self) -> bool:
        return self.reason == AvailabilityReason.ERROR


class ChangeKind(str, Enum):
    CREATED = "created"
    RESCHEDULED = "rescheduled"
    UPDATED = "updated"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AppointmentChange:
    """Delta of the occupied set produced by one committed mutation"""

    kind: ChangeKind
    appointment: Appointment
    freed: Optional[OccupiedInterval] = None
    freed_date: Optional[date] = None
    occupied: Optional[OccupiedInterval] = None
    occupied_date: Optional[date] = None
