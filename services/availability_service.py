"""Сервис расчёта свободных слотов

Composes working hours, blocks, existing appointments and the booking
catalog into the list of times a service can be booked at.
"""

import logging
from datetime import date
from typing import List, Optional, Sequence, Tuple

import config
from database.models import (
    AvailabilityReason,
    AvailabilityResult,
    DayBlocks,
    OccupiedInterval,
    Service,
    TimeWindow,
)
from database.repositories.booking_time_slot_repository import BookingTimeSlotRepository
from database.repositories.service_repository import ServiceRepository
from services.appointment_index import AppointmentIndex
from services.block_registry import BlockRegistry
from services.time_grid import add_minutes, format_time, intervals_overlap, parse_date
from services.working_hours_policy import WorkingHoursPolicy
from utils.error_handler import (
    BookingError,
    OutsideWorkingHours,
    ServiceInactive,
    ServiceNotFound,
    SlotBlocked,
    SlotConflict,
)

logger = logging.getLogger(__name__)


def find_conflict(
    start: int, end: int, occupied: Sequence[OccupiedInterval]
) -> Optional[SlotConflict]:
    """SlotConflict for the first occupied interval overlapping [start, end)"""
    for interval in occupied:
        if intervals_overlap(start, end, interval.start, interval.end):
            occupied_start, occupied_end = interval.as_strings()
            return SlotConflict(
                time=format_time(start),
                conflicting_appointment_id=interval.appointment_id,
                occupied_start=occupied_start,
                occupied_end=occupied_end,
            )
    return None


def find_slot_rejection(
    start: int,
    duration: int,
    window: Optional[TimeWindow],
    blocks: DayBlocks,
    occupied: Sequence[OccupiedInterval],
    require_full_fit: bool = False,
) -> Optional[BookingError]:
    """Проверить один слот; None если слот можно бронировать

    Used by the resolver to filter candidates and by the mutator to
    re-validate at write time.
    """
    time_str = format_time(start)

    if blocks.full_day:
        return SlotBlocked("The whole day is blocked", time=time_str, full_day=True)

    if window is None:
        return OutsideWorkingHours("Closed on this day", time=time_str, closed=True)

    window_start, window_end = window.as_strings()
    if not window.contains(start):
        return OutsideWorkingHours(time=time_str, window_start=window_start, window_end=window_end)

    end = add_minutes(start, duration)
    if require_full_fit and end > window.end:
        return OutsideWorkingHours(
            "Service would run past closing time",
            time=time_str,
            window_start=window_start,
            window_end=window_end,
        )

    if time_str in blocks.points:
        return SlotBlocked(time=time_str, reasons=blocks.reasons.get(time_str, []))

    return find_conflict(start, end, occupied)


class AvailabilityResolver:
    """Расчёт свободных слотов для даты и услуги"""

    def __init__(self, user_id: int, require_full_fit: Optional[bool] = None):
        self.user_id = user_id
        self.require_full_fit = (
            config.REQUIRE_SERVICE_FITS_WINDOW if require_full_fit is None else require_full_fit
        )
        self.working_hours = WorkingHoursPolicy(user_id)
        self.blocks = BlockRegistry(user_id)
        self.index = AppointmentIndex(user_id)

    async def get_service(self, service_id: int, conn=None) -> Service:
        """Услуга, которую можно бронировать

        Raises:
            ServiceNotFound: no such service for this professional
            ServiceInactive: service deactivated or deleted
        """
        service = await ServiceRepository.get_service(self.user_id, service_id, conn=conn)
        if service is None:
            raise ServiceNotFound(service_id=service_id)
        if not service.is_bookable:
            raise ServiceInactive(service_id=service_id)
        return service

    async def _resolve(self, day: date, service_id: int) -> Tuple[List[str], AvailabilityReason]:
        service = await self.get_service(service_id)

        blocks = await self.blocks.get_blocks(day)
        if blocks.full_day:
            return [], AvailabilityReason.FULL_DAY_BLOCKED

        window = await self.working_hours.get_window(day)
        if window is None:
            return [], AvailabilityReason.CLOSED

        # No catalog means "not bookable online"; working hours are not
        # used to invent candidates
        catalog = await BookingTimeSlotRepository.list_active(self.user_id)
        if not catalog:
            return [], AvailabilityReason.NO_CATALOG

        occupied = await self.index.get_occupied(day)

        slots = [
            slot.time_slot
            for slot in catalog
            if find_slot_rejection(
                slot.minutes,
                service.duration_minutes,
                window,
                blocks,
                occupied,
                self.require_full_fit,
            )
            is None
        ]
        if not slots:
            return [], AvailabilityReason.NO_FREE_SLOTS
        return slots, AvailabilityReason.AVAILABLE

    async def get_available_slots(self, day, service_id: int) -> List[str]:
        """Свободные слоты каталога по возрастанию

        Raises:
            InvalidDateFormat, ServiceNotFound, ServiceInactive,
            StorageUnavailable
        """
        slots, _ = await self._resolve(parse_date(day), service_id)
        return slots

    async def check_availability(self, day, service_id: int) -> AvailabilityResult:
        """Как get_available_slots, но без исключений

        Errors come back as reason ERROR with the error attached, so the
        caller can tell "closed" from "something failed".
        """
        try:
            parsed = parse_date(day)
        except BookingError as e:
            return AvailabilityResult(
                date=None, service_id=service_id, reason=AvailabilityReason.ERROR, error=e
            )

        try:
            slots, reason = await self._resolve(parsed, service_id)
        except BookingError as e:
            logger.warning(
                f"Availability check failed for user {self.user_id} "
                f"on {parsed} (service {service_id}): {e.code}"
            )
            return AvailabilityResult(
                date=parsed, service_id=service_id, reason=AvailabilityReason.ERROR, error=e
            )

        return AvailabilityResult(date=parsed, service_id=service_id, slots=slots, reason=reason)
