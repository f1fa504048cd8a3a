"""Публичная запись по ссылке профессионала

Unauthenticated flow keyed by the professional's booking slug. The
profile's booking_enabled flag is read once per request.
"""

import logging
from typing import List

from pydantic import ValidationError

from database.models import Appointment, AvailabilityReason, AvailabilityResult, Profile, Service
from database.repositories.profile_repository import ProfileRepository
from database.repositories.service_repository import ServiceRepository
from services.appointment_service import AppointmentMutator
from services.availability_service import AvailabilityResolver
from services.time_grid import parse_date, parse_time
from utils.error_handler import (
    BookingDisabled,
    BookingError,
    InvalidInput,
    ProfessionalNotFound,
    SlotNotOffered,
    to_invalid_input,
)
from utils.helpers import today_local
from validation.schemas import PublicBookingInput

logger = logging.getLogger(__name__)


class PublicBookingService:
    """Страница записи для клиентов"""

    async def get_professional(self, slug: str) -> Profile:
        """Профиль по ссылке

        Raises:
            ProfessionalNotFound: unknown slug
            BookingDisabled: the professional turned online booking off
        """
        profile = await ProfileRepository.get_by_slug(slug)
        if profile is None:
            raise ProfessionalNotFound(slug=slug)
        if not profile.booking_enabled:
            raise BookingDisabled(slug=slug)
        return profile

    async def list_services(self, slug: str) -> List[Service]:
        """Активные услуги профессионала"""
        profile = await self.get_professional(slug)
        return await ServiceRepository.get_all_services(profile.id, active_only=True)

    async def check_availability(self, slug: str, day, service_id: int) -> AvailabilityResult:
        """Свободные времена на дату; прошедшие даты не предлагаются

        Never raises for expected problems: unknown slug, disabled booking
        and storage failures come back as reason ERROR.
        """
        try:
            profile = await self.get_professional(slug)
            parsed = parse_date(day)
        except BookingError as e:
            return AvailabilityResult(
                date=None, service_id=service_id, reason=AvailabilityReason.ERROR, error=e
            )

        if parsed < today_local():
            return AvailabilityResult(
                date=parsed, service_id=service_id, reason=AvailabilityReason.PAST_DATE
            )

        return await AvailabilityResolver(profile.id).check_availability(parsed, service_id)

    async def book(self, slug: str, request: dict) -> Appointment:
        """Записаться: новый клиент и запись одной транзакцией

        Args:
            request: name, email, phone, notes, service_id,
                appointment_date, appointment_time

        Raises:
            ProfessionalNotFound, BookingDisabled, InvalidTimeFormat,
            InvalidInput, ServiceNotFound, ServiceInactive,
            SlotNotOffered (time not currently offered), SlotConflict
            (taken between the availability read and the write),
            StorageUnavailable
        """
        profile = await self.get_professional(slug)

        if isinstance(request.get("appointment_time"), str):
            parse_time(request["appointment_time"])
        try:
            data = PublicBookingInput(**request)
        except ValidationError as e:
            raise to_invalid_input(e) from e

        if data.appointment_date < today_local():
            raise InvalidInput(
                "Cannot book a date in the past",
                date=data.appointment_date.isoformat(),
            )

        resolver = AvailabilityResolver(profile.id)
        service = await resolver.get_service(data.service_id)
        offered = await resolver.get_available_slots(data.appointment_date, service.id)
        if data.appointment_time not in offered:
            logger.info(
                f"Public booking rejected for {slug}: {data.appointment_date} "
                f"{data.appointment_time} not offered"
            )
            raise SlotNotOffered(
                date=data.appointment_date.isoformat(), time=data.appointment_time
            )

        appointment = await AppointmentMutator(profile.id).create_with_client(
            data.appointment_date,
            data.appointment_time,
            service.id,
            client={
                "name": data.name,
                "email": data.email,
                "phone": data.phone,
            },
            price=service.suggested_price or 0,
            notes=data.notes,
        )
        logger.info(f"✅ Public booking for {slug}: appointment {appointment.id}")
        return appointment
