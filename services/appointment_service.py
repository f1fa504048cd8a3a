"""Сервис изменения записей

Every mutation re-validates the conflict rules inside the same
transaction that writes, after taking the per-day lock. Two writers
racing for one slot: the first commits, the second re-reads the
occupied set, sees the first row and gets SlotConflict. Nothing is
retried automatically.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Set

from pydantic import ValidationError

from database.db_adapter import db_adapter
from database.models import (
    Appointment,
    AppointmentChange,
    AppointmentStatus,
    ChangeKind,
    Client,
    OCCUPYING_STATUSES,
    OccupiedInterval,
    Service,
    TERMINAL_STATUSES,
)
from database.repositories.appointment_repository import AppointmentRepository
from database.repositories.client_repository import ClientRepository
from database.repositories.service_repository import ServiceRepository
from services.availability_service import (
    AvailabilityResolver,
    find_conflict,
    find_slot_rejection,
)
from services.time_grid import add_minutes, format_date, parse_date, parse_time
from utils.error_handler import (
    AppointmentNotFound,
    ClientNotFound,
    InvalidTransition,
    ServiceNotFound,
    report_error,
    storage_guard,
    to_invalid_input,
)
from validation.schemas import (
    AppointmentCreateInput,
    AppointmentUpdateInput,
    ClientInput,
    CompletionInput,
    RescheduleInput,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[AppointmentChange], Awaitable[None]]

ALLOWED_TRANSITIONS: Dict[AppointmentStatus, Set[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}


def _interval(appointment: Appointment, service: Optional[Service]) -> Optional[OccupiedInterval]:
    if service is None or not appointment.occupies_time:
        return None
    return OccupiedInterval.build(
        appointment.start_minutes,
        service.duration_minutes,
        appointment.id,
        appointment.status,
    )


class AppointmentMutator:
    """Создание и изменение записей с проверкой конфликтов при записи"""

    def __init__(self, user_id: int, require_full_fit: Optional[bool] = None):
        self.user_id = user_id
        self.availability = AvailabilityResolver(user_id, require_full_fit)
        self._listeners: List[ChangeListener] = []

    # === ПОДПИСКА НА ИЗМЕНЕНИЯ ===

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Подписаться на изменения занятости

        The listener is awaited after each committed mutation. Returns a
        function that removes the subscription.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self, change: AppointmentChange) -> None:
        for listener in list(self._listeners):
            try:
                await listener(change)
            except Exception as e:
                # The write is already committed; a failing listener must
                # not turn it into an error for the caller
                logger.error(
                    f"Change listener failed for appointment {change.appointment.id} "
                    f"({change.kind.value}): {e}",
                    exc_info=True,
                )
                report_error(e)

    # === ТРАНЗАКЦИИ ===

    @asynccontextmanager
    async def _transaction(self, operation: str, **context):
        async with storage_guard(operation, user_id=self.user_id, **context):
            async with db_adapter.acquire() as conn:
                async with conn.transaction():
                    yield conn

    async def _lock_day(self, conn, day: date) -> None:
        await conn.lock_scope(f"{self.user_id}:{format_date(day)}")

    async def _load(self, conn, appointment_id: int) -> Appointment:
        appointment = await AppointmentRepository.get_by_id(
            self.user_id, appointment_id, conn=conn, for_update=True
        )
        if appointment is None:
            raise AppointmentNotFound(appointment_id=appointment_id)
        return appointment

    async def _load_locked_day(self, conn, appointment_id: int) -> Appointment:
        """Запись, перечитанная под блокировкой своего дня

        The day is only known after a first read; a concurrent reschedule
        may move the row before the lock is taken, so re-read until the
        locked day matches.
        """
        appointment = await AppointmentRepository.get_by_id(
            self.user_id, appointment_id, conn=conn
        )
        if appointment is None:
            raise AppointmentNotFound(appointment_id=appointment_id)
        locked = None
        while locked != appointment.appointment_date:
            locked = appointment.appointment_date
            await self._lock_day(conn, locked)
            appointment = await self._load(conn, appointment_id)
        return appointment

    async def _load_service(self, conn, service_id: int) -> Service:
        """Услуга записи (в том числе уже деактивированная)"""
        service = await ServiceRepository.get_service(self.user_id, service_id, conn=conn)
        if service is None:
            raise ServiceNotFound(service_id=service_id)
        return service

    async def _validate_slot(
        self,
        conn,
        day: date,
        start: int,
        duration: int,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Повторная проверка слота внутри транзакции записи"""
        blocks = await self.availability.blocks.get_blocks(day, conn=conn)
        window = await self.availability.working_hours.get_window(day, conn=conn)
        occupied = await self.availability.index.get_occupied(
            day, conn=conn, exclude_id=exclude_id
        )
        rejection = find_slot_rejection(
            start, duration, window, blocks, occupied, self.availability.require_full_fit
        )
        if rejection is not None:
            rejection.details.setdefault("date", format_date(day))
            logger.info(
                f"Write rejected for user {self.user_id} on {day} at "
                f"{rejection.details.get('time')}: {rejection.code}"
            )
            raise rejection

    async def _insert_validated(self, conn, data: AppointmentCreateInput) -> tuple:
        service = await self.availability.get_service(data.service_id, conn=conn)
        await self._validate_slot(
            conn,
            data.appointment_date,
            parse_time(data.appointment_time),
            service.duration_minutes,
        )
        appointment = Appointment(
            id=None,
            user_id=self.user_id,
            client_id=data.client_id,
            service_id=service.id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            price=data.price,
            status=AppointmentStatus.SCHEDULED,
            notes=data.notes,
            include_salon_percentage=data.include_salon_percentage,
            salon_percentage=data.salon_percentage,
        )
        await AppointmentRepository.insert(appointment, conn)
        return appointment, service

    @staticmethod
    def _create_input(day, time: str, service_id: int, client_id: Optional[int], **fields):
        # Malformed date/time fail with their own error before any lookup
        parse_time(time)
        appointment_date = parse_date(day)
        try:
            return AppointmentCreateInput(
                client_id=client_id,
                service_id=service_id,
                appointment_date=appointment_date,
                appointment_time=time,
                **fields,
            )
        except ValidationError as e:
            raise to_invalid_input(e) from e

    # === СОЗДАНИЕ ===

    async def create(
        self,
        day,
        time: str,
        service_id: int,
        client_id: int,
        price: Decimal = Decimal("0"),
        notes: Optional[str] = None,
        include_salon_percentage: bool = False,
        salon_percentage: Optional[Decimal] = None,
    ) -> Appointment:
        """Создать запись

        Raises:
            InvalidTimeFormat, InvalidDateFormat, InvalidInput,
            ServiceNotFound, ServiceInactive, ClientNotFound,
            SlotBlocked, OutsideWorkingHours, SlotConflict,
            StorageUnavailable
        """
        data = self._create_input(
            day,
            time,
            service_id,
            client_id,
            price=price,
            notes=notes,
            include_salon_percentage=include_salon_percentage,
            salon_percentage=salon_percentage,
        )

        async with self._transaction(
            "create_appointment", date=format_date(data.appointment_date), time=data.appointment_time
        ) as conn:
            await self._lock_day(conn, data.appointment_date)
            client = await ClientRepository.get_client(self.user_id, client_id, conn=conn)
            if client is None:
                raise ClientNotFound(client_id=client_id)
            appointment, service = await self._insert_validated(conn, data)

        logger.info(
            f"✅ Appointment created: {appointment.id} for user {self.user_id} "
            f"on {appointment.appointment_date} {appointment.appointment_time}"
        )
        await self._notify(
            AppointmentChange(
                kind=ChangeKind.CREATED,
                appointment=appointment,
                occupied=_interval(appointment, service),
                occupied_date=appointment.appointment_date,
            )
        )
        return appointment

    async def create_with_client(
        self,
        day,
        time: str,
        service_id: int,
        client: dict,
        price: Decimal = Decimal("0"),
        notes: Optional[str] = None,
    ) -> Appointment:
        """Создать клиента и запись одной транзакцией

        A rejected slot rolls back the client insert too.

        Args:
            client: dict with name and optional email, phone, notes
        """
        try:
            contact = ClientInput(**client)
        except ValidationError as e:
            raise to_invalid_input(e) from e

        # client_id is filled in after the client row exists
        data = self._create_input(day, time, service_id, None, price=price, notes=notes)

        async with self._transaction(
            "create_appointment_with_client",
            date=format_date(data.appointment_date),
            time=data.appointment_time,
        ) as conn:
            await self._lock_day(conn, data.appointment_date)
            new_client = await ClientRepository.create_client(
                Client(
                    id=None,
                    user_id=self.user_id,
                    name=contact.name,
                    email=contact.email,
                    phone=contact.phone,
                    notes=contact.notes,
                ),
                conn=conn,
            )
            data.client_id = new_client.id
            appointment, service = await self._insert_validated(conn, data)

        logger.info(
            f"✅ Appointment created with new client {new_client.id}: {appointment.id} "
            f"on {appointment.appointment_date} {appointment.appointment_time}"
        )
        await self._notify(
            AppointmentChange(
                kind=ChangeKind.CREATED,
                appointment=appointment,
                occupied=_interval(appointment, service),
                occupied_date=appointment.appointment_date,
            )
        )
        return appointment

    # === ПЕРЕНОС И РЕДАКТИРОВАНИЕ ===

    async def reschedule(self, appointment_id: int, new_day, new_time: str) -> Appointment:
        """Перенести запись; собственный прежний интервал не считается конфликтом

        Raises:
            InvalidTimeFormat, InvalidDateFormat, AppointmentNotFound,
            InvalidTransition (cancelled or completed), SlotBlocked,
            OutsideWorkingHours, SlotConflict, StorageUnavailable
        """
        parse_time(new_time)
        try:
            data = RescheduleInput(appointment_date=parse_date(new_day), appointment_time=new_time)
        except ValidationError as e:
            raise to_invalid_input(e) from e

        async with self._transaction(
            "reschedule_appointment", appointment_id=appointment_id
        ) as conn:
            await self._lock_day(conn, data.appointment_date)
            appointment = await self._load(conn, appointment_id)
            if appointment.status in TERMINAL_STATUSES:
                raise InvalidTransition(
                    "Only scheduled or confirmed appointments can be rescheduled",
                    appointment_id=appointment_id,
                    from_status=appointment.status.value,
                )

            service = await self._load_service(conn, appointment.service_id)
            await self._validate_slot(
                conn,
                data.appointment_date,
                parse_time(data.appointment_time),
                service.duration_minutes,
                exclude_id=appointment.id,
            )

            freed = _interval(appointment, service)
            freed_date = appointment.appointment_date
            appointment.appointment_date = data.appointment_date
            appointment.appointment_time = data.appointment_time
            await AppointmentRepository.move(appointment, conn)

        logger.info(
            f"Appointment {appointment_id} rescheduled: {freed_date} -> "
            f"{appointment.appointment_date} {appointment.appointment_time}"
        )
        await self._notify(
            AppointmentChange(
                kind=ChangeKind.RESCHEDULED,
                appointment=appointment,
                freed=freed,
                freed_date=freed_date,
                occupied=_interval(appointment, service),
                occupied_date=appointment.appointment_date,
            )
        )
        return appointment

    async def update_details(
        self,
        appointment_id: int,
        service_id: Optional[int] = None,
        price: Optional[Decimal] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """Изменить услугу, цену или заметки

        A different service changes the occupied interval, so it is
        checked against the other appointments of that day.
        """
        try:
            data = AppointmentUpdateInput(service_id=service_id, price=price, notes=notes)
        except ValidationError as e:
            raise to_invalid_input(e) from e

        async with self._transaction("update_appointment", appointment_id=appointment_id) as conn:
            appointment = await self._load_locked_day(conn, appointment_id)
            old_service = await ServiceRepository.get_service(
                self.user_id, appointment.service_id, conn=conn
            )
            new_service = old_service

            if data.service_id is not None and data.service_id != appointment.service_id:
                new_service = await self.availability.get_service(data.service_id, conn=conn)
                if appointment.occupies_time:
                    occupied = await self.availability.index.get_occupied(
                        appointment.appointment_date, conn=conn, exclude_id=appointment.id
                    )
                    start = appointment.start_minutes
                    conflict = find_conflict(
                        start, add_minutes(start, new_service.duration_minutes), occupied
                    )
                    if conflict is not None:
                        conflict.details["date"] = format_date(appointment.appointment_date)
                        raise conflict
                appointment.service_id = new_service.id

            if data.price is not None:
                appointment.price = data.price
            if data.notes is not None:
                appointment.notes = data.notes.strip() or None
            await AppointmentRepository.update_details(appointment, conn)

        logger.info(f"Appointment {appointment_id} updated")
        freed = _interval(appointment, old_service) if new_service is not old_service else None
        await self._notify(
            AppointmentChange(
                kind=ChangeKind.UPDATED,
                appointment=appointment,
                freed=freed,
                freed_date=appointment.appointment_date if freed else None,
                occupied=_interval(appointment, new_service) if freed else None,
                occupied_date=appointment.appointment_date if freed else None,
            )
        )
        return appointment

    # === СМЕНА СТАТУСА ===

    async def _transition(
        self,
        appointment_id: int,
        target: AppointmentStatus,
        kind: ChangeKind,
        completion: Optional[CompletionInput] = None,
    ) -> Appointment:
        async with self._transaction(
            f"{kind.value}_appointment", appointment_id=appointment_id
        ) as conn:
            appointment = await self._load(conn, appointment_id)
            if target not in ALLOWED_TRANSITIONS[appointment.status]:
                raise InvalidTransition(
                    appointment_id=appointment_id,
                    from_status=appointment.status.value,
                    to_status=target.value,
                )

            service = await ServiceRepository.get_service(
                self.user_id, appointment.service_id, conn=conn
            )
            before = _interval(appointment, service)

            appointment.status = target
            if completion is not None:
                appointment.price = completion.final_price
                appointment.payment_method = completion.payment_method
                appointment.payment_status = completion.payment_status
            await AppointmentRepository.set_status(appointment, conn)

        logger.info(f"Appointment {appointment_id} -> {target.value}")

        # Only cancellation releases the interval
        freed = before if target not in OCCUPYING_STATUSES else None
        await self._notify(
            AppointmentChange(
                kind=kind,
                appointment=appointment,
                freed=freed,
                freed_date=appointment.appointment_date if freed else None,
            )
        )
        return appointment

    async def cancel(self, appointment_id: int) -> Appointment:
        """Отменить запись; интервал сразу освобождается

        Raises:
            AppointmentNotFound, InvalidTransition (already cancelled or
            completed), StorageUnavailable
        """
        return await self._transition(
            appointment_id, AppointmentStatus.CANCELLED, ChangeKind.CANCELLED
        )

    async def confirm(self, appointment_id: int) -> Appointment:
        """scheduled -> confirmed"""
        return await self._transition(
            appointment_id, AppointmentStatus.CONFIRMED, ChangeKind.CONFIRMED
        )

    async def complete(
        self,
        appointment_id: int,
        final_price: Decimal,
        payment_method: Optional[str] = None,
        payment_status: Optional[str] = None,
    ) -> Appointment:
        """Завершить запись с оплатой

        Without a payment method the payment is pending, with one it is
        paid; payment_status may be omitted and is derived.

        Raises:
            InvalidInput: negative price or inconsistent payment fields
            InvalidTransition: appointment already completed or cancelled
        """
        try:
            completion = CompletionInput(
                final_price=final_price,
                payment_method=payment_method,
                payment_status=payment_status,
            )
        except ValidationError as e:
            raise to_invalid_input(e) from e

        return await self._transition(
            appointment_id,
            AppointmentStatus.COMPLETED,
            ChangeKind.COMPLETED,
            completion=completion,
        )
