"""Репозиторий для работы с записями"""

import logging
from datetime import date
from typing import Dict, List, Optional

from database.db_adapter import affected_rows, db_adapter
from database.models import Appointment, AppointmentStatus
from services.time_grid import format_date
from utils.error_handler import translate_storage_errors
from utils.helpers import timestamp


def _money(value) -> Optional[str]:
    return None if value is None else str(value)


def _enum_value(value) -> Optional[str]:
    return None if value is None else value.value


class AppointmentRepository:
    """Репозиторий для управления записями

    Methods taking ``conn`` run inside the caller's transaction; the
    conflict check and the write must share one.
    """

    @staticmethod
    @translate_storage_errors
    async def get_occupied_rows(
        user_id: int,
        appointment_date: date,
        conn=None,
        exclude_id: Optional[int] = None,
    ) -> List[Dict]:
        """Получить занятые записи за день с длительностью услуги

        Duration comes from the joined service at read time.

        Returns:
            [{"id", "appointment_time", "status", "duration_minutes"}, ...]
        """
        executor = conn or db_adapter
        query = """SELECT a.id, a.appointment_time, a.status, s.duration_minutes
            FROM appointments a
            JOIN services s ON s.id = a.service_id
            WHERE a.user_id = $1 AND a.appointment_date = $2
                AND a.status <> $3 AND a.deleted_at IS NULL"""
        params = [user_id, format_date(appointment_date), AppointmentStatus.CANCELLED.value]
        if exclude_id is not None:
            query += " AND a.id <> $4"
            params.append(exclude_id)
        return await executor.fetch(query, *params)

    @staticmethod
    @translate_storage_errors
    async def get_by_id(
        user_id: int, appointment_id: int, conn=None, for_update: bool = False
    ) -> Optional[Appointment]:
        """Получить запись по ID

        ``for_update`` takes a row lock on PostgreSQL; SQLite already holds
        the write lock from BEGIN IMMEDIATE.
        """
        executor = conn or db_adapter
        query = """SELECT * FROM appointments
            WHERE id = $1 AND user_id = $2 AND deleted_at IS NULL"""
        if for_update and db_adapter.is_postgres:
            query += " FOR UPDATE"
        row = await executor.fetchrow(query, appointment_id, user_id)
        return Appointment.from_row(row) if row else None

    @staticmethod
    @translate_storage_errors
    async def list_for_range(user_id: int, start: date, end: date) -> List[Dict]:
        """Записи (без отменённых) в диапазоне дат [start, end]

        Rows carry the appointment columns plus ``service_name``,
        ``duration_minutes`` and ``client_name``.
        """
        return await db_adapter.fetch(
            """SELECT a.*, s.name AS service_name, s.duration_minutes,
                c.name AS client_name
            FROM appointments a
            JOIN services s ON s.id = a.service_id
            JOIN clients c ON c.id = a.client_id
            WHERE a.user_id = $1 AND a.appointment_date >= $2 AND a.appointment_date <= $3
                AND a.status <> $4 AND a.deleted_at IS NULL
            ORDER BY a.appointment_date, a.appointment_time""",
            user_id,
            format_date(start),
            format_date(end),
            AppointmentStatus.CANCELLED.value,
        )

    @staticmethod
    @translate_storage_errors
    async def insert(appointment: Appointment, conn) -> Appointment:
        """Вставить запись (внутри транзакции)"""
        now = timestamp()
        appointment.id = await conn.fetchval(
            """INSERT INTO appointments (user_id, client_id, service_id, appointment_date,
                appointment_time, price, status, payment_method, payment_status, notes,
                include_salon_percentage, salon_percentage, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
            RETURNING id""",
            appointment.user_id,
            appointment.client_id,
            appointment.service_id,
            format_date(appointment.appointment_date),
            appointment.appointment_time,
            _money(appointment.price),
            appointment.status.value,
            _enum_value(appointment.payment_method),
            _enum_value(appointment.payment_status),
            appointment.notes,
            appointment.include_salon_percentage,
            _money(appointment.salon_percentage),
            now,
            now,
        )
        appointment.created_at = now
        appointment.updated_at = now
        logging.info(
            f"Appointment inserted: {appointment.id} on {appointment.appointment_date} "
            f"{appointment.appointment_time} (service {appointment.service_id})"
        )
        return appointment

    @staticmethod
    @translate_storage_errors
    async def move(appointment: Appointment, conn) -> bool:
        """Записать новую дату и время (перенос)

        The only write that changes appointment_date/appointment_time.
        """
        now = timestamp()
        result = await conn.execute(
            """UPDATE appointments SET appointment_date = $1, appointment_time = $2,
                updated_at = $3
            WHERE id = $4 AND user_id = $5 AND deleted_at IS NULL""",
            format_date(appointment.appointment_date),
            appointment.appointment_time,
            now,
            appointment.id,
            appointment.user_id,
        )
        appointment.updated_at = now
        return affected_rows(result) == 1

    @staticmethod
    @translate_storage_errors
    async def update_details(appointment: Appointment, conn) -> bool:
        """Записать услугу, цену и заметки"""
        now = timestamp()
        result = await conn.execute(
            """UPDATE appointments SET service_id = $1, price = $2, notes = $3, updated_at = $4
            WHERE id = $5 AND user_id = $6 AND deleted_at IS NULL""",
            appointment.service_id,
            _money(appointment.price),
            appointment.notes,
            now,
            appointment.id,
            appointment.user_id,
        )
        appointment.updated_at = now
        return affected_rows(result) == 1

    @staticmethod
    @translate_storage_errors
    async def set_status(appointment: Appointment, conn) -> bool:
        """Записать статус и оплату; дата и время не трогаются"""
        now = timestamp()
        result = await conn.execute(
            """UPDATE appointments SET status = $1, price = $2, payment_method = $3,
                payment_status = $4, updated_at = $5
            WHERE id = $6 AND user_id = $7 AND deleted_at IS NULL""",
            appointment.status.value,
            _money(appointment.price),
            _enum_value(appointment.payment_method),
            _enum_value(appointment.payment_status),
            now,
            appointment.id,
            appointment.user_id,
        )
        appointment.updated_at = now
        return affected_rows(result) == 1
