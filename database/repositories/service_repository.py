"""Репозиторий для работы с услугами"""

import logging
from decimal import Decimal
from typing import List, Optional

from pydantic import ValidationError

from database.db_adapter import affected_rows, db_adapter
from database.models import PriceMode, Service
from utils.error_handler import to_invalid_input, translate_storage_errors
from utils.helpers import timestamp
from validation.schemas import ServiceInput, ServiceUpdateInput

SERVICE_COLUMNS = """id, user_id, name, duration_minutes, price_mode, suggested_price,
    is_active, include_salon_percentage, salon_percentage, deleted_at"""


def _money(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


class ServiceRepository:
    """Репозиторий для управления услугами

    Services are never hard-deleted: historical appointments keep a
    valid reference.
    """

    @staticmethod
    @translate_storage_errors
    async def get_service(user_id: int, service_id: int, conn=None) -> Optional[Service]:
        """Получить услугу по ID (включая неактивные)"""
        executor = conn or db_adapter
        row = await executor.fetchrow(
            f"SELECT {SERVICE_COLUMNS} FROM services WHERE id = $1 AND user_id = $2",
            service_id, user_id
        )
        return Service.from_row(row) if row else None

    @staticmethod
    @translate_storage_errors
    async def get_all_services(user_id: int, active_only: bool = True) -> List[Service]:
        """Получить услуги профессионала"""
        query = f"SELECT {SERVICE_COLUMNS} FROM services WHERE user_id = $1"
        if active_only:
            query += " AND is_active = $2 AND deleted_at IS NULL"
            rows = await db_adapter.fetch(query + " ORDER BY name", user_id, True)
        else:
            rows = await db_adapter.fetch(query + " ORDER BY name", user_id)
        return [Service.from_row(row) for row in rows]

    @staticmethod
    @translate_storage_errors
    async def create_service(
        user_id: int,
        name: str,
        duration_minutes: int,
        price_mode: PriceMode = PriceMode.FIXED,
        suggested_price: Optional[Decimal] = None,
        include_salon_percentage: bool = False,
        salon_percentage: Optional[Decimal] = None,
    ) -> Service:
        """Создать новую услугу

        Raises:
            InvalidInput: empty name, non-positive duration, negative price
        """
        try:
            data = ServiceInput(
                name=name,
                duration_minutes=duration_minutes,
                price_mode=price_mode,
                suggested_price=suggested_price,
                include_salon_percentage=include_salon_percentage,
                salon_percentage=salon_percentage,
            )
        except ValidationError as e:
            raise to_invalid_input(e) from e

        service = Service(id=None, user_id=user_id, **data.model_dump())
        now = timestamp()
        service.id = await db_adapter.fetchval(
            """INSERT INTO services (user_id, name, duration_minutes, price_mode, suggested_price,
                is_active, include_salon_percentage, salon_percentage, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
            RETURNING id""",
            user_id,
            service.name,
            service.duration_minutes,
            service.price_mode.value,
            _money(service.suggested_price),
            True,
            service.include_salon_percentage,
            _money(service.salon_percentage),
            now,
            now,
        )
        logging.info(f"Service created: {service.id} - {name} ({duration_minutes}min)")
        return service

    @staticmethod
    @translate_storage_errors
    async def update_service(
        user_id: int,
        service_id: int,
        name: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        price_mode: Optional[PriceMode] = None,
        suggested_price: Optional[Decimal] = None,
        is_active: Optional[bool] = None,
    ) -> bool:
        """Обновить услугу

        A new duration changes how existing appointments are perceived
        from the next read on: durations are never cached on appointments.

        Raises:
            InvalidInput: a given field is out of range
        """
        try:
            data = ServiceUpdateInput(
                name=name,
                duration_minutes=duration_minutes,
                price_mode=price_mode,
                suggested_price=suggested_price,
                is_active=is_active,
            )
        except ValidationError as e:
            raise to_invalid_input(e) from e

        updates = []
        params = []
        param_num = 1

        for column, value in (
            ("name", data.name),
            ("duration_minutes", data.duration_minutes),
            ("price_mode", data.price_mode.value if data.price_mode is not None else None),
            ("suggested_price", _money(data.suggested_price)),
            ("is_active", data.is_active),
        ):
            if value is not None:
                updates.append(f"{column} = ${param_num}")
                params.append(value)
                param_num += 1

        if not updates:
            return False

        updates.append(f"updated_at = ${param_num}")
        params.append(timestamp())
        param_num += 1

        params.extend([service_id, user_id])
        query = (
            f"UPDATE services SET {', '.join(updates)} "
            f"WHERE id = ${param_num} AND user_id = ${param_num + 1}"
        )

        updated = affected_rows(await db_adapter.execute(query, *params)) == 1
        if updated:
            logging.info(f"Service updated: {service_id}")
        return updated

    @staticmethod
    @translate_storage_errors
    async def delete_service(user_id: int, service_id: int) -> bool:
        """Удалить услугу (мягкое удаление - is_active=false)"""
        now = timestamp()
        result = await db_adapter.execute(
            """UPDATE services SET is_active = $1, deleted_at = $2, updated_at = $3
            WHERE id = $4 AND user_id = $5""",
            False, now, now, service_id, user_id
        )
        deleted = affected_rows(result) == 1
        if deleted:
            logging.info(f"Service deleted (soft): {service_id}")
        return deleted
