"""Репозиторий каталога времени для публичной записи"""

import logging
from typing import List

from database.db_adapter import db_adapter
from database.models import BookingTimeSlot
from utils.error_handler import translate_storage_errors
from utils.helpers import timestamp


class BookingTimeSlotRepository:
    """Каталог времени, которое профессионал открывает для записи"""

    @staticmethod
    @translate_storage_errors
    async def list_active(user_id: int, conn=None) -> List[BookingTimeSlot]:
        """Активные слоты каталога по возрастанию времени"""
        executor = conn or db_adapter
        rows = await executor.fetch(
            """SELECT id, user_id, time_slot, is_active FROM booking_time_slots
            WHERE user_id = $1 AND is_active = $2
            ORDER BY time_slot""",
            user_id, True
        )
        # "9:00" and "09:00" sort differently as text
        return sorted((BookingTimeSlot.from_row(row) for row in rows), key=lambda s: s.minutes)

    @staticmethod
    @translate_storage_errors
    async def replace_all(user_id: int, times: List[str]) -> int:
        """Заменить каталог целиком (delete-all-then-insert)"""
        now = timestamp()
        async with db_adapter.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM booking_time_slots WHERE user_id = $1", user_id)
                if times:
                    await conn.executemany(
                        """INSERT INTO booking_time_slots (user_id, time_slot, is_active,
                            created_at, updated_at)
                        VALUES ($1, $2, $3, $4, $5)""",
                        [(user_id, time_slot, True, now, now) for time_slot in times],
                    )
        logging.info(f"Booking catalog saved for user {user_id}: {len(times)} slots")
        return len(times)
