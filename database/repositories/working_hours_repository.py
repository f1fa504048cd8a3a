"""Репозиторий для работы с рабочими часами"""

import logging
from typing import List, Optional

from database.db_adapter import db_adapter
from database.models import WorkingHours
from utils.error_handler import translate_storage_errors
from utils.helpers import timestamp

WORKING_HOURS_COLUMNS = "id, user_id, day_of_week, start_time, end_time, is_active"


class WorkingHoursRepository:
    """Репозиторий рабочих часов (одна запись на день недели)"""

    @staticmethod
    @translate_storage_errors
    async def get_for_day(user_id: int, day_of_week: int, conn=None) -> Optional[WorkingHours]:
        """Активное рабочее окно для дня недели (0 = воскресенье)"""
        executor = conn or db_adapter
        row = await executor.fetchrow(
            f"""SELECT {WORKING_HOURS_COLUMNS} FROM working_hours
            WHERE user_id = $1 AND day_of_week = $2 AND is_active = $3""",
            user_id, day_of_week, True
        )
        return WorkingHours.from_row(row) if row else None

    @staticmethod
    @translate_storage_errors
    async def list_for_user(user_id: int) -> List[WorkingHours]:
        rows = await db_adapter.fetch(
            f"""SELECT {WORKING_HOURS_COLUMNS} FROM working_hours
            WHERE user_id = $1 ORDER BY day_of_week""",
            user_id
        )
        return [WorkingHours.from_row(row) for row in rows]

    @staticmethod
    @translate_storage_errors
    async def replace_all(user_id: int, entries: List[WorkingHours]) -> int:
        """Заменить всю неделю: delete-all, затем insert активных дней

        Runs in one transaction, so readers see either the old week or
        the new one.
        """
        active = [entry for entry in entries if entry.is_active]
        now = timestamp()

        async with db_adapter.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM working_hours WHERE user_id = $1", user_id)
                if active:
                    await conn.executemany(
                        """INSERT INTO working_hours (user_id, day_of_week, start_time,
                            end_time, is_active, created_at, updated_at)
                        VALUES ($1, $2, $3, $4, $5, $6, $7)""",
                        [
                            (user_id, e.day_of_week, e.start_time, e.end_time, True, now, now)
                            for e in active
                        ],
                    )

        logging.info(f"Working hours saved for user {user_id}: {len(active)} active days")
        return len(active)
