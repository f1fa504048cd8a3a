"""Политика рабочих часов"""

import logging
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from config import DEFAULT_WORK_END, DEFAULT_WORK_START
from database.models import TimeWindow, WorkingHours
from database.repositories.working_hours_repository import WorkingHoursRepository
from services.time_grid import day_of_week, parse_date
from utils.error_handler import to_invalid_input
from validation.schemas import WorkingWeekInput

logger = logging.getLogger(__name__)


class WorkingHoursPolicy:
    """Рабочее окно профессионала по дням недели"""

    def __init__(self, user_id: int):
        self.user_id = user_id

    async def get_window(self, day, conn=None) -> Optional[TimeWindow]:
        """Рабочее окно на дату или None, если день закрыт"""
        weekday = day_of_week(parse_date(day))
        hours = await WorkingHoursRepository.get_for_day(self.user_id, weekday, conn=conn)
        if hours is None:
            return None
        return hours.window

    async def get_week(self) -> List[WorkingHours]:
        """Все семь дней; дни без записи закрыты с 09:00-18:00 по умолчанию"""
        stored: Dict[int, WorkingHours] = {
            hours.day_of_week: hours
            for hours in await WorkingHoursRepository.list_for_user(self.user_id)
        }
        return [
            stored.get(weekday)
            or WorkingHours(
                id=None,
                user_id=self.user_id,
                day_of_week=weekday,
                start_time=DEFAULT_WORK_START,
                end_time=DEFAULT_WORK_END,
                is_active=False,
            )
            for weekday in range(7)
        ]

    async def save_week(self, entries: Iterable[dict]) -> List[WorkingHours]:
        """Сохранить неделю целиком (delete-all-then-insert-active)

        Args:
            entries: dicts with day_of_week, start_time, end_time, is_active

        Raises:
            InvalidInput: entries failed validation; nothing is written
        """
        try:
            week = WorkingWeekInput(days=list(entries))
        except ValidationError as e:
            raise to_invalid_input(e) from e

        records = [
            WorkingHours(
                id=None,
                user_id=self.user_id,
                day_of_week=entry.day_of_week,
                start_time=entry.start_time,
                end_time=entry.end_time,
                is_active=entry.is_active,
            )
            for entry in week.days
        ]
        await WorkingHoursRepository.replace_all(self.user_id, records)
        logger.info(
            f"✅ Working week saved for user {self.user_id}: "
            f"{sum(1 for r in records if r.is_active)} active days"
        )
        return await self.get_week()
