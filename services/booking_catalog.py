"""Каталог времени для публичной записи"""

import logging
from typing import Iterable, List

from pydantic import ValidationError

from config import BUSINESS_HOURS_END, BUSINESS_HOURS_START, CATALOG_STEP_MINUTES
from database.repositories.booking_time_slot_repository import BookingTimeSlotRepository
from services.time_grid import business_hours_slots, candidate_catalog_options
from utils.error_handler import to_invalid_input
from validation.schemas import CatalogInput

logger = logging.getLogger(__name__)


class BookingCatalog:
    """Времена, которые профессионал открывает на странице записи

    Independent of working hours: the resolver intersects both.
    """

    def __init__(self, user_id: int):
        self.user_id = user_id

    @staticmethod
    def options() -> List[str]:
        """Все варианты для редактора (шаг CATALOG_STEP_MINUTES)"""
        return candidate_catalog_options(CATALOG_STEP_MINUTES)

    async def list_slots(self) -> List[str]:
        """Активные времена по возрастанию"""
        return [slot.time_slot for slot in await BookingTimeSlotRepository.list_active(self.user_id)]

    async def replace_slots(self, times: Iterable[str]) -> List[str]:
        """Заменить каталог целиком

        Times are normalized to HH:MM, de-duplicated and sorted. An empty
        list turns online booking off in practice.

        Raises:
            InvalidInput: a time is malformed; nothing is written
        """
        try:
            catalog = CatalogInput(times=list(times))
        except ValidationError as e:
            raise to_invalid_input(e) from e

        await BookingTimeSlotRepository.replace_all(self.user_id, catalog.times)
        logger.info(f"Booking catalog replaced for user {self.user_id}: {len(catalog.times)} times")
        return catalog.times

    async def set_business_hours(self) -> List[str]:
        """Пресет «коммерческие часы»: каждые полчаса с 08:00 до 17:30"""
        return await self.replace_slots(
            business_hours_slots(BUSINESS_HOURS_START, BUSINESS_HOURS_END, CATALOG_STEP_MINUTES)
        )
