"""Реестр блокировок времени"""

import logging
from typing import List

from pydantic import ValidationError

from database.models import BlockedSlot, DayBlocks
from database.repositories.blocked_slot_repository import BlockedSlotRepository
from services.time_grid import format_time, parse_date, parse_time
from utils.error_handler import to_invalid_input
from validation.schemas import BlockInput, BlockPeriodInput

logger = logging.getLogger(__name__)


def collapse_blocks(blocks: List[BlockedSlot]) -> DayBlocks:
    """Свести строки блокировок в DayBlocks

    Identical point rows collapse into one point and keep every reason.
    """
    day = DayBlocks()
    for block in blocks:
        if block.is_full_day:
            day.full_day = True
            key = "full_day"
        else:
            day.points.add(block.blocked_time)
            key = block.blocked_time
        if block.reason:
            day.reasons.setdefault(key, []).append(block.reason)
    return day


class BlockRegistry:
    """Блокировки профессионала: весь день или отдельные точки времени"""

    def __init__(self, user_id: int):
        self.user_id = user_id

    async def get_blocks(self, day, conn=None) -> DayBlocks:
        """Блокировки на дату; дата без строк -> DayBlocks() без блокировок"""
        rows = await BlockedSlotRepository.get_for_date(
            self.user_id, parse_date(day), conn=conn
        )
        return collapse_blocks(rows)

    async def list_blocks(self, day) -> List[BlockedSlot]:
        """Отдельные строки блокировок (для удаления по ID)"""
        return await BlockedSlotRepository.get_for_date(self.user_id, parse_date(day))

    async def add_block(self, day, time=None, reason=None) -> BlockedSlot:
        """Заблокировать день (time=None) или одну точку времени"""
        if time is not None:
            parse_time(time)
        try:
            data = BlockInput(blocked_date=parse_date(day), blocked_time=time, reason=reason)
        except ValidationError as e:
            raise to_invalid_input(e) from e

        block = BlockedSlot(
            id=None,
            user_id=self.user_id,
            blocked_date=data.blocked_date,
            blocked_time=data.blocked_time,
            is_full_day=data.blocked_time is None,
            reason=data.reason,
        )
        return await BlockedSlotRepository.add(block)

    async def block_period(self, day, start: str, end: str, reason=None) -> List[BlockedSlot]:
        """Заблокировать период по часам: одна точка HH:00 на каждый час [start, end)

        Minutes are truncated: "09:30"-"11:00" blocks 09:00 and 10:00.

        Raises:
            InvalidTimeFormat: malformed start or end
            InvalidInput: start hour is not before end hour
        """
        parse_time(start)
        parse_time(end)
        try:
            data = BlockPeriodInput(
                blocked_date=parse_date(day), start_time=start, end_time=end, reason=reason
            )
        except ValidationError as e:
            raise to_invalid_input(e) from e

        hours = range(parse_time(data.start_time) // 60, parse_time(data.end_time) // 60)
        blocks = [
            BlockedSlot(
                id=None,
                user_id=self.user_id,
                blocked_date=data.blocked_date,
                blocked_time=format_time(hour * 60),
                is_full_day=False,
                reason=data.reason,
            )
            for hour in hours
        ]
        await BlockedSlotRepository.add_many(blocks)
        logger.info(
            f"Period blocked for user {self.user_id} on {data.blocked_date}: "
            f"{data.start_time}-{data.end_time} ({len(blocks)} points)"
        )
        return blocks

    async def remove_block(self, block_id: int) -> bool:
        """Удалить одну строку блокировки; дубликаты на ту же точку остаются"""
        return await BlockedSlotRepository.remove(self.user_id, block_id)
