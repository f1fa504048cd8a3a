"""Репозиторий для работы с блокировками времени"""

import logging
from datetime import date
from typing import List

from database.db_adapter import affected_rows, db_adapter
from database.models import BlockedSlot
from services.time_grid import format_date
from utils.error_handler import translate_storage_errors
from utils.helpers import timestamp

BLOCK_COLUMNS = "id, user_id, blocked_date, blocked_time, is_full_day, reason"

INSERT_BLOCK = """INSERT INTO blocked_slots (user_id, blocked_date, blocked_time,
    is_full_day, reason, created_at, updated_at)
VALUES ($1, $2, $3, $4, $5, $6, $7)
RETURNING id"""


class BlockedSlotRepository:
    """Репозиторий блокировок (весь день или точка времени)"""

    @staticmethod
    @translate_storage_errors
    async def get_for_date(user_id: int, blocked_date: date, conn=None) -> List[BlockedSlot]:
        """Все блокировки на дату, по времени"""
        executor = conn or db_adapter
        rows = await executor.fetch(
            f"""SELECT {BLOCK_COLUMNS} FROM blocked_slots
            WHERE user_id = $1 AND blocked_date = $2 AND deleted_at IS NULL
            ORDER BY blocked_time, id""",
            user_id, format_date(blocked_date)
        )
        return [BlockedSlot.from_row(row) for row in rows]

    @staticmethod
    @translate_storage_errors
    async def get_for_range(user_id: int, start: date, end: date) -> List[BlockedSlot]:
        """Блокировки в диапазоне дат [start, end]"""
        rows = await db_adapter.fetch(
            f"""SELECT {BLOCK_COLUMNS} FROM blocked_slots
            WHERE user_id = $1 AND blocked_date >= $2 AND blocked_date <= $3
                AND deleted_at IS NULL
            ORDER BY blocked_date, blocked_time, id""",
            user_id, format_date(start), format_date(end)
        )
        return [BlockedSlot.from_row(row) for row in rows]

    @staticmethod
    @translate_storage_errors
    async def add(block: BlockedSlot) -> BlockedSlot:
        """Добавить одну блокировку"""
        now = timestamp()
        block.id = await db_adapter.fetchval(
            INSERT_BLOCK,
            block.user_id,
            format_date(block.blocked_date),
            block.blocked_time,
            block.is_full_day,
            block.reason,
            now,
            now,
        )
        logging.info(
            f"Block added: {block.id} on {block.blocked_date} "
            f"{'full day' if block.is_full_day else block.blocked_time}"
        )
        return block

    @staticmethod
    @translate_storage_errors
    async def add_many(blocks: List[BlockedSlot]) -> List[BlockedSlot]:
        """Добавить несколько блокировок одной транзакцией"""
        now = timestamp()
        async with db_adapter.acquire() as conn:
            async with conn.transaction():
                for block in blocks:
                    block.id = await conn.fetchval(
                        INSERT_BLOCK,
                        block.user_id,
                        format_date(block.blocked_date),
                        block.blocked_time,
                        block.is_full_day,
                        block.reason,
                        now,
                        now,
                    )
        logging.info(f"Blocks added: {len(blocks)}")
        return blocks

    @staticmethod
    @translate_storage_errors
    async def remove(user_id: int, block_id: int) -> bool:
        """Удалить одну блокировку (остальные на ту же точку остаются)"""
        result = await db_adapter.execute(
            "DELETE FROM blocked_slots WHERE id = $1 AND user_id = $2",
            block_id, user_id
        )
        removed = affected_rows(result) == 1
        if removed:
            logging.info(f"Block removed: {block_id}")
        return removed
