"""Тесты реестра блокировок"""

from datetime import date

import pytest

from database.models import BlockedSlot
from services.block_registry import BlockRegistry, collapse_blocks
from utils.error_handler import InvalidInput, InvalidTimeFormat
from tests.conftest import MONDAY, TUESDAY


def _point(time_str, reason=None):
    return BlockedSlot(None, 1, date(2030, 1, 7), time_str, is_full_day=False, reason=reason)


class TestCollapseBlocks:
    def test_empty_day(self):
        blocks = collapse_blocks([])
        assert not blocks.full_day
        assert blocks.points == set()

    def test_duplicates_collapse_and_keep_reasons(self):
        blocks = collapse_blocks([_point("10:00", "Médico"), _point("10:00", "Banco")])
        assert blocks.points == {"10:00"}
        assert blocks.reasons["10:00"] == ["Médico", "Banco"]

    def test_full_day_dominates(self):
        full = BlockedSlot(None, 1, date(2030, 1, 7), None, is_full_day=True, reason="Feriado")
        blocks = collapse_blocks([_point("10:00"), full])
        assert blocks.full_day
        assert blocks.is_blocked("15:00")
        assert blocks.reasons["full_day"] == ["Feriado"]


class TestBlockRegistry:
    """Тесты с БД"""

    @pytest.mark.asyncio
    async def test_no_rows_means_no_blocks(self, professional):
        blocks = await BlockRegistry(professional.id).get_blocks(MONDAY)
        assert not blocks.full_day
        assert not blocks.points

    @pytest.mark.asyncio
    async def test_point_block_is_per_date(self, professional):
        registry = BlockRegistry(professional.id)
        await registry.add_block(MONDAY, "9:00:00", "Curso")

        monday = await registry.get_blocks(MONDAY)
        assert monday.points == {"09:00"}
        assert monday.reasons == {"09:00": ["Curso"]}

        tuesday = await registry.get_blocks(TUESDAY)
        assert not tuesday.points

    @pytest.mark.asyncio
    async def test_full_day(self, professional):
        registry = BlockRegistry(professional.id)
        block = await registry.add_block("2030-01-07", reason="Férias")

        assert block.is_full_day
        assert block.blocked_time is None
        assert (await registry.get_blocks(MONDAY)).full_day

    @pytest.mark.asyncio
    async def test_invalid_time(self, professional):
        with pytest.raises(InvalidTimeFormat):
            await BlockRegistry(professional.id).add_block(MONDAY, "10h")

    @pytest.mark.asyncio
    async def test_block_period_hourly_points(self, professional):
        registry = BlockRegistry(professional.id)
        blocks = await registry.block_period(MONDAY, "13:00", "16:00", "Reunião")

        assert [b.blocked_time for b in blocks] == ["13:00", "14:00", "15:00"]
        day = await registry.get_blocks(MONDAY)
        assert day.points == {"13:00", "14:00", "15:00"}

    @pytest.mark.asyncio
    async def test_block_period_requires_start_before_end(self, professional):
        registry = BlockRegistry(professional.id)
        with pytest.raises(InvalidInput):
            await registry.block_period(MONDAY, "16:00", "13:00")

        assert await registry.list_blocks(MONDAY) == []

    @pytest.mark.asyncio
    async def test_block_period_truncates_minutes(self, professional):
        registry = BlockRegistry(professional.id)
        blocks = await registry.block_period(MONDAY, "09:30", "11:00")

        assert [b.blocked_time for b in blocks] == ["09:00", "10:00"]

        blocks = await registry.block_period(TUESDAY, "14:15", "15:45")
        assert [b.blocked_time for b in blocks] == ["14:00"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end", [("09:00", "09:30"), ("09:10", "09:50")])
    async def test_block_period_within_one_hour_rejected(self, professional, start, end):
        registry = BlockRegistry(professional.id)
        with pytest.raises(InvalidInput):
            await registry.block_period(MONDAY, start, end)

        assert await registry.list_blocks(MONDAY) == []

    @pytest.mark.asyncio
    async def test_remove_one_duplicate(self, professional):
        registry = BlockRegistry(professional.id)
        first = await registry.add_block(MONDAY, "10:00", "Médico")
        await registry.add_block(MONDAY, "10:00", "Banco")

        assert await registry.remove_block(first.id)

        day = await registry.get_blocks(MONDAY)
        assert day.points == {"10:00"}
        assert day.reasons["10:00"] == ["Banco"]

    @pytest.mark.asyncio
    async def test_remove_unknown(self, professional):
        assert not await BlockRegistry(professional.id).remove_block(999)
