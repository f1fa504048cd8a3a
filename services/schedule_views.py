"""Данные для сетки расписания (день, неделя и месяц)

Staff-facing grids are independent of the booking catalog: the day view
follows the working window, the week view uses a fixed hourly grid.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from config import (
    DAY_GRID_DEFAULT_END,
    DAY_GRID_DEFAULT_START,
    DAY_NAMES,
    WEEK_GRID_END_HOUR,
    WEEK_GRID_START_HOUR,
)
from database.models import Appointment, BlockedSlot, DayBlocks, TimeWindow
from database.repositories.appointment_repository import AppointmentRepository
from database.repositories.blocked_slot_repository import BlockedSlotRepository
from services.block_registry import collapse_blocks
from services.time_grid import (
    add_minutes,
    day_of_week,
    format_time,
    generate_hourly_slots,
    parse_date,
    parse_time,
)
from services.working_hours_policy import WorkingHoursPolicy


@dataclass
class ScheduledItem:
    """Запись в ячейке сетки"""

    appointment: Appointment
    client_name: str
    service_name: str
    end_time: str


@dataclass
class ScheduleRow:
    """Строка сетки: один час"""

    time: str
    items: List[ScheduledItem] = field(default_factory=list)
    blocked: bool = False

    @property
    def is_free(self) -> bool:
        return not self.items and not self.blocked


@dataclass
class DaySchedule:
    date: date
    window: Optional[TimeWindow]
    full_day_blocked: bool
    rows: List[ScheduleRow]
    block_reasons: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[day_of_week(self.date)]


@dataclass
class WeekSchedule:
    week_start: date
    hours: List[str]
    days: List[DaySchedule]


@dataclass
class MonthDay:
    """Ячейка месячной сетки"""

    date: date
    in_month: bool
    items: List[ScheduledItem] = field(default_factory=list)
    full_day_blocked: bool = False


@dataclass
class MonthSchedule:
    month_start: date
    weeks: List[List[MonthDay]]


def week_start_for(day: date) -> date:
    """Воскресенье недели, в которую входит day"""
    return day - timedelta(days=day_of_week(day))


def _to_item(row: Dict) -> ScheduledItem:
    appointment = Appointment.from_row(row)
    end = add_minutes(appointment.start_minutes, int(row["duration_minutes"]))
    return ScheduledItem(
        appointment=appointment,
        client_name=row["client_name"],
        service_name=row["service_name"],
        # Past midnight is shown as 23:59
        end_time=format_time(min(end, 24 * 60 - 1)),
    )


def _build_rows(hours: List[str], items: List[ScheduledItem], blocks: DayBlocks) -> List[ScheduleRow]:
    """Each appointment lands in the row of the hour it starts in"""
    rows = [ScheduleRow(time=hour, blocked=blocks.is_blocked(hour)) for hour in hours]
    by_hour = {parse_time(row.time) // 60: row for row in rows}
    for item in items:
        row = by_hour.get(item.appointment.start_minutes // 60)
        if row is not None:
            row.items.append(item)
    return rows


class ScheduleViews:
    """Сетка расписания профессионала"""

    def __init__(self, user_id: int):
        self.user_id = user_id
        self.working_hours = WorkingHoursPolicy(user_id)

    async def _load(self, start: date, end: date):
        rows = await AppointmentRepository.list_for_range(self.user_id, start, end)
        items: Dict[date, List[ScheduledItem]] = defaultdict(list)
        for row in rows:
            item = _to_item(row)
            items[item.appointment.appointment_date].append(item)

        blocks: Dict[date, List[BlockedSlot]] = defaultdict(list)
        for block in await BlockedSlotRepository.get_for_range(self.user_id, start, end):
            blocks[block.blocked_date].append(block)
        return items, blocks

    async def day_schedule(self, day) -> DaySchedule:
        """Часы от начала до конца рабочего окна включительно (08-20, если закрыто)"""
        day = parse_date(day)
        window = await self.working_hours.get_window(day)
        if window is None:
            start_hour, end_hour = DAY_GRID_DEFAULT_START, DAY_GRID_DEFAULT_END
        else:
            start_hour, end_hour = window.start // 60, window.end // 60

        items, blocks = await self._load(day, day)
        day_blocks = collapse_blocks(blocks[day])
        return DaySchedule(
            date=day,
            window=window,
            full_day_blocked=day_blocks.full_day,
            rows=_build_rows(generate_hourly_slots(start_hour, end_hour), items[day], day_blocks),
            block_reasons=day_blocks.reasons,
        )

    async def week_schedule(self, day) -> WeekSchedule:
        """Неделя с воскресенья по фиксированной сетке 06:00-23:00"""
        start = week_start_for(parse_date(day))
        end = start + timedelta(days=6)
        hours = generate_hourly_slots(WEEK_GRID_START_HOUR, WEEK_GRID_END_HOUR)

        items, blocks = await self._load(start, end)
        days = []
        for offset in range(7):
            current = start + timedelta(days=offset)
            day_blocks = collapse_blocks(blocks[current])
            days.append(
                DaySchedule(
                    date=current,
                    window=await self.working_hours.get_window(current),
                    full_day_blocked=day_blocks.full_day,
                    rows=_build_rows(hours, items[current], day_blocks),
                    block_reasons=day_blocks.reasons,
                )
            )
        return WeekSchedule(week_start=start, hours=hours, days=days)

    async def month_schedule(self, day) -> MonthSchedule:
        """Месяц целыми неделями с воскресенья

        The grid runs from the Sunday of the week holding the 1st to the
        Saturday of the week holding the last day; days of the adjacent
        months are included with ``in_month`` False.
        """
        day = parse_date(day)
        month_start = day.replace(day=1)
        next_month = (month_start + timedelta(days=32)).replace(day=1)
        start = week_start_for(month_start)
        end = week_start_for(next_month - timedelta(days=1)) + timedelta(days=6)

        items, blocks = await self._load(start, end)
        weeks: List[List[MonthDay]] = []
        current = start
        while current <= end:
            week = []
            for _ in range(7):
                week.append(
                    MonthDay(
                        date=current,
                        in_month=current.month == month_start.month,
                        items=items[current],
                        full_day_blocked=collapse_blocks(blocks[current]).full_day,
                    )
                )
                current += timedelta(days=1)
            weeks.append(week)
        return MonthSchedule(month_start=month_start, weeks=weeks)
