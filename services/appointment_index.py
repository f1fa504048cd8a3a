"""Индекс занятых интервалов"""

from typing import List, Optional

from database.models import OccupiedInterval
from database.repositories.appointment_repository import AppointmentRepository
from services.time_grid import parse_date, parse_time


class AppointmentIndex:
    """Занятые интервалы профессионала на дату

    Cancelled and deleted appointments are excluded; completed ones still
    occupy their interval.
    """

    def __init__(self, user_id: int):
        self.user_id = user_id

    async def get_occupied(
        self, day, conn=None, exclude_id: Optional[int] = None
    ) -> List[OccupiedInterval]:
        """Интервалы [start, start + duration) по возрастанию начала

        Args:
            day: date or "YYYY-MM-DD"
            conn: open connection to read inside a transaction
            exclude_id: appointment to leave out (its own prior interval
                when rescheduling)
        """
        rows = await AppointmentRepository.get_occupied_rows(
            self.user_id, parse_date(day), conn=conn, exclude_id=exclude_id
        )
        intervals = [
            OccupiedInterval.build(
                parse_time(row["appointment_time"]),
                int(row["duration_minutes"]),
                row["id"],
                row["status"],
            )
            for row in rows
        ]
        return sorted(intervals, key=lambda interval: (interval.start, interval.appointment_id))
