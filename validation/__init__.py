"""Validation module with Pydantic schemas"""

from validation.schemas import (
    AppointmentCreateInput,
    AppointmentUpdateInput,
    BlockInput,
    BlockPeriodInput,
    CatalogInput,
    ClientInput,
    CompletionInput,
    PublicBookingInput,
    RescheduleInput,
    ServiceInput,
    ServiceUpdateInput,
    WorkingHoursEntry,
    WorkingWeekInput,
)

__all__ = [
    "AppointmentCreateInput",
    "AppointmentUpdateInput",
    "RescheduleInput",
    "CompletionInput",
    "BlockInput",
    "BlockPeriodInput",
    "WorkingHoursEntry",
    "WorkingWeekInput",
    "CatalogInput",
    "ServiceInput",
    "ServiceUpdateInput",
    "ClientInput",
    "PublicBookingInput",
]
