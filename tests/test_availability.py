"""Тесты расчёта свободных слотов

✅ Сценарии A-D и свойства резолвера
"""

from unittest.mock import AsyncMock, patch

import aiosqlite
import pytest

from database.models import AvailabilityReason
from database.repositories.service_repository import ServiceRepository
from services.appointment_index import AppointmentIndex
from services.appointment_service import AppointmentMutator
from services.availability_service import AvailabilityResolver
from services.block_registry import BlockRegistry
from services.booking_catalog import BookingCatalog
from services.time_grid import intervals_overlap, parse_time
from utils.error_handler import ServiceInactive, ServiceNotFound, StorageUnavailable
from tests.conftest import MONDAY, TUESDAY


class TestScenarios:
    """Сценарии из описания резолвера"""

    @pytest.mark.asyncio
    async def test_scenario_a_all_catalog_slots(self, monday_setup, service):
        resolver = AvailabilityResolver(monday_setup.id)
        assert await resolver.get_available_slots(MONDAY, service.id) == [
            "09:00",
            "10:00",
            "11:00",
        ]

    @pytest.mark.asyncio
    async def test_scenario_b_booked_slot_excluded(self, monday_setup, service, client):
        await AppointmentMutator(monday_setup.id).create(MONDAY, "10:00", service.id, client.id)

        resolver = AvailabilityResolver(monday_setup.id)
        assert await resolver.get_available_slots(MONDAY, service.id) == ["09:00", "11:00"]

    @pytest.mark.asyncio
    async def test_scenario_c_full_day_block(self, monday_setup, service):
        await BlockRegistry(monday_setup.id).add_block(MONDAY, None, "Férias")

        resolver = AvailabilityResolver(monday_setup.id)
        assert await resolver.get_available_slots(MONDAY, service.id) == []

    @pytest.mark.asyncio
    async def test_scenario_d_long_appointment_covers_next_slot(
        self, monday_setup, service, long_service, client
    ):
        # 09:00 + 90 min occupies 09:00-10:30
        await AppointmentMutator(monday_setup.id).create(
            MONDAY, "09:00", long_service.id, client.id
        )

        slots = await AvailabilityResolver(monday_setup.id).get_available_slots(
            MONDAY, service.id
        )
        assert "10:00" not in slots
        assert slots == ["11:00"]


class TestResolverRules:
    """Свойства резолвера"""

    @pytest.mark.asyncio
    async def test_closed_day_is_empty(self, monday_setup, service):
        resolver = AvailabilityResolver(monday_setup.id)
        assert await resolver.get_available_slots(TUESDAY, service.id) == []

    @pytest.mark.asyncio
    async def test_no_catalog_means_not_bookable(self, monday_setup, service):
        await BookingCatalog(monday_setup.id).replace_slots([])

        resolver = AvailabilityResolver(monday_setup.id)
        assert await resolver.get_available_slots(MONDAY, service.id) == []

    @pytest.mark.asyncio
    async def test_catalog_outside_window_excluded(self, monday_setup, service):
        await BookingCatalog(monday_setup.id).replace_slots(["08:30", "09:00", "12:00", "11:30"])

        resolver = AvailabilityResolver(monday_setup.id)
        # 12:00 is the closing time and is not a valid start
        assert await resolver.get_available_slots(MONDAY, service.id) == ["09:00", "11:30"]

    @pytest.mark.asyncio
    async def test_point_block_excludes_only_that_time(self, monday_setup, service):
        await BlockRegistry(monday_setup.id).add_block(MONDAY, "10:00", "Almoço")

        resolver = AvailabilityResolver(monday_setup.id)
        assert await resolver.get_available_slots(MONDAY, service.id) == ["09:00", "11:00"]

    @pytest.mark.asyncio
    async def test_cancellation_frees_slot(self, monday_setup, service, client):
        mutator = AppointmentMutator(monday_setup.id)
        resolver = AvailabilityResolver(monday_setup.id)
        appointment = await mutator.create(MONDAY, "10:00", service.id, client.id)
        assert "10:00" not in await resolver.get_available_slots(MONDAY, service.id)

        await mutator.cancel(appointment.id)

        assert "10:00" in await resolver.get_available_slots(MONDAY, service.id)

    @pytest.mark.asyncio
    async def test_completed_appointment_still_occupies(self, monday_setup, service, client):
        mutator = AppointmentMutator(monday_setup.id)
        appointment = await mutator.create(MONDAY, "10:00", service.id, client.id)
        await mutator.complete(appointment.id, 80, payment_method="pix")

        slots = await AvailabilityResolver(monday_setup.id).get_available_slots(
            MONDAY, service.id
        )
        assert "10:00" not in slots

    @pytest.mark.asyncio
    async def test_duration_read_from_service_at_query_time(self, monday_setup, service, client):
        await AppointmentMutator(monday_setup.id).create(MONDAY, "09:00", service.id, client.id)
        resolver = AvailabilityResolver(monday_setup.id)
        assert "10:00" in await resolver.get_available_slots(MONDAY, service.id)

        # Existing appointment now lasts 09:00-10:30
        await ServiceRepository.update_service(monday_setup.id, service.id, duration_minutes=90)

        assert "10:00" not in await resolver.get_available_slots(MONDAY, service.id)

    @pytest.mark.asyncio
    async def test_excluded_slots_have_overlapping_interval(
        self, monday_setup, service, long_service, client, other_client
    ):
        await BookingCatalog(monday_setup.id).replace_slots(
            [f"{h:02d}:{m:02d}" for h in (9, 10, 11) for m in (0, 15, 30, 45)]
        )
        mutator = AppointmentMutator(monday_setup.id)
        await mutator.create(MONDAY, "09:15", service.id, client.id)
        await mutator.create(MONDAY, "10:30", long_service.id, other_client.id)

        catalog = await BookingCatalog(monday_setup.id).list_slots()
        slots = await AvailabilityResolver(monday_setup.id).get_available_slots(
            MONDAY, long_service.id
        )
        occupied = await AppointmentIndex(monday_setup.id).get_occupied(MONDAY)

        for time_str in catalog:
            start = parse_time(time_str)
            end = start + long_service.duration_minutes
            overlaps = any(intervals_overlap(start, end, i.start, i.end) for i in occupied)
            assert (time_str not in slots) == overlaps

    @pytest.mark.asyncio
    async def test_service_past_closing_offered_by_default(self, monday_setup, long_service):
        resolver = AvailabilityResolver(monday_setup.id, require_full_fit=False)
        assert "11:00" in await resolver.get_available_slots(MONDAY, long_service.id)

    @pytest.mark.asyncio
    async def test_require_full_fit(self, monday_setup, long_service):
        resolver = AvailabilityResolver(monday_setup.id, require_full_fit=True)
        # 90 min: only 09:00 and 10:00 end by 12:00
        assert await resolver.get_available_slots(MONDAY, long_service.id) == ["09:00", "10:00"]

    @pytest.mark.asyncio
    async def test_unknown_service(self, monday_setup):
        with pytest.raises(ServiceNotFound):
            await AvailabilityResolver(monday_setup.id).get_available_slots(MONDAY, 999)

    @pytest.mark.asyncio
    async def test_inactive_service(self, monday_setup, service):
        await ServiceRepository.delete_service(monday_setup.id, service.id)

        with pytest.raises(ServiceInactive):
            await AvailabilityResolver(monday_setup.id).get_available_slots(MONDAY, service.id)


class TestCheckAvailability:
    """check_availability различает причины пустого списка"""

    @pytest.mark.asyncio
    async def test_available(self, monday_setup, service):
        result = await AvailabilityResolver(monday_setup.id).check_availability(
            "2030-01-07", service.id
        )
        assert result.reason == AvailabilityReason.AVAILABLE
        assert result.slots == ["09:00", "10:00", "11:00"]
        assert result.error is None
        assert result.date == MONDAY

    @pytest.mark.asyncio
    async def test_closed(self, monday_setup, service):
        result = await AvailabilityResolver(monday_setup.id).check_availability(
            TUESDAY, service.id
        )
        assert result.reason == AvailabilityReason.CLOSED
        assert result.slots == []

    @pytest.mark.asyncio
    async def test_full_day_blocked(self, monday_setup, service):
        await BlockRegistry(monday_setup.id).add_block(MONDAY)
        result = await AvailabilityResolver(monday_setup.id).check_availability(
            MONDAY, service.id
        )
        assert result.reason == AvailabilityReason.FULL_DAY_BLOCKED

    @pytest.mark.asyncio
    async def test_no_catalog(self, monday_setup, service):
        await BookingCatalog(monday_setup.id).replace_slots([])
        result = await AvailabilityResolver(monday_setup.id).check_availability(
            MONDAY, service.id
        )
        assert result.reason == AvailabilityReason.NO_CATALOG

    @pytest.mark.asyncio
    async def test_no_free_slots(self, monday_setup, service):
        await BlockRegistry(monday_setup.id).block_period(MONDAY, "09:00", "12:00")
        result = await AvailabilityResolver(monday_setup.id).check_availability(
            MONDAY, service.id
        )
        assert result.reason == AvailabilityReason.NO_FREE_SLOTS
        assert result.slots == []

    @pytest.mark.asyncio
    async def test_unknown_service_is_error_not_closed(self, monday_setup):
        result = await AvailabilityResolver(monday_setup.id).check_availability(MONDAY, 999)
        assert result.reason == AvailabilityReason.ERROR
        assert result.is_error
        assert isinstance(result.error, ServiceNotFound)
        assert result.slots == []

    @pytest.mark.asyncio
    async def test_bad_date_is_error(self, monday_setup, service):
        result = await AvailabilityResolver(monday_setup.id).check_availability(
            "07/01/2030", service.id
        )
        assert result.reason == AvailabilityReason.ERROR
        assert result.error.code == "INVALID_DATE_FORMAT"
        assert result.date is None
        assert result.service_id == service.id

    @pytest.mark.asyncio
    async def test_storage_failure_is_error(self, monday_setup, service):
        with patch("database.repositories.service_repository.db_adapter") as mock_adapter:
            mock_adapter.fetchrow = AsyncMock(
                side_effect=aiosqlite.OperationalError("disk I/O error")
            )
            result = await AvailabilityResolver(monday_setup.id).check_availability(
                MONDAY, service.id
            )

        assert result.reason == AvailabilityReason.ERROR
        assert isinstance(result.error, StorageUnavailable)
        assert result.slots == []
