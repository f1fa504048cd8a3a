"""Тесты репозиториев: профили, услуги, клиенты, записи"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from database.models import Client, PriceMode
from database.repositories.appointment_repository import AppointmentRepository
from database.repositories.client_repository import ClientRepository
from database.repositories.profile_repository import ProfileRepository
from database.repositories.service_repository import ServiceRepository
from utils.error_handler import InvalidInput


class TestProfileRepository:

    @pytest.mark.asyncio
    async def test_get_profile_and_slug(self, professional):
        by_id = await ProfileRepository.get_profile(professional.id)
        by_slug = await ProfileRepository.get_by_slug("ana-lash")

        assert by_id.full_name == "Ana Souza"
        assert by_slug.id == professional.id
        assert by_slug.booking_enabled is True

    @pytest.mark.asyncio
    async def test_toggle_booking(self, professional):
        assert await ProfileRepository.set_booking_enabled(professional.id, False)
        profile = await ProfileRepository.get_profile(professional.id)
        assert profile.booking_enabled is False

    @pytest.mark.asyncio
    async def test_unknown(self, db):
        assert await ProfileRepository.get_profile(999) is None
        assert await ProfileRepository.get_by_slug("nobody") is None


class TestServiceRepository:

    @pytest.mark.asyncio
    async def test_create_and_get(self, professional):
        created = await ServiceRepository.create_service(
            professional.id, "  Lash   Lifting ", 60, PriceMode.RANGE, Decimal("150.00")
        )

        service = await ServiceRepository.get_service(professional.id, created.id)
        assert service.name == "Lash Lifting"
        assert service.duration_minutes == 60
        assert service.price_mode == PriceMode.RANGE
        assert service.suggested_price == Decimal("150.00")
        assert service.is_bookable

    @pytest.mark.asyncio
    async def test_invalid_duration(self, professional):
        with pytest.raises(InvalidInput):
            await ServiceRepository.create_service(professional.id, "Remoção", 0)

    @pytest.mark.asyncio
    async def test_other_professional_cannot_read(self, professional, service):
        other = await ProfileRepository.create_profile("Bia Costa")
        assert await ServiceRepository.get_service(other.id, service.id) is None

    @pytest.mark.asyncio
    async def test_update(self, professional, service):
        assert await ServiceRepository.update_service(
            professional.id, service.id, name="Manutenção 3 semanas", suggested_price=Decimal("95")
        )
        updated = await ServiceRepository.get_service(professional.id, service.id)
        assert updated.name == "Manutenção 3 semanas"
        assert updated.suggested_price == Decimal("95")
        assert updated.duration_minutes == 30

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fields",
        [
            {"duration_minutes": 0},
            {"duration_minutes": 24 * 60 + 1},
            {"suggested_price": Decimal("-1")},
            {"name": "   "},
            {"price_mode": "hourly"},
        ],
    )
    async def test_update_invalid_fields(self, professional, service, fields):
        with pytest.raises(InvalidInput):
            await ServiceRepository.update_service(professional.id, service.id, **fields)

        unchanged = await ServiceRepository.get_service(professional.id, service.id)
        assert unchanged.duration_minutes == 30
        assert unchanged.suggested_price == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_update_nothing(self, professional, service):
        assert not await ServiceRepository.update_service(professional.id, service.id)

    @pytest.mark.asyncio
    async def test_soft_delete_keeps_row(self, professional, service, long_service):
        assert await ServiceRepository.delete_service(professional.id, service.id)

        kept = await ServiceRepository.get_service(professional.id, service.id)
        assert kept is not None
        assert not kept.is_bookable

        active = await ServiceRepository.get_all_services(professional.id)
        assert [s.id for s in active] == [long_service.id]
        everything = await ServiceRepository.get_all_services(professional.id, active_only=False)
        assert len(everything) == 2


class TestClientRepository:

    @pytest.mark.asyncio
    async def test_create_and_get(self, professional, client):
        stored = await ClientRepository.get_client(professional.id, client.id)
        assert stored.name == "Maria Lima"
        assert stored.phone == "11 99999-0000"

    @pytest.mark.asyncio
    async def test_list_sorted_by_name(self, professional):
        for name in ("Renata", "Alice"):
            await ClientRepository.create_client(Client(id=None, user_id=professional.id, name=name))

        clients = await ClientRepository.list_clients(professional.id)
        assert [c.name for c in clients] == ["Alice", "Renata"]

    @pytest.mark.asyncio
    async def test_update(self, professional, client):
        assert await ClientRepository.update_client(
            professional.id, client.id, email="maria@example.com"
        )
        stored = await ClientRepository.get_client(professional.id, client.id)
        assert stored.email == "maria@example.com"
        assert stored.name == "Maria Lima"

    @pytest.mark.asyncio
    async def test_soft_delete(self, professional, client):
        assert await ClientRepository.delete_client(professional.id, client.id)

        assert await ClientRepository.get_client(professional.id, client.id) is None
        assert await ClientRepository.list_clients(professional.id) == []
        assert not await ClientRepository.update_client(professional.id, client.id, name="X")


class TestAppointmentRowLock:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("is_postgres", [True, False])
    async def test_for_update_only_on_postgres(self, is_postgres):
        conn = MagicMock()
        conn.fetchrow = AsyncMock(return_value=None)

        with patch("database.repositories.appointment_repository.db_adapter") as mock_adapter:
            mock_adapter.is_postgres = is_postgres
            assert await AppointmentRepository.get_by_id(1, 5, conn=conn, for_update=True) is None

        query = conn.fetchrow.call_args.args[0]
        assert query.rstrip().endswith("FOR UPDATE") is is_postgres

    @pytest.mark.asyncio
    async def test_plain_read_never_locks(self):
        conn = MagicMock()
        conn.fetchrow = AsyncMock(return_value=None)

        with patch("database.repositories.appointment_repository.db_adapter") as mock_adapter:
            mock_adapter.is_postgres = True
            await AppointmentRepository.get_by_id(1, 5, conn=conn)

        assert "FOR UPDATE" not in conn.fetchrow.call_args.args[0]
