"""Общие фикстуры: временная SQLite БД и тестовые данные"""

import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

from database.db_adapter import db_adapter
from database.models import Client
from database.queries import Database
from database.repositories.client_repository import ClientRepository
from database.repositories.profile_repository import ProfileRepository
from database.repositories.service_repository import ServiceRepository
from services.booking_catalog import BookingCatalog
from services.working_hours_policy import WorkingHoursPolicy

# 2030-01-07 is a Monday (day_of_week == 1), 2030-01-08 a Tuesday
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


@pytest.fixture
async def db():
    """Создает временную БД для тестов"""
    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = temp_file.name
    temp_file.close()

    await db_adapter.init_pool(db_type="sqlite", database_path=db_path)
    await Database.init_db()

    yield db_path

    await db_adapter.close_pool()
    # Удаление временной БД
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
async def professional(db):
    """Профессионал с включённой публичной записью"""
    return await ProfileRepository.create_profile(
        "Ana Souza", booking_slug="ana-lash", booking_enabled=True
    )


@pytest.fixture
async def service(professional):
    """Услуга 30 минут"""
    return await ServiceRepository.create_service(
        professional.id, "Manutenção", 30, suggested_price=Decimal("80.00")
    )


@pytest.fixture
async def long_service(professional):
    """Услуга 90 минут"""
    return await ServiceRepository.create_service(
        professional.id, "Volume Russo", 90, suggested_price=Decimal("250.00")
    )


@pytest.fixture
async def client(professional):
    return await ClientRepository.create_client(
        Client(id=None, user_id=professional.id, name="Maria Lima", phone="11 99999-0000")
    )


@pytest.fixture
async def other_client(professional):
    return await ClientRepository.create_client(
        Client(id=None, user_id=professional.id, name="Joana Reis")
    )


@pytest.fixture
async def monday_setup(professional):
    """Понедельник 09:00-12:00, каталог {09:00, 10:00, 11:00}"""
    await WorkingHoursPolicy(professional.id).save_week(
        [{"day_of_week": 1, "start_time": "09:00", "end_time": "12:00", "is_active": True}]
    )
    await BookingCatalog(professional.id).replace_slots(["09:00", "10:00", "11:00"])
    return professional
