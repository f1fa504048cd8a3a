"""Репозиторий для работы с профилями профессионалов"""

import logging
from typing import Optional

from database.db_adapter import affected_rows, db_adapter
from database.models import Profile
from utils.error_handler import translate_storage_errors
from utils.helpers import timestamp


class ProfileRepository:
    """Репозиторий для управления профилями"""

    @staticmethod
    @translate_storage_errors
    async def get_profile(user_id: int) -> Optional[Profile]:
        row = await db_adapter.fetchrow(
            "SELECT id, full_name, booking_slug, booking_enabled FROM profiles WHERE id = $1",
            user_id
        )
        return Profile.from_row(row) if row else None

    @staticmethod
    @translate_storage_errors
    async def get_by_slug(slug: str) -> Optional[Profile]:
        """Найти профиль по публичной ссылке записи"""
        row = await db_adapter.fetchrow(
            """SELECT id, full_name, booking_slug, booking_enabled
            FROM profiles WHERE booking_slug = $1""",
            slug
        )
        return Profile.from_row(row) if row else None

    @staticmethod
    @translate_storage_errors
    async def create_profile(
        full_name: str, booking_slug: Optional[str] = None, booking_enabled: bool = False
    ) -> Profile:
        """Создать профиль профессионала"""
        profile_id = await db_adapter.fetchval(
            """INSERT INTO profiles (full_name, booking_slug, booking_enabled, created_at)
            VALUES ($1, $2, $3, $4)
            RETURNING id""",
            full_name, booking_slug, booking_enabled, timestamp()
        )
        logging.info(f"Profile created: {profile_id} ({booking_slug})")
        return Profile(
            id=profile_id,
            full_name=full_name,
            booking_slug=booking_slug,
            booking_enabled=booking_enabled,
        )

    @staticmethod
    @translate_storage_errors
    async def set_booking_enabled(user_id: int, enabled: bool) -> bool:
        """Включить/выключить публичную запись"""
        result = await db_adapter.execute(
            "UPDATE profiles SET booking_enabled = $1 WHERE id = $2",
            enabled, user_id
        )
        updated = affected_rows(result) == 1
        if updated:
            logging.info(f"Public booking {'enabled' if enabled else 'disabled'} for user {user_id}")
        return updated
