"""Фасад для работы с базой данных: создание схемы"""

import logging

from database.db_adapter import db_adapter

__all__ = ["Database"]

logger = logging.getLogger(__name__)


class Database:
    """
    Фасад для работы с базой данных.
    Создает таблицы и индексы; запросы живут в репозиториях.
    """

    # === ИНИЦИАЛИЗАЦИЯ ===

    @staticmethod
    async def init_db():
        """Инициализация БД с таблицами и индексами

        Dates and times are stored as ISO TEXT ("YYYY-MM-DD", "HH:MM") and
        money as TEXT decimals, so both backends share one schema.
        """
        if db_adapter.is_postgres:
            pk_syntax = "SERIAL PRIMARY KEY"
        else:
            pk_syntax = "INTEGER PRIMARY KEY AUTOINCREMENT"

        tables = [
            f"""CREATE TABLE IF NOT EXISTS profiles (
                id {pk_syntax},
                full_name TEXT NOT NULL,
                booking_slug TEXT UNIQUE,
                booking_enabled BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TEXT
            )""",
            f"""CREATE TABLE IF NOT EXISTS clients (
                id {pk_syntax},
                user_id INTEGER NOT NULL REFERENCES profiles(id),
                name TEXT NOT NULL,
                email TEXT,
                phone TEXT,
                notes TEXT,
                birth_date TEXT,
                created_at TEXT,
                updated_at TEXT,
                deleted_at TEXT
            )""",
            f"""CREATE TABLE IF NOT EXISTS services (
                id {pk_syntax},
                user_id INTEGER NOT NULL REFERENCES profiles(id),
                name TEXT NOT NULL,
                duration_minutes INTEGER NOT NULL CHECK (duration_minutes > 0),
                price_mode TEXT NOT NULL DEFAULT 'fixed',
                suggested_price TEXT,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                include_salon_percentage BOOLEAN NOT NULL DEFAULT FALSE,
                salon_percentage TEXT,
                created_at TEXT,
                updated_at TEXT,
                deleted_at TEXT
            )""",
            f"""CREATE TABLE IF NOT EXISTS working_hours (
                id {pk_syntax},
                user_id INTEGER NOT NULL REFERENCES profiles(id),
                day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TEXT,
                updated_at TEXT,
                UNIQUE (user_id, day_of_week)
            )""",
            f"""CREATE TABLE IF NOT EXISTS blocked_slots (
                id {pk_syntax},
                user_id INTEGER NOT NULL REFERENCES profiles(id),
                blocked_date TEXT NOT NULL,
                blocked_time TEXT,
                is_full_day BOOLEAN NOT NULL DEFAULT FALSE,
                reason TEXT,
                created_at TEXT,
                updated_at TEXT,
                deleted_at TEXT,
                CHECK (
                    (is_full_day AND blocked_time IS NULL)
                    OR (NOT is_full_day AND blocked_time IS NOT NULL)
                )
            )""",
            f"""CREATE TABLE IF NOT EXISTS booking_time_slots (
                id {pk_syntax},
                user_id INTEGER NOT NULL REFERENCES profiles(id),
                time_slot TEXT NOT NULL,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TEXT,
                updated_at TEXT,
                UNIQUE (user_id, time_slot)
            )""",
            f"""CREATE TABLE IF NOT EXISTS appointments (
                id {pk_syntax},
                user_id INTEGER NOT NULL REFERENCES profiles(id),
                client_id INTEGER NOT NULL REFERENCES clients(id),
                service_id INTEGER NOT NULL REFERENCES services(id),
                appointment_date TEXT NOT NULL,
                appointment_time TEXT NOT NULL,
                price TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'scheduled'
                    CHECK (status IN ('scheduled', 'confirmed', 'completed', 'cancelled')),
                payment_method TEXT,
                payment_status TEXT,
                notes TEXT,
                include_salon_percentage BOOLEAN NOT NULL DEFAULT FALSE,
                salon_percentage TEXT,
                created_at TEXT,
                updated_at TEXT,
                deleted_at TEXT
            )""",
        ]

        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_appointments_user_date "
            "ON appointments(user_id, appointment_date)",
            "CREATE INDEX IF NOT EXISTS idx_blocked_slots_user_date "
            "ON blocked_slots(user_id, blocked_date)",
            "CREATE INDEX IF NOT EXISTS idx_services_user ON services(user_id)",
            "CREATE INDEX IF NOT EXISTS idx_clients_user ON clients(user_id)",
        ]

        async with db_adapter.acquire() as conn:
            for statement in tables + indexes:
                await conn.execute(statement)

        logger.info(f"✅ Database schema ready ({len(tables)} tables)")
