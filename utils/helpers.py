"""Вспомогательные функции для работы с локальным временем"""

from datetime import date, datetime

from config import TIMEZONE


def now_local() -> datetime:
    """Текущее время в часовом поясе студии"""
    return datetime.now(TIMEZONE)


def today_local() -> date:
    """Текущая дата в часовом поясе студии"""
    return now_local().date()


def timestamp() -> str:
    """ISO timestamp for created_at/updated_at columns"""
    return now_local().isoformat()
