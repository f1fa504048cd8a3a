"""Репозиторий для работы с клиентами"""

import logging
from typing import List, Optional

from database.db_adapter import affected_rows, db_adapter
from database.models import Client
from utils.error_handler import translate_storage_errors
from utils.helpers import timestamp

CLIENT_COLUMNS = "id, user_id, name, email, phone, notes, birth_date"


class ClientRepository:
    """Репозиторий для управления клиентами"""

    @staticmethod
    @translate_storage_errors
    async def get_client(user_id: int, client_id: int, conn=None) -> Optional[Client]:
        """Получить клиента по ID"""
        executor = conn or db_adapter
        row = await executor.fetchrow(
            f"""SELECT {CLIENT_COLUMNS} FROM clients
            WHERE id = $1 AND user_id = $2 AND deleted_at IS NULL""",
            client_id, user_id
        )
        return Client.from_row(row) if row else None

    @staticmethod
    @translate_storage_errors
    async def list_clients(user_id: int) -> List[Client]:
        """Все клиенты профессионала по имени"""
        rows = await db_adapter.fetch(
            f"""SELECT {CLIENT_COLUMNS} FROM clients
            WHERE user_id = $1 AND deleted_at IS NULL
            ORDER BY name""",
            user_id
        )
        return [Client.from_row(row) for row in rows]

    @staticmethod
    @translate_storage_errors
    async def create_client(client: Client, conn=None) -> Client:
        """Создать клиента

        Pass ``conn`` to insert inside a running transaction.
        """
        executor = conn or db_adapter
        now = timestamp()
        client.id = await executor.fetchval(
            """INSERT INTO clients (user_id, name, email, phone, notes, birth_date,
                created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING id""",
            client.user_id,
            client.name.strip(),
            client.email,
            client.phone,
            client.notes,
            client.birth_date,
            now,
            now,
        )
        logging.info(f"Client created: {client.id} for user {client.user_id}")
        return client

    @staticmethod
    @translate_storage_errors
    async def update_client(
        user_id: int,
        client_id: int,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> bool:
        """Обновить контактные данные клиента (только переданные поля)"""
        updates = []
        params = []
        param_num = 1

        for column, value in (("name", name), ("email", email), ("phone", phone), ("notes", notes)):
            if value is not None:
                updates.append(f"{column} = ${param_num}")
                params.append(value)
                param_num += 1

        if not updates:
            return False

        updates.append(f"updated_at = ${param_num}")
        params.append(timestamp())
        param_num += 1

        params.extend([client_id, user_id])
        query = (
            f"UPDATE clients SET {', '.join(updates)} "
            f"WHERE id = ${param_num} AND user_id = ${param_num + 1} AND deleted_at IS NULL"
        )
        return affected_rows(await db_adapter.execute(query, *params)) == 1

    @staticmethod
    @translate_storage_errors
    async def delete_client(user_id: int, client_id: int) -> bool:
        """Мягкое удаление клиента"""
        result = await db_adapter.execute(
            "UPDATE clients SET deleted_at = $1 WHERE id = $2 AND user_id = $3",
            timestamp(), client_id, user_id
        )
        return affected_rows(result) == 1
