"""
User Repository

Role directory: which email acts in which workflow role.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import asyncpg
from loguru import logger

from ccas_api.errors import ConflictError
from ccas_api.errors import NotFoundError
from ccas_api.workflow.db.repository_base import BaseRepository
from ccas_api.workflow.db.repository_base import row_to_dict
from ccas_api.workflow.enums import Role


class UserRepository(BaseRepository):
    """Users repository."""

    def __init__(self, pool: asyncpg.Pool):
        super().__init__(pool, "users")

    async def list_users(self, conn: Optional[asyncpg.Connection] = None) -> List[Dict[str, Any]]:
        async with self.connection(conn) as c:
            rows = await c.fetch(f"SELECT * FROM {self.qualified_table} ORDER BY email")
        return [dict(row) for row in rows]

    async def get(self, email: str, conn: Optional[asyncpg.Connection] = None) -> Optional[Dict[str, Any]]:
        async with self.connection(conn) as c:
            row = await c.fetchrow(f"SELECT * FROM {self.qualified_table} WHERE email = $1", email)
        return row_to_dict(row)

    async def create(
        self,
        email: str,
        role: Role,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Dict[str, Any]:
        """
        Add a user.

        Raises:
            ConflictError: a user with this email already exists
        """
        try:
            async with self.connection(conn) as c:
                row = await c.fetchrow(
                    f"""
                    INSERT INTO {self.qualified_table} (email, role, created_at)
                    VALUES ($1, $2, NOW())
                    RETURNING *
                    """,
                    email,
                    Role(role).value,
                )
        except asyncpg.UniqueViolationError:
            raise ConflictError(f"User already exists: {email}")

        logger.info("User created", email=email, role=Role(role).value)
        return dict(row)

    async def delete(self, email: str, conn: Optional[asyncpg.Connection] = None) -> None:
        """
        Remove a user.

        Raises:
            NotFoundError: unknown email
        """
        async with self.connection(conn) as c:
            deleted = await c.fetchval(
                f"DELETE FROM {self.qualified_table} WHERE email = $1 RETURNING email",
                email,
            )
        if deleted is None:
            raise NotFoundError(f"User not found: {email}")
        logger.info("User deleted", email=email)

    async def get_email_for_role(self, role: Role, conn: Optional[asyncpg.Connection] = None) -> Optional[str]:
        """Email of the user acting in a role (earliest registered wins)."""
        async with self.connection(conn) as c:
            return await c.fetchval(
                f"SELECT email FROM {self.qualified_table} WHERE role = $1 ORDER BY created_at ASC LIMIT 1",
                Role(role).value,
            )
