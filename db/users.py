"""
User account persistence.

Email uniqueness is enforced by the ``users_email_key`` constraint; a
concurrent duplicate registration that slips past ``count_by_email`` surfaces
here as ``Conflict``.
"""

from datetime import datetime
from typing import Optional

from psycopg.types.json import Jsonb

from db.postgres import PostgresRepository
from implementation.classes.schemas import UserAccount

_USER_COLUMNS = (
    "user_id, first_name, last_name, email, password, role, "
    "created_at, updated_at, token, refresh_token, favourite_genres"
)


def _row_to_user(row: tuple) -> UserAccount:
    (
        user_id, first_name, last_name, email, password, role,
        created_at, updated_at, token, refresh_token, favourite_genres,
    ) = row
    return UserAccount(
        user_id=user_id,
        first_name=first_name,
        last_name=last_name,
        email=email,
        password=password,
        role=role,
        created_at=created_at,
        updated_at=updated_at,
        token=token,
        refresh_token=refresh_token,
        favourite_genres=favourite_genres or [],
    )


class UserRepository(PostgresRepository):

    async def find_by_email(self, email: str) -> Optional[UserAccount]:
        row = await self._guard(
            self._execute_read_one(
                f"SELECT {_USER_COLUMNS} FROM public.users WHERE email = %s",
                (email,),
            ),
            "fetch user",
        )
        return _row_to_user(row) if row else None

    async def count_by_email(self, email: str) -> int:
        row = await self._guard(
            self._execute_read_one("SELECT COUNT(*) FROM public.users WHERE email = %s", (email,)),
            "check existing user",
        )
        return int(row[0]) if row else 0

    async def insert(self, user: UserAccount) -> str:
        """Insert a new account and return its user_id."""
        row = await self._guard(
            self._execute_write(
                f"INSERT INTO public.users ({_USER_COLUMNS}) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s) RETURNING user_id",
                (
                    user.user_id,
                    user.first_name,
                    user.last_name,
                    user.email,
                    user.password,
                    user.role.value,
                    user.created_at,
                    user.updated_at,
                    user.token,
                    user.refresh_token,
                    Jsonb([genre.model_dump() for genre in user.favourite_genres]),
                ),
                fetch_one=True,
            ),
            "create user",
            conflict_message="User already exists",
        )
        return row[0]

    async def update_tokens(self, user_id: str, token: str, refresh_token: str, updated_at: datetime) -> None:
        await self._guard(
            self._execute_write(
                "UPDATE public.users SET token = %s, refresh_token = %s, updated_at = %s WHERE user_id = %s",
                (token, refresh_token, updated_at, user_id),
            ),
            "update tokens",
        )
