"""
Registration and login.

Password hashing is CPU-bound, so bcrypt runs in a worker thread to keep the
event loop responsive. Login never tells an unknown email apart from a wrong
password.
"""

import asyncio
import logging
from functools import lru_cache
from typing import Optional
from uuid import uuid4

from db.users import UserRepository
from implementation.auth.passwords import hash_password, verify_password
from implementation.auth.tokens import TokenService
from implementation.classes.schemas import (
    Identity,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserAccount,
)
from implementation.misc.errors import AuthenticationFailure, Conflict
from implementation.misc.helpers import utc_now

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS = "Invalid email or password"


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password(uuid4().hex)


def _password_matches(password: str, stored_hash: Optional[str]) -> bool:
    # Unknown emails still pay for one bcrypt check.
    return verify_password(password, stored_hash or _dummy_hash())


class AccountService:

    def __init__(self, users: UserRepository, tokens: TokenService) -> None:
        self._users = users
        self._tokens = tokens

    async def register(self, request: RegisterRequest) -> str:
        """
        Create a new account and return its user_id.

        Raises:
            Conflict: if the email is already registered (pre-check or the
                storage-level unique constraint).
        """
        if await self._users.count_by_email(request.email) > 0:
            logger.info("Registration rejected, email already in use: %s", request.email)
            raise Conflict("User already exists")

        hashed_password = await asyncio.to_thread(hash_password, request.password)
        now = utc_now()
        user = UserAccount(
            user_id=uuid4().hex,
            first_name=request.first_name,
            last_name=request.last_name,
            email=request.email,
            password=hashed_password,
            role=request.role,
            created_at=now,
            updated_at=now,
            favourite_genres=request.favourite_genres,
        )
        user_id = await self._users.insert(user)
        logger.info("Registered user %s", user_id)
        return user_id

    async def login(self, request: LoginRequest) -> LoginResponse:
        """
        Check credentials, mint a fresh token pair, and record it on the user.

        Raises:
            AuthenticationFailure: unknown email or wrong password.
        """
        user = await self._users.find_by_email(request.email)
        stored_hash = user.password if user is not None else None
        password_matches = await asyncio.to_thread(_password_matches, request.password, stored_hash)
        if user is None or not password_matches:
            logger.info("Login failed for %s", request.email)
            raise AuthenticationFailure(_INVALID_CREDENTIALS)

        tokens = self._tokens.issue(
            Identity(
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
                role=user.role,
                user_id=user.user_id,
            )
        )
        await self._tokens.persist_issued_tokens(user.user_id, tokens)

        return LoginResponse(
            user_id=user.user_id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            role=user.role,
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            favourite_genres=user.favourite_genres,
        )
