"""
Issuing and verifying signed session tokens.

Every login mints two HS256 JWTs carrying the same identity claims: a
short-lived access token signed with ``SECRET_KEY`` and a long-lived refresh
token signed with ``SECRET_REFRESH_KEY``. Verification accepts the HMAC family
only and re-checks expiry against our own clock after the signature check.

There is no revocation: a superseded token stays valid until it expires. The
issued pair is written to the user record purely as an audit trail.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
from pydantic import ValidationError

from db.users import UserRepository
from implementation.classes.schemas import Identity, SessionClaims
from implementation.misc.errors import (
    ConfigurationMissing,
    InvalidSignature,
    MalformedToken,
    SigningFailure,
    TokenExpired,
)
from implementation.misc.helpers import utc_now

logger = logging.getLogger(__name__)

ISSUER = "MagicStream"
SIGNING_ALGORITHM = "HS256"
ACCESS_TOKEN_LIFETIME = timedelta(hours=24)
REFRESH_TOKEN_LIFETIME = timedelta(hours=24 * 7)

_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]
_REQUIRED_CLAIMS = ["exp", "iat", "iss"]


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenService:
    """Mints and validates access/refresh token pairs."""

    def __init__(
        self,
        access_key: str,
        refresh_key: str,
        users: UserRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not access_key or not refresh_key:
            raise ConfigurationMissing("Token secret keys are not configured")
        if access_key == refresh_key:
            raise ConfigurationMissing("Access and refresh tokens must use distinct secret keys")
        self._access_key = access_key
        self._refresh_key = refresh_key
        self._users = users
        self._clock = clock

    # ===============================
    #           ISSUING
    # ===============================

    def issue(self, identity: Identity) -> TokenPair:
        """
        Mint an access token (24h) and a refresh token (7 days) for one identity.

        Raises:
            SigningFailure: if either token cannot be encoded.
        """
        issued_at = self._clock()
        access_token = self._sign(identity, issued_at, ACCESS_TOKEN_LIFETIME, self._access_key)
        refresh_token = self._sign(identity, issued_at, REFRESH_TOKEN_LIFETIME, self._refresh_key)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def _sign(self, identity: Identity, issued_at: datetime, lifetime: timedelta, key: str) -> str:
        payload = identity.model_dump(mode="json")
        payload.update(
            {
                "iss": ISSUER,
                "iat": int(issued_at.timestamp()),
                "exp": int((issued_at + lifetime).timestamp()),
            }
        )
        try:
            return jwt.encode(payload, key, algorithm=SIGNING_ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise SigningFailure(f"Failed to generate tokens: {e}")

    async def persist_issued_tokens(self, user_id: str, tokens: TokenPair) -> None:
        """Record the most recently issued pair on the user record."""
        await self._users.update_tokens(
            user_id,
            tokens.access_token,
            tokens.refresh_token,
            self._clock(),
        )

    # ===============================
    #          VERIFYING
    # ===============================

    def verify(self, token: str) -> SessionClaims:
        """Validate an access token and return its claims."""
        return self._verify(token, self._access_key)

    def verify_refresh(self, token: str) -> SessionClaims:
        """
        Validate a refresh token and return its claims.

        No route exchanges refresh tokens yet; a future refresh endpoint
        should validate through here.
        """
        return self._verify(token, self._refresh_key)

    def _verify(self, token: str, key: str) -> SessionClaims:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise MalformedToken(f"Malformed token: {e}")

        # Reject alg substitution ("none", RS*/ES*) before touching the key.
        if header.get("alg") not in _HMAC_ALGORITHMS:
            raise InvalidSignature(f"Unexpected signing algorithm: {header.get('alg')!r}")

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=_HMAC_ALGORITHMS,
                issuer=ISSUER,
                options={"verify_exp": False, "verify_iat": False, "require": _REQUIRED_CLAIMS},
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            raise InvalidSignature(f"Invalid token signature: {e}")
        except jwt.PyJWTError as e:
            raise MalformedToken(f"Malformed token: {e}")

        try:
            claims = SessionClaims(
                email=payload.get("email"),
                first_name=payload.get("first_name"),
                last_name=payload.get("last_name"),
                role=payload.get("role"),
                user_id=payload.get("user_id"),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                issuer=payload["iss"],
            )
        except (ValidationError, TypeError, ValueError, OverflowError) as e:
            raise MalformedToken(f"Malformed token claims: {e}")

        # Expiry is enforced here, not by the JWT library.
        if claims.expires_at <= self._clock():
            logger.debug("Rejected expired token for user %s", claims.user_id)
            raise TokenExpired()

        return claims
