"""
FastAPI dependency providers.

Repositories and services are built once in the lifespan handler and stored on
``app.state``; these providers hand them to route functions so tests can swap
them through ``app.dependency_overrides``.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, Request
from psycopg_pool import AsyncConnectionPool

from db.movies import MovieRepository
from implementation.accounts import AccountService
from implementation.auth.tokens import TokenService
from implementation.classes.enums import Role
from implementation.classes.schemas import SessionClaims
from implementation.misc.errors import AuthenticationFailure, AuthorizationFailure
from implementation.misc.helpers import parse_bearer_token
from implementation.review_ranking import ReviewRankingPipeline

logger = logging.getLogger(__name__)


def get_pool(request: Request) -> AsyncConnectionPool:
    return request.app.state.pool


def get_movie_repository(request: Request) -> MovieRepository:
    return request.app.state.movies


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_account_service(request: Request) -> AccountService:
    return request.app.state.accounts


def get_ranking_pipeline(request: Request) -> ReviewRankingPipeline:
    return request.app.state.ranking


def get_current_claims(
    authorization: Optional[str] = Header(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> SessionClaims:
    """Require a valid ``Authorization: Bearer <token>`` header."""
    token = parse_bearer_token(authorization)
    if token is None:
        raise AuthenticationFailure("Authorization header with a bearer token is required")
    try:
        return tokens.verify(token)
    except AuthenticationFailure as e:
        logger.debug("Token rejected: %s", e.message)
        raise AuthenticationFailure("Invalid token")


def require_admin(claims: SessionClaims = Depends(get_current_claims)) -> SessionClaims:
    if claims.role is not Role.ADMIN:
        raise AuthorizationFailure("Admin role required")
    return claims
