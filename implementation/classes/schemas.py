"""
Pydantic schemas for catalog entities, user accounts, and API bodies.

Request models validate every field once at the boundary; the API layer turns
their validation errors into a single structured ``ValidationFailure``.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, constr, field_validator

from .enums import Role
from implementation.misc.helpers import normalize_email

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
BCRYPT_MAX_PASSWORD_BYTES = 72


# -----------------------------
#           CATALOG
# -----------------------------

class Genre(BaseModel):
    genre_id: int = Field(..., ge=0)
    genre_name: constr(strip_whitespace=True, min_length=1)


class Ranking(BaseModel):
    """A ranking stored by value on a movie: numeric rank plus its label."""
    ranking_value: int
    ranking_name: constr(strip_whitespace=True, min_length=1)


class SentimentLabel(Ranking):
    """One entry of the controlled sentiment vocabulary."""


def _dedupe_genres(genres: List[Genre]) -> List[Genre]:
    # Genres behave as a set keyed by genre_id; first occurrence wins.
    seen: set[int] = set()
    unique: List[Genre] = []
    for genre in genres:
        if genre.genre_id in seen:
            continue
        seen.add(genre.genre_id)
        unique.append(genre)
    return unique


class AddMovieRequest(BaseModel):
    """Catalog fields a client may supply; review and ranking start empty."""
    imdb_id: constr(strip_whitespace=True, min_length=1)
    title: constr(strip_whitespace=True, min_length=2, max_length=500)
    poster_path: constr(strip_whitespace=True, min_length=1)
    youtube_id: constr(strip_whitespace=True, min_length=1)
    genre: List[Genre] = Field(..., min_length=1)

    @field_validator("genre")
    @classmethod
    def unique_genres(cls, value: List[Genre]) -> List[Genre]:
        return _dedupe_genres(value)


class Movie(AddMovieRequest):
    admin_review: str = ""
    ranking: Optional[Ranking] = None


class InsertResult(BaseModel):
    inserted_id: str


class AdminReviewRequest(BaseModel):
    admin_review: str

    @field_validator("admin_review")
    @classmethod
    def not_blank(cls, value: str) -> str:
        # Stored exactly as received.
        if not value.strip():
            raise ValueError("admin_review must not be blank")
        return value


class AdminReviewResponse(BaseModel):
    ranking_name: str
    admin_review: str


class RankedReview(BaseModel):
    """Outcome of the review ranking pipeline."""
    ranking_name: str
    ranking_value: int


# -----------------------------
#           ACCOUNTS
# -----------------------------

class RegisterRequest(BaseModel):
    first_name: constr(strip_whitespace=True, min_length=2, max_length=100)
    last_name: constr(strip_whitespace=True, min_length=2, max_length=100)
    email: constr(strip_whitespace=True, pattern=_EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=BCRYPT_MAX_PASSWORD_BYTES)
    role: Role = Role.USER
    favourite_genres: List[Genre]

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("password")
    @classmethod
    def fits_bcrypt_limit(cls, value: str) -> str:
        if len(value.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")
        return value

    @field_validator("favourite_genres")
    @classmethod
    def unique_genres(cls, value: List[Genre]) -> List[Genre]:
        return _dedupe_genres(value)


class LoginRequest(BaseModel):
    email: constr(strip_whitespace=True, min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return normalize_email(value)


class UserAccount(BaseModel):
    """A stored user. ``password`` always holds the bcrypt hash."""
    user_id: str
    first_name: str
    last_name: str
    email: str
    password: str
    role: Role
    created_at: datetime
    updated_at: datetime
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    favourite_genres: List[Genre] = Field(default_factory=list)


class LoginResponse(BaseModel):
    user_id: str
    first_name: str
    last_name: str
    email: str
    role: Role
    token: str
    refresh_token: str
    favourite_genres: List[Genre]


# -----------------------------
#           SESSIONS
# -----------------------------

class Identity(BaseModel):
    """Identity claims embedded in every issued token."""
    email: str
    first_name: str
    last_name: str
    role: Role
    user_id: str


class SessionClaims(Identity):
    issued_at: datetime
    expires_at: datetime
    issuer: str
