"""Shared pytest fixtures for unit tests."""

from datetime import datetime, timezone
from typing import Any, Callable, Optional
from pathlib import Path
import sys

import pytest

# Ensure project root is importable when tests run from repository root.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from implementation.auth.tokens import TokenService
from implementation.classes.schemas import AddMovieRequest, Genre, Movie, Ranking, SentimentLabel, UserAccount
from implementation.misc.errors import Conflict, DependencyUnavailable, NotFound

ACCESS_KEY = "access-secret-key-for-tests-0123456789"
REFRESH_KEY = "refresh-secret-key-for-tests-9876543210"


# ===============================
#            FAKES
# ===============================

class FakeUserRepository:
    """In-memory stand-in for db.users.UserRepository, unique on email and user_id."""

    def __init__(self) -> None:
        self.users: dict[str, UserAccount] = {}
        self.insert_calls = 0
        self.token_updates: list[tuple[str, str, str, datetime]] = []

    async def find_by_email(self, email: str) -> Optional[UserAccount]:
        return self.users.get(email)

    async def count_by_email(self, email: str) -> int:
        return 1 if email in self.users else 0

    async def insert(self, user: UserAccount) -> str:
        self.insert_calls += 1
        if user.email in self.users:
            raise Conflict("User already exists")
        self.users[user.email] = user
        return user.user_id

    async def update_tokens(self, user_id: str, token: str, refresh_token: str, updated_at: datetime) -> None:
        self.token_updates.append((user_id, token, refresh_token, updated_at))
        for email, user in self.users.items():
            if user.user_id == user_id:
                self.users[email] = user.model_copy(
                    update={"token": token, "refresh_token": refresh_token, "updated_at": updated_at}
                )


class FakeMovieRepository:
    """In-memory stand-in for db.movies.MovieRepository."""

    def __init__(self, movies: Optional[list[Movie]] = None) -> None:
        self.movies: dict[str, Movie] = {movie.imdb_id: movie for movie in movies or []}
        self.updates: list[tuple[str, str, Ranking]] = []

    async def find_all(self) -> list[Movie]:
        return list(self.movies.values())

    async def find_by_imdb_id(self, imdb_id: str) -> Movie:
        if imdb_id not in self.movies:
            raise NotFound("Movie not found")
        return self.movies[imdb_id]

    async def insert(self, movie: AddMovieRequest) -> str:
        if movie.imdb_id in self.movies:
            raise Conflict("A movie with this imdb_id already exists")
        self.movies[movie.imdb_id] = Movie(**movie.model_dump(include=set(AddMovieRequest.model_fields)))
        return str(len(self.movies))

    async def update_review_and_ranking(self, imdb_id: str, admin_review: str, ranking: Ranking) -> int:
        self.updates.append((imdb_id, admin_review, ranking))
        if imdb_id not in self.movies:
            return 0
        self.movies[imdb_id] = self.movies[imdb_id].model_copy(
            update={"admin_review": admin_review, "ranking": ranking}
        )
        return 1


class FakeVocabularyStore:

    def __init__(self, labels: list[tuple[str, int]], fail: bool = False) -> None:
        self.labels = [SentimentLabel(ranking_name=name, ranking_value=value) for name, value in labels]
        self.fail = fail
        self.calls = 0

    async def list_labels(self) -> list[SentimentLabel]:
        self.calls += 1
        if self.fail:
            raise DependencyUnavailable("Database unavailable while trying to fetch rankings")
        return list(self.labels)


class FakeClassifier:
    """Records prompts and returns a canned label (or raises a canned error)."""

    def __init__(self, response: str = "", error: Optional[Exception] = None) -> None:
        self.response = response
        self.error = error
        self.prompts: list[str] = []

    async def classify(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


# ===============================
#           FIXTURES
# ===============================

@pytest.fixture
def user_repository() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def token_service(user_repository: FakeUserRepository) -> TokenService:
    return TokenService(ACCESS_KEY, REFRESH_KEY, user_repository)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Return a factory building clocks frozen at a given aware datetime."""

    def _factory(moment: datetime) -> Callable[[], datetime]:
        return lambda: moment

    return _factory


@pytest.fixture
def movie_factory() -> Callable[..., Movie]:
    """Return a factory that builds a valid Movie with optional overrides."""

    def _factory(**overrides: Any) -> Movie:
        base_data: dict[str, Any] = {
            "imdb_id": "tt0133093",
            "title": "The Matrix",
            "poster_path": "https://image.test/matrix.jpg",
            "youtube_id": "vKQi3bBA1y8",
            "genre": [Genre(genre_id=1, genre_name="Action"), Genre(genre_id=2, genre_name="Sci-Fi")],
            "admin_review": "",
            "ranking": None,
        }
        base_data.update(overrides)
        return Movie(**base_data)

    return _factory


@pytest.fixture
def user_factory() -> Callable[..., UserAccount]:
    """Return a factory for stored UserAccount records (password already hashed)."""

    def _factory(**overrides: Any) -> UserAccount:
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        base_data: dict[str, Any] = {
            "user_id": "5f1d7c2a9b8e4d3c2b1a0f9e",
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
            "password": "$2b$12$invalidinvalidinvalidinvalidinvalidinvalidinvalidinv",
            "role": "USER",
            "created_at": now,
            "updated_at": now,
            "favourite_genres": [Genre(genre_id=3, genre_name="Drama")],
        }
        base_data.update(overrides)
        return UserAccount(**base_data)

    return _factory
