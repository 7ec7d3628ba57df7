"""Unit tests for the api.main HTTP surface."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from api import dependencies
from api.main import app
from conftest import ACCESS_KEY, REFRESH_KEY, FakeClassifier, FakeMovieRepository, FakeVocabularyStore
from implementation.accounts import AccountService
from implementation.auth.tokens import TokenService
from implementation.classes.enums import Role
from implementation.classes.schemas import Identity
from implementation.misc.errors import ClassificationFailure, DependencyUnavailable
from implementation.review_ranking import ReviewRankingPipeline

TEMPLATE = "Return a response using one of these words: {rankings}. Review: "


@pytest.fixture
def movies(movie_factory) -> FakeMovieRepository:
    return FakeMovieRepository([movie_factory()])


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier(response="Great")


@pytest.fixture
def client(movies, classifier, user_repository, token_service):
    """TestClient with every app.state dependency replaced by in-memory fakes."""
    pipeline = ReviewRankingPipeline(
        vocabulary=FakeVocabularyStore([("Great", 5), ("Bad", 1), ("Unranked", 999)]),
        movies=movies,
        classifier=classifier,
        prompt_template=TEMPLATE,
    )
    app.dependency_overrides[dependencies.get_pool] = lambda: MagicMock()
    app.dependency_overrides[dependencies.get_movie_repository] = lambda: movies
    app.dependency_overrides[dependencies.get_token_service] = lambda: token_service
    app.dependency_overrides[dependencies.get_account_service] = lambda: AccountService(user_repository, token_service)
    app.dependency_overrides[dependencies.get_ranking_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


def _bearer(token_service: TokenService, role: Role = Role.USER) -> dict:
    pair = token_service.issue(
        Identity(email="a@x.com", first_name="Alice", last_name="Smith", role=role, user_id="u1")
    )
    return {"Authorization": f"Bearer {pair.access_token}"}


def _movie_payload(**overrides) -> dict:
    payload = {
        "imdb_id": "tt0111161",
        "title": "The Shawshank Redemption",
        "poster_path": "https://image.test/shawshank.jpg",
        "youtube_id": "6hB3S9bIaco",
        "genre": [{"genre_id": 3, "genre_name": "Drama"}],
    }
    payload.update(overrides)
    return payload


def _register_payload(**overrides) -> dict:
    payload = {
        "first_name": "Alice",
        "last_name": "Smith",
        "email": "a@x.com",
        "password": "secret1",
        "role": "USER",
        "favourite_genres": [{"genre_id": 1, "genre_name": "Comedy"}],
    }
    payload.update(overrides)
    return payload


# ===============================
#        PUBLIC ROUTES
# ===============================

def test_hello(client) -> None:
    response = client.get("/hello")
    assert response.status_code == 200
    assert response.text == "Hello, Magic_stream_movies!"


def test_health_check_reports_postgres_status(client, mocker) -> None:
    """health_check should report the result of the Postgres ping."""
    mocker.patch("api.main.check_postgres", new=AsyncMock(return_value="ok"))
    assert client.get("/health").json() == {"postgres": "ok"}


def test_health_check_reports_postgres_failure(client, mocker) -> None:
    mocker.patch("api.main.check_postgres", new=AsyncMock(return_value="connection refused"))
    assert client.get("/health").json() == {"postgres": "connection refused"}


def test_get_movies_is_public(client) -> None:
    response = client.get("/movies")
    assert response.status_code == 200
    body = response.json()
    assert [movie["imdb_id"] for movie in body] == ["tt0133093"]
    assert body[0]["ranking"] is None


def test_get_movies_maps_storage_failure_to_500(client, movies, mocker) -> None:
    mocker.patch.object(movies, "find_all", side_effect=DependencyUnavailable("Database timed out"))
    response = client.get("/movies")
    assert response.status_code == 500
    assert response.json() == {"error": "Database timed out"}


def test_unexpected_error_is_generic_500(client, movies, mocker) -> None:
    """Unknown exceptions never leak their message to the client."""
    mocker.patch.object(movies, "find_all", side_effect=RuntimeError("connection string has password=hunter2"))
    response = TestClient(app, raise_server_exceptions=False).get("/movies")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


# ===============================
#        AUTHENTICATION
# ===============================

@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": ""},
        {"Authorization": "Bearer "},
        {"Authorization": "Basic dXNlcjpwYXNz"},
        {"Authorization": "Bearer not-a-token"},
    ],
)
def test_protected_route_rejects_missing_or_bad_token(client, headers) -> None:
    """Missing, malformed or invalid bearer tokens are rejected with 401."""
    response = client.get("/movie/tt0133093", headers=headers)
    assert response.status_code == 401
    assert "error" in response.json()


def test_protected_route_rejects_expired_token(client, fixed_clock) -> None:
    stale = TokenService(
        ACCESS_KEY, REFRESH_KEY, MagicMock(), clock=fixed_clock(datetime.now(timezone.utc) - timedelta(days=2))
    )
    response = client.get("/movie/tt0133093", headers=_bearer(stale))
    assert response.status_code == 401


def test_protected_route_rejects_refresh_token_as_access_token(client, token_service) -> None:
    pair = token_service.issue(
        Identity(email="a@x.com", first_name="Alice", last_name="Smith", role=Role.USER, user_id="u1")
    )
    response = client.get("/movie/tt0133093", headers={"Authorization": f"Bearer {pair.refresh_token}"})
    assert response.status_code == 401


def test_get_movie_with_valid_token(client, token_service) -> None:
    response = client.get("/movie/tt0133093", headers=_bearer(token_service))
    assert response.status_code == 200
    assert response.json()["title"] == "The Matrix"


def test_get_movie_unknown_id_is_404(client, token_service) -> None:
    response = client.get("/movie/tt0000000", headers=_bearer(token_service))
    assert response.status_code == 404


def test_get_movie_blank_id_is_400(client, token_service) -> None:
    response = client.get("/movie/%20", headers=_bearer(token_service))
    assert response.status_code == 400


# ===============================
#           ADD MOVIE
# ===============================

def test_add_movie_creates_movie(client, token_service, movies) -> None:
    response = client.post("/addmovie", json=_movie_payload(), headers=_bearer(token_service))
    assert response.status_code == 201
    assert "inserted_id" in response.json()
    assert "tt0111161" in movies.movies


def test_add_movie_ignores_client_supplied_ranking(client, token_service, movies) -> None:
    """A new movie starts unreviewed and unranked whatever the body says."""
    response = client.post(
        "/addmovie",
        json=_movie_payload(admin_review="Planted", ranking={"ranking_value": 42, "ranking_name": "Bogus"}),
        headers=_bearer(token_service),
    )
    assert response.status_code == 201
    stored = movies.movies["tt0111161"]
    assert stored.ranking is None
    assert stored.admin_review == ""


def test_add_movie_requires_token(client, movies) -> None:
    response = client.post("/addmovie", json=_movie_payload())
    assert response.status_code == 401
    assert "tt0111161" not in movies.movies


def test_add_movie_validation_failure_is_400_with_details(client, token_service) -> None:
    """Invalid bodies produce one 400 listing every offending field."""
    response = client.post(
        "/addmovie",
        json=_movie_payload(title="", genre=[]),
        headers=_bearer(token_service),
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    fields = {detail["field"] for detail in body["details"]}
    assert {"title", "genre"} <= fields


def test_add_movie_duplicate_is_409(client, token_service) -> None:
    response = client.post("/addmovie", json=_movie_payload(imdb_id="tt0133093"), headers=_bearer(token_service))
    assert response.status_code == 409


# ===============================
#         ADMIN REVIEW
# ===============================

@pytest.mark.parametrize("method", ["PUT", "PATCH"])
def test_update_review_ranks_and_stores(client, token_service, movies, classifier, method) -> None:
    """Admins can post a review; the response carries the resolved label."""
    response = client.request(
        method,
        "/movie/tt0133093/review",
        json={"admin_review": "A landmark of the genre."},
        headers=_bearer(token_service, Role.ADMIN),
    )

    assert response.status_code == 200
    assert response.json() == {"ranking_name": "Great", "admin_review": "A landmark of the genre."}
    assert movies.movies["tt0133093"].ranking.ranking_value == 5
    assert "Unranked" not in classifier.prompts[0]


def test_update_review_stores_text_as_received(client, token_service, movies) -> None:
    response = client.put(
        "/movie/tt0133093/review",
        json={"admin_review": "  Tense.\n"},
        headers=_bearer(token_service, Role.ADMIN),
    )
    assert response.status_code == 200
    assert response.json()["admin_review"] == "  Tense.\n"
    assert movies.movies["tt0133093"].admin_review == "  Tense.\n"


def test_update_review_requires_admin_role(client, token_service, movies) -> None:
    response = client.put(
        "/movie/tt0133093/review",
        json={"admin_review": "Nice"},
        headers=_bearer(token_service, Role.USER),
    )
    assert response.status_code == 403
    assert movies.updates == []


def test_update_review_unknown_movie_is_404(client, token_service) -> None:
    response = client.put(
        "/movie/tt0000000/review",
        json={"admin_review": "Nice"},
        headers=_bearer(token_service, Role.ADMIN),
    )
    assert response.status_code == 404


def test_update_review_blank_review_is_400(client, token_service, classifier) -> None:
    response = client.put(
        "/movie/tt0133093/review",
        json={"admin_review": "  "},
        headers=_bearer(token_service, Role.ADMIN),
    )
    assert response.status_code == 400
    assert classifier.prompts == []


def test_update_review_classifier_failure_is_500(client, token_service, classifier, movies) -> None:
    classifier.error = ClassificationFailure("OpenAI failed to classify review")
    response = client.put(
        "/movie/tt0133093/review",
        json={"admin_review": "Nice"},
        headers=_bearer(token_service, Role.ADMIN),
    )
    assert response.status_code == 500
    assert response.json() == {"error": "OpenAI failed to classify review"}
    assert movies.updates == []


# ===============================
#     REGISTRATION AND LOGIN
# ===============================

def test_register_login_end_to_end(client, token_service, user_repository) -> None:
    """Register, fail a duplicate registration, then log in and verify both tokens."""
    created = client.post("/register", json=_register_payload())
    assert created.status_code == 201
    user_id = created.json()["inserted_id"]

    duplicate = client.post("/register", json=_register_payload(first_name="Mallory"))
    assert duplicate.status_code == 409
    assert user_repository.insert_calls == 1

    login = client.post("/login", json={"email": "a@x.com", "password": "secret1"})
    assert login.status_code == 200
    body = login.json()
    assert body["user_id"] == user_id
    assert body["role"] == "USER"
    assert body["favourite_genres"] == [{"genre_id": 1, "genre_name": "Comedy"}]
    assert body["token"] and body["refresh_token"]
    assert "password" not in body
    assert token_service.verify(body["token"]).user_id == user_id
    assert token_service.verify_refresh(body["refresh_token"]).user_id == user_id

    # The fresh access token opens protected routes.
    movie = client.get("/movie/tt0133093", headers={"Authorization": f"Bearer {body['token']}"})
    assert movie.status_code == 200


def test_login_failures_do_not_reveal_which_part_was_wrong(client) -> None:
    client.post("/register", json=_register_payload())

    wrong_password = client.post("/login", json={"email": "a@x.com", "password": "wrong-pass"})
    unknown_email = client.post("/login", json={"email": "nobody@x.com", "password": "secret1"})

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "Invalid email or password"}


def test_register_validation_failure_is_400(client, user_repository) -> None:
    response = client.post("/register", json=_register_payload(email="nope", password="123"))
    assert response.status_code == 400
    fields = {detail["field"] for detail in response.json()["details"]}
    assert {"email", "password"} <= fields
    assert user_repository.insert_calls == 0


def test_login_missing_fields_is_400(client) -> None:
    response = client.post("/login", json={"email": "a@x.com"})
    assert response.status_code == 400


def test_register_password_over_bcrypt_byte_limit_is_400(client, user_repository) -> None:
    """72 characters but 144 bytes: rejected as input, never reaches bcrypt."""
    response = client.post("/register", json=_register_payload(password="é" * 72))
    assert response.status_code == 400
    assert "password" in {detail["field"] for detail in response.json()["details"]}
    assert user_repository.insert_calls == 0
