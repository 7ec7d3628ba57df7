import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI
from fastapi.responses import PlainTextResponse
from psycopg_pool import AsyncConnectionPool

from api.dependencies import (
    get_account_service,
    get_current_claims,
    get_movie_repository,
    get_pool,
    get_ranking_pipeline,
    require_admin,
)
from api.errors import register_exception_handlers
from db.movies import MovieRepository
from db.postgres import apply_schema, check_postgres, create_pool
from db.rankings import SentimentVocabularyStore
from db.users import UserRepository
from implementation.accounts import AccountService
from implementation.auth.tokens import TokenService
from implementation.classes.schemas import (
    AdminReviewRequest,
    AddMovieRequest,
    AdminReviewResponse,
    InsertResult,
    LoginRequest,
    LoginResponse,
    Movie,
    RegisterRequest,
)
from implementation.llms.generic_methods import OpenAIReviewClassifier
from implementation.misc.config import Settings, configure_logging
from implementation.misc.errors import ValidationFailure
from implementation.review_ranking import ReviewRankingPipeline

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan handler.

    Loads settings (failing startup if a required secret is missing), opens the
    Postgres pool, applies the schema, and builds the repositories and
    services every request shares. Everything is closed again on shutdown.
    """
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    pool = create_pool()
    # Open the pool and fail fast if Postgres is unreachable
    await pool.open()
    await pool.check()
    await apply_schema(pool)

    timeout = settings.storage_timeout_seconds
    movies = MovieRepository(pool, timeout)
    users = UserRepository(pool, timeout)
    vocabulary = SentimentVocabularyStore(pool, timeout)
    classifier = OpenAIReviewClassifier(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.classification_timeout_seconds,
    )
    tokens = TokenService(settings.secret_key, settings.secret_refresh_key, users)

    app.state.settings = settings
    app.state.pool = pool
    app.state.movies = movies
    app.state.tokens = tokens
    app.state.accounts = AccountService(users, tokens)
    app.state.ranking = ReviewRankingPipeline(
        vocabulary=vocabulary,
        movies=movies,
        classifier=classifier,
        prompt_template=settings.base_prompt_template,
        sentinel_value=settings.ranking_sentinel_value,
        unranked_policy=settings.unranked_label_policy,
    )
    logger.info("MagicStream API started")
    yield
    await classifier.close()
    await pool.close()
    logger.info("MagicStream API stopped")


app = FastAPI(title="MagicStream Movies API", lifespan=lifespan)
register_exception_handlers(app)


# ===============================
#        PUBLIC ROUTES
# ===============================

@app.get("/hello", response_class=PlainTextResponse)
async def hello() -> str:
    return "Hello, Magic_stream_movies!"


@app.get("/health")
async def health_check(pool: AsyncConnectionPool = Depends(get_pool)) -> dict:
    """
    Health check endpoint reporting Postgres connectivity.

    Returns {"postgres": "ok"} or the connection error message.
    """
    return {"postgres": await check_postgres(pool)}


@app.get("/movies", response_model=list[Movie])
async def get_movies(movies: MovieRepository = Depends(get_movie_repository)) -> list[Movie]:
    return await movies.find_all()


@app.post("/register", status_code=201, response_model=InsertResult)
async def register_user(
    payload: RegisterRequest,
    accounts: AccountService = Depends(get_account_service),
) -> InsertResult:
    user_id = await accounts.register(payload)
    return InsertResult(inserted_id=user_id)


@app.post("/login", response_model=LoginResponse)
async def login_user(
    payload: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
) -> LoginResponse:
    return await accounts.login(payload)


# ===============================
#       PROTECTED ROUTES
# ===============================

protected = APIRouter(dependencies=[Depends(get_current_claims)])


@protected.get("/movie/{imdb_id}", response_model=Movie)
async def get_movie(imdb_id: str, movies: MovieRepository = Depends(get_movie_repository)) -> Movie:
    imdb_id = imdb_id.strip()
    if not imdb_id:
        raise ValidationFailure("Movie id is required")
    return await movies.find_by_imdb_id(imdb_id)


@protected.post("/addmovie", status_code=201, response_model=InsertResult)
async def add_movie(movie: AddMovieRequest, movies: MovieRepository = Depends(get_movie_repository)) -> InsertResult:
    inserted_id = await movies.insert(movie)
    return InsertResult(inserted_id=inserted_id)


@protected.api_route(
    "/movie/{imdb_id}/review",
    methods=["PUT", "PATCH"],
    response_model=AdminReviewResponse,
    dependencies=[Depends(require_admin)],
)
async def update_admin_review(
    imdb_id: str,
    payload: AdminReviewRequest,
    ranking: ReviewRankingPipeline = Depends(get_ranking_pipeline),
) -> AdminReviewResponse:
    imdb_id = imdb_id.strip()
    if not imdb_id:
        raise ValidationFailure("Movie id is required")
    result = await ranking.rank_review(imdb_id, payload.admin_review)
    return AdminReviewResponse(ranking_name=result.ranking_name, admin_review=payload.admin_review)


app.include_router(protected)
