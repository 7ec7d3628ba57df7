"""
Movie persistence.

Movies are created by catalog ingestion (POST /addmovie) and afterwards only
have their admin review and ranking changed, always through one UPDATE.
"""

from psycopg.types.json import Jsonb

from db.postgres import PostgresRepository
from implementation.classes.schemas import AddMovieRequest, Movie, Ranking
from implementation.misc.errors import NotFound

_MOVIE_COLUMNS = "imdb_id, title, poster_path, youtube_id, genre, admin_review, ranking_value, ranking_name"


def _row_to_movie(row: tuple) -> Movie:
    imdb_id, title, poster_path, youtube_id, genre, admin_review, ranking_value, ranking_name = row
    ranking = None
    if ranking_name is not None and ranking_value is not None:
        ranking = Ranking(ranking_value=ranking_value, ranking_name=ranking_name)
    return Movie(
        imdb_id=imdb_id,
        title=title,
        poster_path=poster_path,
        youtube_id=youtube_id,
        genre=genre or [],
        admin_review=admin_review or "",
        ranking=ranking,
    )


class MovieRepository(PostgresRepository):

    async def find_all(self) -> list[Movie]:
        rows = await self._guard(
            self._execute_read(f"SELECT {_MOVIE_COLUMNS} FROM public.movies ORDER BY id"),
            "fetch movies",
        )
        return [_row_to_movie(row) for row in rows]

    async def find_by_imdb_id(self, imdb_id: str) -> Movie:
        """
        Fetch one movie by its external reference.

        Raises:
            NotFound: if no movie has this imdb_id.
        """
        row = await self._guard(
            self._execute_read_one(
                f"SELECT {_MOVIE_COLUMNS} FROM public.movies WHERE imdb_id = %s",
                (imdb_id,),
            ),
            "fetch movie",
        )
        if row is None:
            raise NotFound("Movie not found")
        return _row_to_movie(row)

    async def insert(self, movie: AddMovieRequest) -> str:
        """Insert a movie with no review or ranking and return its storage id as a string."""
        row = await self._guard(
            self._execute_write(
                f"INSERT INTO public.movies ({_MOVIE_COLUMNS}) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s) RETURNING id",
                (
                    movie.imdb_id,
                    movie.title,
                    movie.poster_path,
                    movie.youtube_id,
                    Jsonb([genre.model_dump() for genre in movie.genre]),
                    "",
                    None,
                    None,
                ),
                fetch_one=True,
            ),
            "add movie",
            conflict_message="A movie with this imdb_id already exists",
        )
        return str(row[0])

    async def update_review_and_ranking(self, imdb_id: str, admin_review: str, ranking: Ranking) -> int:
        """
        Atomically set the admin review and ranking of one movie.

        Returns:
            The number of matched rows (0 or 1).
        """
        return await self._guard(
            self._execute_write(
                "UPDATE public.movies "
                "SET admin_review = %s, ranking_value = %s, ranking_name = %s "
                "WHERE imdb_id = %s",
                (admin_review, ranking.ranking_value, ranking.ranking_name, imdb_id),
            ),
            "update movie review",
        )
