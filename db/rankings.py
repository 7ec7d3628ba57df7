"""
Read access to the sentiment vocabulary (``public.rankings``).

The vocabulary is administered outside the API; the service only reads it.
"""

from db.postgres import PostgresRepository
from implementation.classes.schemas import SentimentLabel


class SentimentVocabularyStore(PostgresRepository):

    async def list_labels(self) -> list[SentimentLabel]:
        """Return every label in insertion order, sentinel included."""
        rows = await self._guard(
            self._execute_read("SELECT ranking_name, ranking_value FROM public.rankings ORDER BY id"),
            "fetch rankings",
        )
        return [SentimentLabel(ranking_name=name, ranking_value=value) for name, value in rows]
