"""
Review ranking pipeline.

Turns a free-text admin review into one label of the sentiment vocabulary and
its numeric rank, then stores review and ranking on the movie in a single
update. Steps run strictly in order and stop at the first failure; the only
durable write is the final update, so a failed request leaves nothing behind.
"""

import logging
from typing import Optional, Protocol

from db.movies import MovieRepository
from db.rankings import SentimentVocabularyStore
from implementation.classes.enums import UnrankedLabelPolicy
from implementation.classes.schemas import RankedReview, Ranking, SentimentLabel
from implementation.misc.errors import (
    ClassificationFailure,
    ConfigurationMissing,
    DependencyUnavailable,
    NotFound,
    VocabularyUnavailable,
)
from implementation.misc.helpers import unique_in_order
from implementation.prompts.ranking_prompts import build_classification_prompt

logger = logging.getLogger(__name__)

DEFAULT_RANK = 0
DEFAULT_SENTINEL_NAME = "Unranked"


class ReviewClassifier(Protocol):
    async def classify(self, prompt: str) -> str: ...


class ReviewRankingPipeline:

    def __init__(
        self,
        vocabulary: SentimentVocabularyStore,
        movies: MovieRepository,
        classifier: Optional[ReviewClassifier],
        prompt_template: Optional[str],
        sentinel_value: int = 999,
        unranked_policy: UnrankedLabelPolicy = UnrankedLabelPolicy.PASS_THROUGH,
    ) -> None:
        self._vocabulary = vocabulary
        self._movies = movies
        self._classifier = classifier
        self._prompt_template = prompt_template
        self._sentinel_value = sentinel_value
        self._unranked_policy = unranked_policy

    async def rank_review(self, imdb_id: str, review: str) -> RankedReview:
        """
        Classify a review, resolve its rank, and persist both on the movie.

        Raises:
            ConfigurationMissing: prompt template or classifier credential absent.
            VocabularyUnavailable: the rankings could not be read.
            ClassificationFailure: the classification call failed (or the label
                was rejected under the ``reject`` policy).
            NotFound: no movie has this imdb_id.
            PersistenceFailure / DependencyUnavailable: the update failed.
        """
        # Checked before any network round-trip.
        if not self._prompt_template:
            raise ConfigurationMissing("BASE_PROMPT_TEMPLATE is not configured")
        if self._classifier is None:
            raise ConfigurationMissing("OPENAI_API_KEY is not configured")

        try:
            labels = await self._vocabulary.list_labels()
        except DependencyUnavailable as e:
            raise VocabularyUnavailable(f"Failed to load rankings: {e.message}")

        candidates = [label for label in labels if label.ranking_value != self._sentinel_value]
        candidate_names = unique_in_order(label.ranking_name for label in candidates)

        prompt = build_classification_prompt(self._prompt_template, candidate_names, review)
        raw_label = await self._classifier.classify(prompt)
        if not raw_label:
            raise ClassificationFailure("Classifier returned an empty label")

        ranking = self._resolve_ranking(raw_label, candidates, labels)

        matched = await self._movies.update_review_and_ranking(imdb_id, review, ranking)
        if matched == 0:
            raise NotFound("Movie not found")

        logger.info("Ranked review for movie %s as %s (%d)", imdb_id, ranking.ranking_name, ranking.ranking_value)
        return RankedReview(ranking_name=ranking.ranking_name, ranking_value=ranking.ranking_value)

    def _resolve_ranking(
        self,
        raw_label: str,
        candidates: list[SentimentLabel],
        labels: list[SentimentLabel],
    ) -> Ranking:
        # First candidate with this exact name wins.
        for label in candidates:
            if label.ranking_name == raw_label:
                return Ranking(ranking_value=label.ranking_value, ranking_name=label.ranking_name)

        logger.warning(
            "Classifier returned out-of-vocabulary label %r (policy=%s)",
            raw_label, self._unranked_policy.value,
        )

        if self._unranked_policy is UnrankedLabelPolicy.REJECT:
            raise ClassificationFailure(f"Classifier returned unknown ranking {raw_label!r}")

        if self._unranked_policy is UnrankedLabelPolicy.SENTINEL:
            sentinel_name = next(
                (label.ranking_name for label in labels if label.ranking_value == self._sentinel_value),
                DEFAULT_SENTINEL_NAME,
            )
            return Ranking(ranking_value=self._sentinel_value, ranking_name=sentinel_name)

        return Ranking(ranking_value=DEFAULT_RANK, ranking_name=raw_label)
