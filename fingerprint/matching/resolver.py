"""Pick the best-scoring candidate and apply the match threshold."""

from typing import Sequence

from loguru import logger

from fingerprint.matching.scorer import SimilarityScorer
from fingerprint.models import MatchResult, Observation, Profile, ScoredCandidate


class MatchResolver:
    """
    Decide whether an observation belongs to one of its candidates.

    Example:
        resolver = MatchResolver(scorer)  # threshold from scorer.weights
        result = resolver.resolve(observation, candidates)
        if result.matched:
            ...  # merge into result.winner
    """

    def __init__(self, scorer: SimilarityScorer, threshold: float | None = None):
        self.scorer = scorer
        self.threshold = scorer.weights.threshold if threshold is None else threshold

    def rank(self, incoming: Observation, candidates: Sequence[Profile]) -> list[ScoredCandidate]:
        """Score every candidate, keeping candidate order."""
        return [ScoredCandidate(profile=c, score=self.scorer.score(incoming, c)) for c in candidates]

    def resolve(self, incoming: Observation, candidates: Sequence[Profile]) -> MatchResult:
        best = None
        for scored in self.rank(incoming, candidates):
            # Strictly greater: on ties the earlier candidate wins
            if best is None or scored.score > best.score:
                best = scored

        if best is None:
            return MatchResult(winner=None, score=0.0)

        if best.score >= self.threshold:
            return MatchResult(winner=best.profile, score=best.score)

        logger.debug(
            f"Best candidate {best.profile.id} scored {best.score:.4f}, "
            f"below threshold {self.threshold}"
        )
        return MatchResult(winner=None, score=0.0)
