"""
Device fingerprint resolution.

One call to FingerprintService.handle() runs a full resolution: validate the
observation, retrieve candidates, score and resolve them, then merge into the
winner or create a new profile, and save the result.

Concurrent resolutions that match the same profile can overwrite each other's
merge. Enable STORE_OPTIMISTIC_LOCKING to turn that into a
ConcurrentModification error the caller can retry on.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from loguru import logger

from fingerprint.config import Settings
from fingerprint.errors import InvalidInput
from fingerprint.matching import CandidateRetriever, MatchResolver, MergeEngine, SimilarityScorer
from fingerprint.models import Observation, ResolutionOutcome
from fingerprint.store import ProfileStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_observation(observation: Observation) -> None:
    """Raise InvalidInput when a required attribute group is missing."""
    problems = []
    token = observation.visitor_token
    if not isinstance(token, str) or not token.strip():
        problems.append("visitorId must not be blank")
    if observation.browser is None:
        problems.append("browser fingerprint is required")
    if observation.device is None:
        problems.append("device fingerprint is required")
    if observation.network is None:
        problems.append("network fingerprint is required")
    if problems:
        raise InvalidInput("Observation is incomplete", problems)


class FingerprintService:
    """Match observations against stored device profiles."""

    def __init__(
        self,
        store: ProfileStore,
        scorer: SimilarityScorer,
        resolver: MatchResolver,
        merger: MergeEngine,
        retriever: Optional[CandidateRetriever] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.scorer = scorer
        self.resolver = resolver
        self.merger = merger
        self.retriever = retriever or CandidateRetriever(store)
        self.clock = clock

    def handle(self, observation: Observation) -> ResolutionOutcome:
        validate_observation(observation)

        candidates = self.retriever.retrieve(observation)
        result = self.resolver.resolve(observation, candidates)
        now = self.clock()

        if result.matched:
            profile = self.merger.merge(result.winner, observation, now, result.score)
            self.store.save(profile)
            logger.info(f"Fingerprint matched existing device: id={profile.id} score={result.score:.4f}")
            return ResolutionOutcome(
                profile=profile,
                matched=True,
                score=result.score,
                matched_device_id=profile.id,
                resolved_at=now,
            )

        profile = self.merger.create_new(observation, now)
        self.store.save(profile)
        logger.info(f"Fingerprint stored as new device: id={profile.id} ({len(candidates)} candidate(s) below threshold)")
        return ResolutionOutcome(
            profile=profile,
            matched=False,
            score=0.0,
            matched_device_id=None,
            resolved_at=now,
        )


def build_fingerprint_service(settings: Settings, store: ProfileStore) -> FingerprintService:
    """Wire the matching engine from configuration."""
    weights = settings.similarity.to_weights()
    scorer = SimilarityScorer(weights)
    return FingerprintService(
        store=store,
        scorer=scorer,
        resolver=MatchResolver(scorer, weights.threshold),
        merger=MergeEngine(ip_history_limit=settings.matching.ip_history_limit),
        retriever=CandidateRetriever(store, limit=settings.matching.candidate_limit),
    )
