"""
Candidate retrieval.

Narrows the profile universe to the few records that could plausibly be the
same device. Ranking is left to the resolver.
"""

from loguru import logger

from fingerprint.models import Observation, Profile
from fingerprint.store import CandidateQuery, ProfileStore

DEFAULT_CANDIDATE_LIMIT = 20


def _non_blank(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def build_candidate_query(incoming: Observation, limit: int = DEFAULT_CANDIDATE_LIMIT) -> CandidateQuery:
    """OR predicates for every lookup key the observation actually carries."""
    fingerprints: list[str] = []
    if incoming.certificate and incoming.certificate.fingerprints:
        for fp in incoming.certificate.fingerprints:
            if _non_blank(fp) and fp not in fingerprints:
                fingerprints.append(fp)

    network = incoming.network
    browser = incoming.browser
    return CandidateQuery(
        visitor_token=incoming.visitor_token if _non_blank(incoming.visitor_token) else None,
        ip_address=network.ip_address if network and _non_blank(network.ip_address) else None,
        certificate_fingerprints=tuple(fingerprints),
        canvas_fingerprint=(
            browser.canvas_fingerprint if browser and _non_blank(browser.canvas_fingerprint) else None
        ),
        limit=limit,
    )


class CandidateRetriever:
    """Fetch a bounded, deduplicated list of candidate profiles."""

    def __init__(self, store: ProfileStore, limit: int = DEFAULT_CANDIDATE_LIMIT):
        self.store = store
        self.limit = limit

    def retrieve(self, incoming: Observation) -> list[Profile]:
        candidates: list[Profile] = []
        seen: set[str] = set()

        # The latest profile for this visitor always goes first
        if _non_blank(incoming.visitor_token):
            latest = self.store.find_latest_by_visitor_token(incoming.visitor_token)
            if latest is not None:
                candidates.append(latest)
                if latest.id:
                    seen.add(latest.id)

        query = build_candidate_query(incoming, self.limit)
        if query.is_empty:
            return candidates

        for profile in self.store.query_any(query):
            if len(candidates) >= self.limit:
                break
            if not profile.id or profile.id in seen:
                continue
            candidates.append(profile)
            seen.add(profile.id)

        logger.debug(f"Retrieved {len(candidates)} candidate(s) for visitor {incoming.visitor_token}")
        return candidates
