"""
Fingerprint matching engine.

Retrieval narrows candidates, the scorer compares them with an observation,
the resolver applies the threshold, and the merge engine updates or creates
the resulting profile.
"""

from .merge import MergeEngine
from .resolver import MatchResolver
from .retriever import CandidateRetriever, build_candidate_query
from .scorer import SimilarityScorer

__all__ = [
    "CandidateRetriever",
    "MatchResolver",
    "MergeEngine",
    "SimilarityScorer",
    "build_candidate_query",
]
