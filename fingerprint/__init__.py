"""
Device fingerprint matching core.

Resolves whether an incoming fingerprint observation belongs to a known
device profile and keeps one merged profile per device.
"""

from fingerprint.errors import ConcurrentModification, FingerprintError, InvalidInput, StoreUnavailable
from fingerprint.models import Observation, Profile, SimilarityWeights
from fingerprint.service import FingerprintService, build_fingerprint_service

__version__ = "1.0.0"

__all__ = [
    "ConcurrentModification",
    "FingerprintError",
    "FingerprintService",
    "InvalidInput",
    "Observation",
    "Profile",
    "SimilarityWeights",
    "StoreUnavailable",
    "build_fingerprint_service",
]
