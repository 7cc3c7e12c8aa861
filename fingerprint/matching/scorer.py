"""
Weighted multi-attribute similarity between two fingerprints.

Both sides only need the attribute-group attributes shared by Observation and
Profile (visitor_token, browser, device, network, geo, certificate), so an
observation can be scored against a profile or a profile against itself.
"""

import math

from fingerprint.matching.normalize import (
    jaccard,
    mean_score,
    numeric_score,
    range_score,
    string_score,
)
from fingerprint.models import SimilarityWeights
from fingerprint.utils.geo import distance_score, geo_distance

DOWNLINK_TOLERANCE_MBPS = 5.0
RTT_TOLERANCE_MS = 50.0


def visitor_score(incoming, existing) -> float:
    if not incoming or not existing:
        return 0.0
    if not isinstance(incoming, str) or not isinstance(existing, str):
        return 0.0
    if not incoming.strip():
        return 0.0
    return 1.0 if incoming == existing else 0.0


def browser_score(incoming, existing) -> float:
    if incoming is None or existing is None:
        return 0.0
    return mean_score([
        string_score(incoming.user_agent, existing.user_agent),
        string_score(incoming.language, existing.language),
        string_score(incoming.timezone, existing.timezone),
        jaccard(incoming.plugins, existing.plugins),
        string_score(incoming.canvas_fingerprint, existing.canvas_fingerprint),
        string_score(incoming.webgl_fingerprint, existing.webgl_fingerprint),
        string_score(incoming.audio_fingerprint, existing.audio_fingerprint),
    ])


def device_score(incoming, existing) -> float:
    if incoming is None or existing is None:
        return 0.0
    return mean_score([
        string_score(incoming.platform, existing.platform),
        string_score(incoming.architecture, existing.architecture),
        numeric_score(incoming.touch_points, existing.touch_points),
        numeric_score(incoming.device_memory, existing.device_memory),
        numeric_score(incoming.cpu_cores, existing.cpu_cores),
        string_score(incoming.screen_resolution, existing.screen_resolution),
        string_score(incoming.color_depth, existing.color_depth),
    ])


def network_score(incoming, existing) -> float:
    if incoming is None or existing is None:
        return 0.0
    return mean_score([
        string_score(incoming.ip_address, existing.ip_address),
        string_score(incoming.ipv6_address, existing.ipv6_address),
        string_score(incoming.connection_type, existing.connection_type),
        range_score(incoming.downlink_mbps, existing.downlink_mbps, DOWNLINK_TOLERANCE_MBPS),
        range_score(incoming.rtt, existing.rtt, RTT_TOLERANCE_MS),
        string_score(incoming.isp, existing.isp),
    ])


def geo_score(incoming, existing) -> float:
    if incoming is None or existing is None:
        return 0.0
    return mean_score([
        string_score(incoming.country, existing.country),
        string_score(incoming.region, existing.region),
        string_score(incoming.city, existing.city),
        string_score(incoming.timezone, existing.timezone),
        distance_score(geo_distance(incoming, existing)),
    ])


def certificate_score(incoming, existing) -> float:
    if incoming is None or existing is None:
        return 0.0
    return mean_score([
        jaccard(incoming.fingerprints, existing.fingerprints),
        jaccard(incoming.pinning_hashes, existing.pinning_hashes),
    ])


class SimilarityScorer:
    """
    Combine per-group similarities into one weighted score.

    Example:
        scorer = SimilarityScorer(SimilarityWeights())
        score = scorer.score(observation, profile)  # 0.0 .. 1.0
    """

    def __init__(self, weights: SimilarityWeights):
        self.weights = weights

    def breakdown(self, incoming, existing) -> dict[str, float]:
        """Unweighted score per attribute group."""
        return {
            "visitor": visitor_score(incoming.visitor_token, existing.visitor_token),
            "browser": browser_score(incoming.browser, existing.browser),
            "device": device_score(incoming.device, existing.device),
            "network": network_score(incoming.network, existing.network),
            "geo": geo_score(incoming.geo, existing.geo),
            "certificate": certificate_score(incoming.certificate, existing.certificate),
        }

    def score(self, incoming, existing) -> float:
        if incoming is None or existing is None:
            return 0.0
        groups = self.breakdown(incoming, existing)
        weights = self.weights.as_dict()
        total = math.fsum(weights[name] * value for name, value in groups.items())
        return min(1.0, max(0.0, total))
