"""
Fold observations into device profiles.

Mutable attributes follow the latest observation (each present group replaces
the stored one wholesale) while counters and IP history accumulate.
"""

import uuid
from datetime import datetime

from fingerprint.models import Observation, Profile

DEFAULT_IP_HISTORY_LIMIT = 20


class MergeEngine:
    """Create profiles for new devices and update matched ones in place."""

    def __init__(self, ip_history_limit: int = DEFAULT_IP_HISTORY_LIMIT):
        self.ip_history_limit = ip_history_limit

    def merge(self, target: Profile, incoming: Observation, now: datetime, score: float) -> Profile:
        target.similarity_score = score
        if target.updated_at is None or now >= target.updated_at:
            target.updated_at = now
        target.observation_count = (target.observation_count or 0) + 1
        target.matched_device_id = target.id

        self._merge_ip_history(target, incoming.ip_address)

        if incoming.browser is not None:
            target.browser = incoming.browser
        if incoming.device is not None:
            target.device = incoming.device
        if incoming.network is not None:
            target.network = incoming.network
        if incoming.geo is not None:
            target.geo = incoming.geo
        if incoming.certificate is not None:
            target.certificate = incoming.certificate

        if incoming.metadata:
            if target.metadata is None:
                target.metadata = dict(incoming.metadata)
            else:
                target.metadata.update(incoming.metadata)

        return target

    def create_new(self, incoming: Observation, now: datetime) -> Profile:
        ip = incoming.ip_address
        return Profile(
            id=str(uuid.uuid4()),
            visitor_token=incoming.visitor_token,
            browser=incoming.browser,
            device=incoming.device,
            network=incoming.network,
            geo=incoming.geo,
            certificate=incoming.certificate,
            metadata=dict(incoming.metadata) if incoming.metadata is not None else None,
            similarity_score=1.0,
            matched_device_id=None,
            observation_count=1,
            ip_history=[ip] if ip and ip.strip() else [],
            created_at=now,
            updated_at=now,
        )

    def _merge_ip_history(self, target: Profile, ip) -> None:
        if not ip or not ip.strip():
            return
        history = target.ip_history if target.ip_history is not None else []
        target.ip_history = history
        if ip in history:
            return
        history.insert(0, ip)
        del history[self.ip_history_limit:]
