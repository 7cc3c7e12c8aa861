"""
Domain models for device fingerprint matching.

Observations are immutable snapshots reported by a client. Profiles are the
continuously merged device records owned by the profile store. Neither type
knows how it is persisted; see fingerprint.database for the storage schema.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Optional


def _as_tuple(values) -> Optional[tuple]:
    if values is None:
        return None
    return tuple(values)


@dataclass(frozen=True)
class BrowserFingerprint:
    """Browser-level attributes."""
    user_agent: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None
    plugins: Optional[tuple[str, ...]] = None
    canvas_fingerprint: Optional[str] = None
    webgl_fingerprint: Optional[str] = None
    audio_fingerprint: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["plugins"] = list(self.plugins) if self.plugins is not None else None
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["BrowserFingerprint"]:
        if data is None:
            return None
        return cls(
            user_agent=data.get("user_agent"),
            language=data.get("language"),
            timezone=data.get("timezone"),
            plugins=_as_tuple(data.get("plugins")),
            canvas_fingerprint=data.get("canvas_fingerprint"),
            webgl_fingerprint=data.get("webgl_fingerprint"),
            audio_fingerprint=data.get("audio_fingerprint"),
        )


@dataclass(frozen=True)
class DeviceFingerprint:
    """Hardware and display attributes."""
    platform: Optional[str] = None
    architecture: Optional[str] = None
    touch_points: Optional[int] = None
    device_memory: Optional[int] = None
    cpu_cores: Optional[int] = None
    screen_resolution: Optional[str] = None
    color_depth: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["DeviceFingerprint"]:
        if data is None:
            return None
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class NetworkFingerprint:
    """Network-layer attributes."""
    ip_address: Optional[str] = None
    ipv6_address: Optional[str] = None
    connection_type: Optional[str] = None
    downlink_mbps: Optional[float] = None
    rtt: Optional[float] = None
    isp: Optional[str] = None
    extra: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["NetworkFingerprint"]:
        if data is None:
            return None
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class GeoLocation:
    """Location derived from the caller's IP address (never client supplied)."""
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    extra: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["GeoLocation"]:
        if data is None:
            return None
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class CertificateFingerprint:
    """TLS certificate fingerprints and pinning hashes."""
    fingerprints: Optional[tuple[str, ...]] = None
    pinning_hashes: Optional[tuple[str, ...]] = None

    def to_dict(self) -> dict:
        return {
            "fingerprints": list(self.fingerprints) if self.fingerprints is not None else None,
            "pinning_hashes": list(self.pinning_hashes) if self.pinning_hashes is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["CertificateFingerprint"]:
        if data is None:
            return None
        return cls(
            fingerprints=_as_tuple(data.get("fingerprints")),
            pinning_hashes=_as_tuple(data.get("pinning_hashes")),
        )


@dataclass(frozen=True)
class Observation:
    """One reported fingerprint snapshot."""
    visitor_token: Optional[str]
    browser: Optional[BrowserFingerprint] = None
    device: Optional[DeviceFingerprint] = None
    network: Optional[NetworkFingerprint] = None
    geo: Optional[GeoLocation] = None
    certificate: Optional[CertificateFingerprint] = None
    metadata: Optional[dict[str, Any]] = None
    collected_at: Optional[datetime] = None

    @property
    def ip_address(self) -> Optional[str]:
        return self.network.ip_address if self.network else None

    def with_geo(self, geo: Optional[GeoLocation]) -> "Observation":
        return replace(self, geo=geo)

    def with_network(self, network: Optional[NetworkFingerprint]) -> "Observation":
        return replace(self, network=network)


@dataclass
class Profile:
    """
    Persisted device record.

    Invariants: updated_at >= created_at, observation_count >= 1, and
    ip_history is duplicate-free, most recent first, bounded by the merge
    engine's history limit.
    """
    id: Optional[str]
    visitor_token: Optional[str] = None
    browser: Optional[BrowserFingerprint] = None
    device: Optional[DeviceFingerprint] = None
    network: Optional[NetworkFingerprint] = None
    geo: Optional[GeoLocation] = None
    certificate: Optional[CertificateFingerprint] = None
    metadata: Optional[dict[str, Any]] = None
    similarity_score: Optional[float] = None
    matched_device_id: Optional[str] = None
    observation_count: Optional[int] = None
    ip_history: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0  # storage revision, only checked with optimistic locking

    @property
    def ip_address(self) -> Optional[str]:
        return self.network.ip_address if self.network else None


@dataclass(frozen=True)
class SimilarityWeights:
    """Per-group weights and the match threshold. Built once at startup."""
    visitor: float = 0.35
    browser: float = 0.20
    device: float = 0.20
    network: float = 0.10
    geo: float = 0.10
    certificate: float = 0.05
    threshold: float = 0.95

    def __post_init__(self):
        for name in ("visitor", "browser", "device", "network", "geo", "certificate"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} weight must be non-negative")
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError("threshold must be within [0, 1]")

    def as_dict(self) -> dict[str, float]:
        """Group name -> weight, without the threshold."""
        return {
            "visitor": self.visitor,
            "browser": self.browser,
            "device": self.device,
            "network": self.network,
            "geo": self.geo,
            "certificate": self.certificate,
        }


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate profile paired with its similarity to one observation."""
    profile: Profile
    score: float


@dataclass(frozen=True)
class MatchResult:
    """Outcome of resolving one observation against its candidates."""
    winner: Optional[Profile]
    score: float

    @property
    def matched(self) -> bool:
        return self.winner is not None


@dataclass(frozen=True)
class ResolutionOutcome:
    """What a resolution hands back to the request boundary."""
    profile: Profile
    matched: bool
    score: float
    matched_device_id: Optional[str]
    resolved_at: datetime
