"""
Request and response models for the fingerprint API.

Field names follow the web SDK's camelCase payload. Location is never read
from the client; it is attached server-side from the caller's IP.
"""

from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from fingerprint.models import (
    BrowserFingerprint,
    CertificateFingerprint,
    DeviceFingerprint,
    NetworkFingerprint,
    Observation,
    ResolutionOutcome,
)


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


NonBlank = Annotated[str, AfterValidator(_not_blank)]


class CamelModel(BaseModel):
    """Base model accepting camelCase (or snake_case) field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class BrowserPayload(CamelModel):
    user_agent: NonBlank
    language: NonBlank
    timezone: NonBlank
    plugins: list[str] = Field(..., min_length=1)
    canvas_fingerprint: Optional[str] = None
    webgl_fingerprint: Optional[str] = None
    audio_fingerprint: Optional[str] = None

    def to_domain(self) -> BrowserFingerprint:
        return BrowserFingerprint(
            user_agent=self.user_agent,
            language=self.language,
            timezone=self.timezone,
            plugins=tuple(self.plugins),
            canvas_fingerprint=self.canvas_fingerprint,
            webgl_fingerprint=self.webgl_fingerprint,
            audio_fingerprint=self.audio_fingerprint,
        )


class DevicePayload(CamelModel):
    platform: NonBlank
    architecture: NonBlank
    touch_points: int
    device_memory: int
    cpu_cores: int
    screen_resolution: NonBlank
    color_depth: NonBlank

    def to_domain(self) -> DeviceFingerprint:
        return DeviceFingerprint(**self.model_dump())


class NetworkPayload(CamelModel):
    ip_address: NonBlank
    ipv6_address: Optional[str] = None
    connection_type: NonBlank
    downlink_mbps: float
    rtt: float
    isp: Optional[str] = None
    extra: Optional[dict[str, Any]] = None

    def to_domain(self) -> NetworkFingerprint:
        return NetworkFingerprint(**self.model_dump())


class CertificatePayload(CamelModel):
    fingerprints: list[str] = Field(..., min_length=1)
    pinning_hashes: Optional[list[str]] = None

    def to_domain(self) -> CertificateFingerprint:
        return CertificateFingerprint(
            fingerprints=tuple(self.fingerprints),
            pinning_hashes=tuple(self.pinning_hashes) if self.pinning_hashes is not None else None,
        )


class FingerprintRequest(CamelModel):
    """Raw fingerprint data reported by the client."""
    visitor_id: NonBlank
    browser: BrowserPayload
    device: DevicePayload
    network: NetworkPayload
    certificate: Optional[CertificatePayload] = None
    collected_at: datetime
    metadata: Optional[dict[str, Any]] = None

    def to_observation(self) -> Observation:
        return Observation(
            visitor_token=self.visitor_id,
            browser=self.browser.to_domain(),
            device=self.device.to_domain(),
            network=self.network.to_domain(),
            geo=None,
            certificate=self.certificate.to_domain() if self.certificate else None,
            metadata=dict(self.metadata) if self.metadata is not None else None,
            collected_at=self.collected_at,
        )


class FingerprintResponse(CamelModel):
    """Result of matching one fingerprint."""
    device_id: str
    matched: bool
    similarity_score: float
    matched_device_id: Optional[str] = None
    matched_at: datetime
    indicators: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_outcome(cls, outcome: ResolutionOutcome) -> "FingerprintResponse":
        profile = outcome.profile
        indicators: dict[str, Any] = {"observationCount": profile.observation_count or 0}
        if outcome.matched:
            indicators["ipHistorySize"] = len(profile.ip_history or [])
        return cls(
            device_id=profile.id,
            matched=outcome.matched,
            similarity_score=outcome.score if outcome.matched else 0.0,
            matched_device_id=outcome.matched_device_id,
            matched_at=outcome.resolved_at,
            indicators=indicators,
        )


class ErrorResponse(BaseModel):
    """Uniform error body."""
    timestamp: datetime
    path: str
    error: str
    message: str
    details: list[str] = Field(default_factory=list)
