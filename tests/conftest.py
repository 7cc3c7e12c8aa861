# SPDX-License-Identifier: MIT
"""Pytest configuration and fixtures for device fingerprint server tests."""

import os
from dataclasses import replace
from datetime import datetime, timezone
from typing import Generator

import pytest

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("GEOIP_ENABLED", "false")
os.environ.setdefault("DISABLE_LOGGING", "1")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fingerprint.models import (
    BrowserFingerprint,
    CertificateFingerprint,
    DeviceFingerprint,
    GeoLocation,
    NetworkFingerprint,
    Observation,
    Profile,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture(autouse=True)
def no_redis(mocker):
    """Keep cache tests on the in-memory fallback."""
    import api.cache

    mocker.patch("api.cache.get_redis_client", return_value=None)
    api.cache._memory_cache.clear()
    yield
    api.cache._memory_cache.clear()


@pytest.fixture
def browser() -> BrowserFingerprint:
    return BrowserFingerprint(
        user_agent="Mozilla/5.0 (X11; Linux x86_64) Firefox/125.0",
        language="en-US",
        timezone="Europe/Berlin",
        plugins=("PDF Viewer", "Chrome PDF Viewer", "WebKit built-in PDF"),
        canvas_fingerprint="canvas-7f3a",
        webgl_fingerprint="webgl-91bc",
        audio_fingerprint="audio-35.7383",
    )


@pytest.fixture
def device() -> DeviceFingerprint:
    return DeviceFingerprint(
        platform="Linux x86_64",
        architecture="x86_64",
        touch_points=0,
        device_memory=8,
        cpu_cores=8,
        screen_resolution="1920x1080",
        color_depth="24",
    )


@pytest.fixture
def network() -> NetworkFingerprint:
    return NetworkFingerprint(
        ip_address="1.1.1.1",
        ipv6_address="2001:db8::10",
        connection_type="wifi",
        downlink_mbps=120.0,
        rtt=50.0,
        isp="Example ISP",
    )


@pytest.fixture
def geo() -> GeoLocation:
    return GeoLocation(
        country="DE",
        region="Berlin",
        city="Berlin",
        timezone="Europe/Berlin",
        latitude=52.52,
        longitude=13.405,
    )


@pytest.fixture
def certificate() -> CertificateFingerprint:
    return CertificateFingerprint(
        fingerprints=("sha256:cert-a", "sha256:cert-b"),
        pinning_hashes=("pin-1",),
    )


@pytest.fixture
def make_observation(browser, device, network, geo, certificate):
    """Build a fully populated observation; keyword arguments replace fields."""
    def build(**changes) -> Observation:
        observation = Observation(
            visitor_token="v1",
            browser=browser,
            device=device,
            network=network,
            geo=geo,
            certificate=certificate,
            metadata=None,
            collected_at=T0,
        )
        return replace(observation, **changes)
    return build


@pytest.fixture
def make_profile(make_observation):
    """Build a stored-looking profile from an observation's groups."""
    def build(observation: Observation | None = None, **changes) -> Profile:
        observation = observation or make_observation()
        ip = observation.ip_address
        profile = Profile(
            id="profile-1",
            visitor_token=observation.visitor_token,
            browser=observation.browser,
            device=observation.device,
            network=observation.network,
            geo=observation.geo,
            certificate=observation.certificate,
            metadata=None,
            similarity_score=1.0,
            matched_device_id=None,
            observation_count=1,
            ip_history=[ip] if ip else [],
            created_at=T0,
            updated_at=T0,
        )
        return replace(profile, **changes)
    return build


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database per test."""
    from fingerprint.database import init_db

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine)


@pytest.fixture
def store(session_factory):
    """SqlProfileStore on the per-test database."""
    from fingerprint.store import SqlProfileStore

    return SqlProfileStore(session_factory)


@pytest.fixture
def fingerprint_service(store):
    """Service wired with default settings on the per-test store."""
    from fingerprint.config import Settings
    from fingerprint.service import build_fingerprint_service

    return build_fingerprint_service(Settings(), store)


@pytest.fixture
def fake_geoip(mocker):
    """GeoIP service stub; lookups return None unless configured."""
    from api.services.geoip import GeoIpService

    service = mocker.MagicMock(spec=GeoIpService)
    service.lookup.return_value = None
    return service


@pytest.fixture
def test_client(fingerprint_service, fake_geoip) -> Generator:
    """Create a test client for the FastAPI application."""
    from fastapi.testclient import TestClient
    from api.dependencies import get_fingerprint_service, get_geoip_service
    from api.main import app

    app.dependency_overrides[get_fingerprint_service] = lambda: fingerprint_service
    app.dependency_overrides[get_geoip_service] = lambda: fake_geoip
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def fingerprint_payload() -> dict:
    """Request body as sent by the web SDK."""
    return {
        "visitorId": "v1",
        "browser": {
            "userAgent": "Mozilla/5.0 (X11; Linux x86_64) Firefox/125.0",
            "language": "en-US",
            "timezone": "Europe/Berlin",
            "plugins": ["PDF Viewer", "Chrome PDF Viewer"],
            "canvasFingerprint": "canvas-7f3a",
            "webglFingerprint": "webgl-91bc",
            "audioFingerprint": "audio-35.7383",
        },
        "device": {
            "platform": "Linux x86_64",
            "architecture": "x86_64",
            "touchPoints": 0,
            "deviceMemory": 8,
            "cpuCores": 8,
            "screenResolution": "1920x1080",
            "colorDepth": "24",
        },
        "network": {
            "ipAddress": "1.1.1.1",
            "ipv6Address": "2001:db8::10",
            "connectionType": "wifi",
            "downlinkMbps": 120.0,
            "rtt": 50.0,
            "isp": "Example ISP",
        },
        "certificate": {
            "fingerprints": ["sha256:cert-a"],
            "pinningHashes": ["pin-1"],
        },
        "collectedAt": "2024-05-01T12:00:00Z",
        "metadata": {"sdkVersion": "3.1.0"},
    }
