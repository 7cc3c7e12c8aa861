"""
FastAPI dependencies for the fingerprint routes.

Singletons are built lazily from settings; tests replace them through
app.dependency_overrides.
"""

from functools import lru_cache

from api.services.geoip import GeoIpService
from fingerprint.config import get_settings
from fingerprint.database import get_session_factory
from fingerprint.service import FingerprintService, build_fingerprint_service
from fingerprint.store import SqlProfileStore


@lru_cache()
def get_profile_store() -> SqlProfileStore:
    settings = get_settings()
    return SqlProfileStore(get_session_factory(), optimistic_locking=settings.store.optimistic_locking)


@lru_cache()
def get_fingerprint_service() -> FingerprintService:
    return build_fingerprint_service(get_settings(), get_profile_store())


@lru_cache()
def get_geoip_service() -> GeoIpService:
    return GeoIpService.from_settings(get_settings().geoip)
