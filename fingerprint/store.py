"""
Profile store contract and its SQLAlchemy implementation.

The matching core only talks to ProfileStore. SqlProfileStore maps domain
Profiles to ProfileRecord rows and turns driver failures into
StoreUnavailable so callers see one error type regardless of backend.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from fingerprint.database import ProfileCertificate, ProfileRecord
from fingerprint.errors import ConcurrentModification, StoreUnavailable
from fingerprint.models import (
    BrowserFingerprint,
    CertificateFingerprint,
    DeviceFingerprint,
    GeoLocation,
    NetworkFingerprint,
    Profile,
)

# Retries of a last-write-wins save that lost a version race
SAVE_ATTEMPTS = 3


@dataclass(frozen=True)
class CandidateQuery:
    """
    OR-combined predicates for candidate retrieval.

    A predicate with no value is not part of the query. An empty query
    matches nothing.
    """
    visitor_token: Optional[str] = None
    ip_address: Optional[str] = None
    certificate_fingerprints: tuple[str, ...] = field(default_factory=tuple)
    canvas_fingerprint: Optional[str] = None
    limit: int = 20

    @property
    def is_empty(self) -> bool:
        return not (
            self.visitor_token
            or self.ip_address
            or self.certificate_fingerprints
            or self.canvas_fingerprint
        )


class ProfileStore(ABC):
    """Read/query/save contract the matching core depends on."""

    @abstractmethod
    def find_latest_by_visitor_token(self, token: str) -> Optional[Profile]:
        """Most recently updated profile carrying this visitor token."""

    @abstractmethod
    def query_any(self, query: CandidateQuery) -> list[Profile]:
        """Profiles matching any predicate in the query, at most query.limit."""

    @abstractmethod
    def save(self, profile: Profile) -> Profile:
        """Insert or update a profile by id."""


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def record_to_profile(record: ProfileRecord) -> Profile:
    """Build a domain Profile from a stored row."""
    return Profile(
        id=record.id,
        visitor_token=record.visitor_id,
        browser=BrowserFingerprint.from_dict(record.browser),
        device=DeviceFingerprint.from_dict(record.device),
        network=NetworkFingerprint.from_dict(record.network),
        geo=GeoLocation.from_dict(record.geo_location),
        certificate=CertificateFingerprint.from_dict(record.certificate),
        metadata=dict(record.extra_metadata) if record.extra_metadata is not None else None,
        similarity_score=record.similarity_score,
        matched_device_id=record.matched_device_id,
        observation_count=record.observation_count,
        ip_history=list(record.ip_history or []),
        created_at=_utc(record.created_at),
        updated_at=_utc(record.updated_at),
        version=record.version,
    )


def apply_profile(record: ProfileRecord, profile: Profile) -> None:
    """Copy a domain Profile onto a (new or loaded) row."""
    record.visitor_id = profile.visitor_token
    record.ip_address = profile.network.ip_address if profile.network else None
    record.canvas_fingerprint = profile.browser.canvas_fingerprint if profile.browser else None
    record.browser = profile.browser.to_dict() if profile.browser else None
    record.device = profile.device.to_dict() if profile.device else None
    record.network = profile.network.to_dict() if profile.network else None
    record.geo_location = profile.geo.to_dict() if profile.geo else None
    record.certificate = profile.certificate.to_dict() if profile.certificate else None
    record.extra_metadata = dict(profile.metadata) if profile.metadata is not None else None
    record.similarity_score = profile.similarity_score
    record.matched_device_id = profile.matched_device_id
    record.observation_count = profile.observation_count or 1
    record.ip_history = list(profile.ip_history or [])
    record.created_at = profile.created_at
    record.updated_at = profile.updated_at

    wanted = []
    if profile.certificate and profile.certificate.fingerprints:
        for fp in profile.certificate.fingerprints:
            if fp and fp.strip() and fp not in wanted:
                wanted.append(fp)
    existing = {cert.fingerprint: cert for cert in record.certificates}
    record.certificates = [existing.get(fp) or ProfileCertificate(fingerprint=fp) for fp in wanted]


class SqlProfileStore(ProfileStore):
    """
    ProfileStore backed by SQLAlchemy.

    Every UPDATE is guarded by the row version. With optimistic_locking
    enabled, save() raises ConcurrentModification when the row moved on since
    the profile was loaded, including when another writer commits between
    this save's read and its write. Otherwise the save is retried on the
    fresh row and the last save wins.
    """

    def __init__(self, session_factory: sessionmaker, optimistic_locking: bool = False):
        self._session_factory = session_factory
        self.optimistic_locking = optimistic_locking

    @contextmanager
    def _session(self, operation: str):
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"Profile store {operation} failed: {e}")
            raise StoreUnavailable(f"Profile store {operation} failed") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def find_latest_by_visitor_token(self, token: str) -> Optional[Profile]:
        if not token:
            return None
        with self._session("lookup") as session:
            stmt = (
                select(ProfileRecord)
                .where(ProfileRecord.visitor_id == token)
                .order_by(ProfileRecord.updated_at.desc())
                .limit(1)
            )
            record = session.scalars(stmt).first()
            return record_to_profile(record) if record else None

    def query_any(self, query: CandidateQuery) -> list[Profile]:
        if query.is_empty:
            return []

        predicates = []
        if query.visitor_token:
            predicates.append(ProfileRecord.visitor_id == query.visitor_token)
        if query.ip_address:
            predicates.append(ProfileRecord.ip_address == query.ip_address)
        if query.certificate_fingerprints:
            predicates.append(
                ProfileRecord.id.in_(
                    select(ProfileCertificate.profile_id).where(
                        ProfileCertificate.fingerprint.in_(query.certificate_fingerprints)
                    )
                )
            )
        if query.canvas_fingerprint:
            predicates.append(ProfileRecord.canvas_fingerprint == query.canvas_fingerprint)

        with self._session("query") as session:
            stmt = select(ProfileRecord).where(or_(*predicates)).limit(query.limit)
            return [record_to_profile(r) for r in session.scalars(stmt).all()]

    def save(self, profile: Profile) -> Profile:
        if not profile.id:
            raise ValueError("Profile must have an id before it is saved")

        attempts = 1 if self.optimistic_locking else SAVE_ATTEMPTS
        for attempt in range(1, attempts + 1):
            try:
                self._write(profile)
                break
            except ConcurrentModification:
                if attempt == attempts:
                    raise
                logger.debug(f"Profile {profile.id} changed during save, overwriting (attempt {attempt})")

        logger.debug(f"Saved profile {profile.id} (version {profile.version})")
        return profile

    def _write(self, profile: Profile) -> None:
        with self._session("save") as session:
            record = session.get(
                ProfileRecord,
                profile.id,
                options=[selectinload(ProfileRecord.certificates)],
            )
            if record is None:
                record = ProfileRecord(id=profile.id)
                record.certificates = []
                session.add(record)
            elif self.optimistic_locking and record.version != profile.version:
                raise ConcurrentModification(profile.id, profile.version, record.version)

            apply_profile(record, profile)
            try:
                session.flush()
            except StaleDataError as e:
                # Another writer committed between our read and our UPDATE
                raise ConcurrentModification(profile.id, profile.version) from e
            profile.version = record.version
