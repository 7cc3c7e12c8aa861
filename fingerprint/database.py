"""
Database models for the device fingerprint server.

Uses SQLAlchemy 2.0. Profiles are stored with their searchable keys as
indexed columns and each attribute group as a JSON document; certificate
fingerprints get their own table so membership can be queried portably.
"""

from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Engine,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    create_engine,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool

from fingerprint.config import DatabaseSettings, get_settings


# =============================================================================
# Database Engine and Session
# =============================================================================

def create_db_engine(db_settings: DatabaseSettings, echo: bool = False) -> Engine:
    """Build an engine for the configured URL."""
    url = db_settings.url
    if url.startswith("sqlite"):
        # Single shared connection so an in-memory database survives across sessions
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=db_settings.pool_size,
        max_overflow=db_settings.max_overflow,
        pool_timeout=db_settings.pool_timeout,
        pool_recycle=1800,      # Recycle connections every 30 minutes
        connect_args={
            "connect_timeout": db_settings.connect_timeout,
            "options": f"-c statement_timeout={db_settings.statement_timeout_ms}",
        },
    )


@lru_cache()
def get_engine() -> Engine:
    """Process-wide engine built from settings."""
    settings = get_settings()
    return create_db_engine(settings.database, echo=settings.log.level == "DEBUG")


@lru_cache()
def get_session_factory() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine())


def init_db(engine: Optional[Engine] = None) -> None:
    """Create tables that do not exist yet."""
    Base.metadata.create_all(bind=engine or get_engine())


# =============================================================================
# Base Model
# =============================================================================

class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# =============================================================================
# Profile Models
# =============================================================================

class ProfileRecord(Base):
    """
    Storage representation of a device profile.

    Attribute groups are kept whole as JSON because the merge engine always
    replaces a group wholesale; only the lookup keys used by candidate
    retrieval are broken out into indexed columns.
    """
    __tablename__ = "device_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Candidate lookup keys
    visitor_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    canvas_fingerprint: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)

    # Attribute groups
    browser: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    device: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    network: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    geo_location: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    certificate: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    extra_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    # Matching state
    similarity_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    matched_device_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    observation_count: Mapped[int] = mapped_column(Integer, default=1)
    ip_history: Mapped[list] = mapped_column(JSON, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    certificates: Mapped[List["ProfileCertificate"]] = relationship(
        "ProfileCertificate",
        back_populates="profile",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_device_profiles_visitor_updated", "visitor_id", "updated_at"),
    )

    # Every UPDATE carries "WHERE version = <loaded>" and bumps the counter
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<ProfileRecord {self.id} (visitor={self.visitor_id}, count={self.observation_count})>"


class ProfileCertificate(Base):
    """One certificate fingerprint observed on a profile."""
    __tablename__ = "profile_certificates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("device_profiles.id", ondelete="CASCADE"), nullable=False
    )
    fingerprint: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    profile: Mapped["ProfileRecord"] = relationship("ProfileRecord", back_populates="certificates")

    __table_args__ = (
        Index("idx_profile_certificates_profile", "profile_id"),
    )

    def __repr__(self) -> str:
        return f"<ProfileCertificate {self.fingerprint} (profile={self.profile_id})>"
