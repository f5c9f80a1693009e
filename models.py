from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float, Boolean, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from database import Base


def _new_id():
    return uuid.uuid4().hex


class LandingPage(Base):
    __tablename__ = "landing_pages"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String, unique=True, nullable=False)
    title = Column(String)
    total_visits = Column(Integer, default=0)
    unique_users = Column(Integer, default=0)
    conversion_rate = Column(Float, default=0.0)
    last_access = Column(DateTime, default=datetime.utcnow, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    sessions = relationship("UserSession", back_populates="landing_page")


class TrackedUser(Base):
    __tablename__ = "tracked_users"

    id = Column(Integer, primary_key=True, index=True)
    fingerprint = Column(String, unique=True, nullable=False, index=True)
    ip = Column(String)
    user_agent = Column(Text)
    location = Column(String)
    referrer = Column(String)
    first_visit = Column(DateTime, default=datetime.utcnow)
    last_activity = Column(DateTime, default=datetime.utcnow, index=True)
    sessions_count = Column(Integer, default=0)

    sessions = relationship("UserSession", back_populates="user")


class UserSession(Base):
    __tablename__ = "user_sessions"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(Integer, ForeignKey("tracked_users.id"), nullable=False, index=True)
    landing_page_id = Column(Integer, ForeignKey("landing_pages.id"), index=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime)
    duration = Column(Float, default=0.0)  # minutes
    pages_viewed = Column(Integer, default=0)
    interactions_count = Column(Integer, default=0)
    entry_url = Column(String)
    exit_url = Column(String)
    is_converted = Column(Boolean, default=False)

    user = relationship("TrackedUser", back_populates="sessions")
    landing_page = relationship("LandingPage", back_populates="sessions")
    events = relationship("SessionEvent", back_populates="session", cascade="all, delete-orphan")


class SessionEvent(Base):
    __tablename__ = "session_events"

    id = Column(String, primary_key=True, default=_new_id)
    session_id = Column(String, ForeignKey("user_sessions.id"), nullable=False, index=True)
    type = Column(String, index=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    sequence = Column(Integer, default=0)  # emission order within the session
    data = Column(JSON)

    session = relationship("UserSession", back_populates="events")


class AnalyticsRollup(Base):
    """One AdvancedAnalytics document per (period, period_key), overwritten on regeneration"""
    __tablename__ = "analytics_rollups"
    __table_args__ = (UniqueConstraint("period", "period_key", name="uq_rollup_period_key"),)

    id = Column(Integer, primary_key=True, index=True)
    period = Column(String, nullable=False)
    period_key = Column(String, nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    sample_size = Column(Integer, default=0)
    confidence = Column(Float, default=0.0)
    calculated_at = Column(DateTime, default=datetime.utcnow)


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, index=True)
    phone = Column(String)
    status = Column(String, default="new", index=True)  # persisted vocabulary, see funnel_mapping
    type = Column(String, default="form")
    value = Column(Float)
    service = Column(String)
    session_id = Column(String, ForeignKey("user_sessions.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
