"""
Database reads behind the tracking and analytics endpoints.

Timestamps are stored as naive UTC; everything handed to the analytics core
goes through utils.to_datetime which reads naive values as UTC.
"""
from sqlalchemy.orm import Session
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from datetime import datetime
import logging

import models
import utils

logger = logging.getLogger("app.repository")


def naive_utc(value) -> datetime:
    value = utils.to_datetime(value)
    return value.replace(tzinfo=None) if value is not None else None


def _range_start(time_range):
    return naive_utc(utils.time_range_start(time_range))


def fetch_landing_pages(db: Session, time_range: str = "all"):
    start = _range_start(time_range)
    query = db.query(models.LandingPage)
    if start is not None:
        query = query.filter(models.LandingPage.last_access >= start)
    return query.order_by(desc(models.LandingPage.total_visits), models.LandingPage.id).all()


def fetch_users(db: Session, landing_page_id: int, time_range: str = "all"):
    start = _range_start(time_range)
    query = db.query(models.TrackedUser).join(
        models.UserSession, models.UserSession.user_id == models.TrackedUser.id
    ).filter(models.UserSession.landing_page_id == landing_page_id)
    if start is not None:
        query = query.filter(models.UserSession.start_time >= start)
    return query.distinct().order_by(desc(models.TrackedUser.last_activity), models.TrackedUser.id).all()


def fetch_sessions(db: Session, user_id: int, time_range: str = "all"):
    start = _range_start(time_range)
    query = db.query(models.UserSession).filter(models.UserSession.user_id == user_id)
    if start is not None:
        query = query.filter(models.UserSession.start_time >= start)
    return query.order_by(desc(models.UserSession.start_time)).all()


def fetch_session_details(db: Session, session_id: str):
    return db.query(models.SessionEvent).filter(
        models.SessionEvent.session_id == session_id
    ).order_by(models.SessionEvent.timestamp, models.SessionEvent.sequence).all()


def fetch_period_corpus(db: Session, start, end):
    """Sessions started in [start, end) together with their events and users"""
    sessions = db.query(models.UserSession).filter(
        models.UserSession.start_time >= naive_utc(start),
        models.UserSession.start_time < naive_utc(end)
    ).order_by(models.UserSession.start_time, models.UserSession.id).all()

    session_ids = [s.id for s in sessions]
    user_ids = sorted({s.user_id for s in sessions})

    events = []
    users = []
    if session_ids:
        events = db.query(models.SessionEvent).filter(
            models.SessionEvent.session_id.in_(session_ids)
        ).order_by(models.SessionEvent.session_id, models.SessionEvent.timestamp,
                   models.SessionEvent.sequence).all()
        users = db.query(models.TrackedUser).filter(
            models.TrackedUser.id.in_(user_ids)
        ).order_by(models.TrackedUser.id).all()

    logger.debug(f"Corpus {start} -> {end}: {len(sessions)} sessions, {len(events)} events")
    return sessions, events, users


def get_rollup(db: Session, period: str, period_key: str):
    return db.query(models.AnalyticsRollup).filter(
        models.AnalyticsRollup.period == period,
        models.AnalyticsRollup.period_key == period_key
    ).first()


def get_previous_rollup(db: Session, period: str, period_key: str):
    """Latest stored rollup of the same period before `period_key` (keys sort chronologically)"""
    return db.query(models.AnalyticsRollup).filter(
        models.AnalyticsRollup.period == period,
        models.AnalyticsRollup.period_key < period_key
    ).order_by(desc(models.AnalyticsRollup.period_key)).first()


def _fill_rollup(rollup, payload: dict):
    rollup.payload = payload
    rollup.sample_size = payload.get("sampleSize", 0)
    rollup.confidence = payload.get("confidence", 0.0)
    rollup.calculated_at = datetime.utcnow()


def save_rollup(db: Session, period: str, period_key: str, payload: dict):
    """Insert or overwrite the rollup for (period, period_key); the last write wins"""
    rollup = get_rollup(db, period, period_key)
    if rollup is None:
        rollup = models.AnalyticsRollup(period=period, period_key=period_key)
        db.add(rollup)
    _fill_rollup(rollup, payload)

    try:
        db.commit()
    except IntegrityError:
        # Another writer inserted the same period first; overwrite its row
        db.rollback()
        logger.warning(f"Concurrent insert of {period} rollup {period_key}, overwriting")
        rollup = get_rollup(db, period, period_key)
        if rollup is None:
            raise
        _fill_rollup(rollup, payload)
        db.commit()

    db.refresh(rollup)
    return rollup
