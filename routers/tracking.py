from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from database import get_db
import models, schemas
from datetime import datetime, timedelta
from typing import List, Optional
import logging

import config
import repository
import session_timeline
import url_normalizer
import utils

router = APIRouter()

logger = logging.getLogger("app.tracking")


def _check_time_range(time_range: str):
    if time_range not in utils.TIME_RANGES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid timeRange '{time_range}', expected one of {', '.join(utils.TIME_RANGES)}"
        )


def _user_out(user: models.TrackedUser, now: datetime) -> dict:
    active_since = now - timedelta(minutes=config.ACTIVE_WINDOW_MINUTES)
    return {
        "id": user.id,
        "fingerprint": user.fingerprint,
        "ip": user.ip,
        "user_agent": user.user_agent,
        "location": user.location,
        "referrer": user.referrer,
        "first_visit": user.first_visit,
        "last_activity": user.last_activity,
        "sessions_count": user.sessions_count or 0,
        "is_active": bool(user.last_activity and user.last_activity >= active_since),
    }


def _get_or_create_user(db: Session, batch: schemas.EventBatch, ip: Optional[str], now: datetime):
    user = db.query(models.TrackedUser).filter(
        models.TrackedUser.fingerprint == batch.fingerprint
    ).first()

    if user:
        if ip and ip != user.ip:
            user.ip = ip
            user.location = utils.format_location(utils.get_location_from_ip(ip)) or user.location
        if batch.user_agent:
            user.user_agent = batch.user_agent
        return user

    user = models.TrackedUser(
        fingerprint=batch.fingerprint,
        ip=ip,
        user_agent=batch.user_agent,
        location=utils.format_location(utils.get_location_from_ip(ip)),
        referrer=batch.referrer or "direct",
        first_visit=now,
        last_activity=now,
        sessions_count=0
    )
    db.add(user)
    db.flush()
    logger.info(f"New tracked user {user.id} ({batch.fingerprint[:12]})")
    return user


def _attach_landing_page(db: Session, session: models.UserSession, user: models.TrackedUser,
                         title: Optional[str], now: datetime):
    """Count the session against the landing page of its entry URL (once per session)"""
    if session.landing_page_id is not None or not session.entry_url:
        return

    page = db.query(models.LandingPage).filter(models.LandingPage.url == session.entry_url).first()
    if not page:
        page = models.LandingPage(url=session.entry_url, title=title, total_visits=0, unique_users=0)
        db.add(page)
        db.flush()

    returning = db.query(models.UserSession).filter(
        models.UserSession.landing_page_id == page.id,
        models.UserSession.user_id == user.id
    ).count()

    page.total_visits = (page.total_visits or 0) + 1
    if returning == 0:
        page.unique_users = (page.unique_users or 0) + 1
    page.last_access = now
    if title and not page.title:
        page.title = title
    session.landing_page_id = page.id


def _refresh_conversion_rate(db: Session, landing_page_id: Optional[int]):
    if landing_page_id is None:
        return
    page = db.query(models.LandingPage).filter(models.LandingPage.id == landing_page_id).first()
    sessions = db.query(models.UserSession).filter(
        models.UserSession.landing_page_id == landing_page_id
    ).all()
    converted = sum(1 for s in sessions if s.is_converted)
    page.conversion_rate = round(utils.safe_div(converted, len(sessions)) * 100, 2)


@router.post("/events")
def ingest_events(batch: schemas.EventBatch, request: Request, db: Session = Depends(get_db)):
    """Store a batch of raw events for one visitor session and refresh its derived counters"""
    if not batch.events:
        raise HTTPException(status_code=400, detail="No events in batch")

    ip = batch.ip or (request.client.host if request.client else None)
    return record_batch(db, batch, ip)


def record_batch(db: Session, batch: schemas.EventBatch, ip: Optional[str] = None,
                 now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    user = _get_or_create_user(db, batch, ip, now)

    session = db.query(models.UserSession).filter(models.UserSession.id == batch.session_id).first()
    if session and session.user_id != user.id:
        raise HTTPException(status_code=400, detail="Session belongs to another visitor")

    stored = repository.fetch_session_details(db, batch.session_id) if session else []

    # Retried batches resend the same event ids
    incoming_ids = [e.id for e in batch.events if e.id]
    known_ids = set()
    if incoming_ids:
        known_ids = {row[0] for row in db.query(models.SessionEvent.id).filter(
            models.SessionEvent.id.in_(incoming_ids)
        ).all()}

    if not session:
        first = min(repository.naive_utc(e.timestamp) for e in batch.events)
        session = models.UserSession(id=batch.session_id, user_id=user.id, start_time=first)
        db.add(session)
        user.sessions_count = (user.sessions_count or 0) + 1
        db.flush()

    next_sequence = max((e.sequence or 0 for e in stored), default=-1) + 1
    new_events = []
    for event in batch.events:
        if event.id and event.id in known_ids:
            continue
        row = models.SessionEvent(
            session_id=session.id,
            type=event.type,
            timestamp=repository.naive_utc(event.timestamp),
            sequence=next_sequence,
            data=event.data
        )
        if event.id:
            row.id = event.id
            known_ids.add(event.id)
        next_sequence += 1
        db.add(row)
        new_events.append(row)

    summary = session_timeline.summarize_session(list(stored) + new_events)
    session.start_time = repository.naive_utc(summary["start_time"]) or session.start_time
    session.end_time = repository.naive_utc(summary["end_time"])
    session.duration = summary["duration"]
    session.pages_viewed = summary["pages_viewed"]
    session.interactions_count = summary["interactions_count"]
    session.entry_url = summary["entry_url"]
    session.exit_url = summary["exit_url"]
    session.is_converted = summary["is_converted"]

    _attach_landing_page(db, session, user, batch.title, now)
    db.flush()
    _refresh_conversion_rate(db, session.landing_page_id)

    if session.end_time and (user.last_activity is None or session.end_time > user.last_activity):
        user.last_activity = session.end_time
    else:
        user.last_activity = user.last_activity or now

    db.commit()
    logger.info(f"Session {session.id}: stored {len(new_events)} events ({len(batch.events) - len(new_events)} duplicates)")

    return {
        "message": "Events tracked",
        "sessionId": session.id,
        "userId": user.id,
        "stored": len(new_events),
        "isConverted": bool(session.is_converted),
    }


@router.get("/landing-pages", response_model=List[schemas.LandingPage])
def get_landing_pages(time_range: str = Query("all", alias="timeRange"), db: Session = Depends(get_db)):
    """Landing pages merged by normalized URL"""
    _check_time_range(time_range)
    pages = repository.fetch_landing_pages(db, time_range)
    return url_normalizer.group_by_normalized_url(pages)


@router.get("/users/{landing_page_id}", response_model=List[schemas.TrackedUser])
def get_landing_page_users(landing_page_id: int, time_range: str = Query("all", alias="timeRange"),
                           db: Session = Depends(get_db)):
    _check_time_range(time_range)
    page = db.query(models.LandingPage).filter(models.LandingPage.id == landing_page_id).first()
    if not page:
        raise HTTPException(status_code=404, detail="Landing page not found")

    now = datetime.utcnow()
    return [_user_out(u, now) for u in repository.fetch_users(db, landing_page_id, time_range)]


@router.get("/sessions/{user_id}", response_model=List[schemas.UserSession])
def get_user_sessions(user_id: int, time_range: str = Query("all", alias="timeRange"),
                      db: Session = Depends(get_db)):
    _check_time_range(time_range)
    user = db.query(models.TrackedUser).filter(models.TrackedUser.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return repository.fetch_sessions(db, user_id, time_range)


@router.get("/sessions/details/{session_id}")
def get_session_details(session_id: str, limit: Optional[int] = Query(None, ge=0),
                        db: Session = Depends(get_db)):
    """Session flow: the session's events as ordered, classified nodes"""
    session = db.query(models.UserSession).filter(models.UserSession.id == session_id).first()
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    events = repository.fetch_session_details(db, session_id)
    nodes = session_timeline.build_timeline(events, limit=limit)

    return {
        "session": schemas.UserSession.model_validate(session),
        "nodes": nodes,
        "totalEvents": len(events),
    }
