from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from database import get_db
import schemas
import logging

import aggregation
import insights
import repository
import utils

router = APIRouter()

logger = logging.getLogger("app.analytics")


def _check_period(period: str):
    if period not in utils.PERIODS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid period '{period}', expected one of {', '.join(utils.PERIODS)}"
        )


def build_rollup(db: Session, period: str, period_key: str) -> dict:
    """Aggregate the stored corpus of one period window and persist the result"""
    start, end = utils.period_bounds(period_key, period)
    sessions, events, users = repository.fetch_period_corpus(db, start, end)
    payload = aggregation.aggregate(period_key, period, sessions, events, users)
    repository.save_rollup(db, period, period_key, payload)
    logger.info(f"Rollup {period}/{period_key} generated from {payload['sampleSize']} sessions "
                f"(confidence {payload['confidence']})")
    return payload


def _stored_rollup(db: Session, period: str, period_key: str) -> dict:
    try:
        utils.period_bounds(period_key, period)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    rollup = repository.get_rollup(db, period, period_key)
    if not rollup:
        raise HTTPException(status_code=404, detail=f"No analytics for {period} period {period_key}")
    return rollup.payload


def _previous_payload(db: Session, period: str, period_key: str):
    previous = repository.get_previous_rollup(db, period, period_key)
    return previous.payload if previous else None


@router.post("/generate", response_model=schemas.GenerateAnalyticsResponse)
def generate_analytics(request: schemas.GenerateAnalyticsRequest, db: Session = Depends(get_db)):
    """(Re)generate the rollup for the period containing startDate"""
    _check_period(request.period)
    if request.end_date is not None and request.end_date < request.start_date:
        raise HTTPException(status_code=400, detail="endDate must not be before startDate")

    period_key = utils.generate_period_key(request.start_date, request.period)

    existing = repository.get_rollup(db, request.period, period_key)
    if existing and not request.force:
        return {
            "message": "Analytics already generated for this period",
            "period_key": period_key,
            "analytics": existing.payload,
            "generated": False,
        }

    payload = build_rollup(db, request.period, period_key)
    return {
        "message": "Analytics generated successfully",
        "period_key": period_key,
        "analytics": payload,
        "generated": True,
    }


@router.get("/period/{period_key}", response_model=schemas.AdvancedAnalytics)
def get_period_analytics(period_key: str, period: str = "monthly", db: Session = Depends(get_db)):
    _check_period(period)
    return _stored_rollup(db, period, period_key)


@router.get("/insights/{period_key}", response_model=schemas.InsightsResponse)
def get_insights(period_key: str, period: str = "monthly", db: Session = Depends(get_db)):
    """Insights for a stored rollup, compared against the previous stored period when there is one"""
    _check_period(period)
    current = _stored_rollup(db, period, period_key)
    return insights.build_insights_response(current, _previous_payload(db, period, period_key))


@router.get("/dashboard", response_model=schemas.DashboardResponse)
def get_dashboard(period: str = Query("monthly"), db: Session = Depends(get_db)):
    """Current period rollup with headline figures, generated on first access"""
    _check_period(period)
    period_key = utils.generate_period_key(utils.utc_now(), period)

    rollup = repository.get_rollup(db, period, period_key)
    current = rollup.payload if rollup else build_rollup(db, period, period_key)
    insight_list = insights.generate_insights(current, _previous_payload(db, period, period_key))

    hotspots = current["behavioralHeatmap"]["interactionHotspots"]
    hours = current["temporalPatterns"]["hourlyDistribution"]
    sources = current["engagement"]["bySource"]
    busiest = max(hours, key=lambda h: (h["visits"], -h["hour"])) if hours else None

    return {
        "periodKey": period_key,
        "period": period,
        "analytics": current,
        "insights": insight_list,
        "summary": {
            "overallScore": current["engagement"]["overallScore"],
            "confidence": current["confidence"],
            "sampleSize": current["sampleSize"],
            "topInteraction": hotspots[0]["elementId"] if hotspots else None,
            "peakHour": busiest["hour"] if busiest and busiest["visits"] > 0 else None,
            "topSource": max(sources, key=lambda s: s["userCount"])["source"] if sources else None,
        },
    }
