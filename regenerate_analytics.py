"""
Regenerate the stored analytics rollup for one period

    python regenerate_analytics.py --date 2026-10-01 --period monthly
"""
import argparse
from datetime import datetime

from database import SessionLocal, engine, Base
from logging_config import setup_logging
from routers.analytics import build_rollup
import utils


def main(argv=None):
    parser = argparse.ArgumentParser(description="Regenerate the analytics rollup for a period")
    parser.add_argument("--date", help="any day inside the period (YYYY-MM-DD), defaults to today")
    parser.add_argument("--period", default="monthly", choices=utils.PERIODS)
    args = parser.parse_args(argv)

    day = datetime.strptime(args.date, "%Y-%m-%d").date() if args.date else utils.utc_now().date()
    period_key = utils.generate_period_key(day, args.period)

    setup_logging()
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        payload = build_rollup(db, args.period, period_key)
    finally:
        db.close()

    print(f"✓ {args.period} {period_key}: {payload['sampleSize']} sessions, "
          f"engagement {payload['engagement']['overallScore']}, confidence {payload['confidence']}")
    return payload


if __name__ == "__main__":
    main()
