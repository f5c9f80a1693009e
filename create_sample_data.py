"""
Create sample tracking data for testing the dashboard
"""
from database import SessionLocal, engine, Base
import models, schemas
from datetime import datetime, timedelta
import random
import uuid

from routers.tracking import record_batch
from routers.analytics import build_rollup
import utils

# Own seeded generator so reruns produce the same corpus
rng = random.Random(42)

# Create tables
Base.metadata.create_all(bind=engine)

db = SessionLocal()

site = "https://demo.example.com"
landing_urls = [
    f"{site}/",
    f"{site}/?utm_source=facebook&fbclid=abc123",
    f"{site}/pricing",
    f"{site}/pricing/",
    f"{site}/blog/analytics-tips",
]
inner_pages = ["/about", "/features", "/pricing", "/contact", "/blog"]
referrers = ["https://www.google.com/", "https://facebook.com/", "direct", "https://news.ycombinator.com/", None]
user_agents = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
]
buttons = ["cta-hero", "cta-pricing", "nav-menu", "play-video"]

now = datetime.utcnow()


def event(kind, at, **data):
    return schemas.TrackedEventIn(id=uuid.UUID(int=rng.getrandbits(128)).hex, type=kind, timestamp=at, data=data)


def sample_session(start):
    landing = rng.choice(landing_urls)
    at = start
    events = [event("page_view", at, url=landing, title="Demo")]

    for _ in range(rng.randint(0, 4)):
        at += timedelta(seconds=rng.randint(5, 90))
        kind = rng.choice(["click", "scroll", "page_view"])
        if kind == "click":
            events.append(event("click", at, tagName="button", elementId=rng.choice(buttons), elementText="Get started"))
        elif kind == "scroll":
            events.append(event("scroll", at, scrollPercentage=rng.choice([25, 50, 75, 100])))
        else:
            events.append(event("page_view", at, url=site + rng.choice(inner_pages)))

    if rng.random() < 0.3:
        at += timedelta(seconds=rng.randint(10, 60))
        events.append(event("interaction", at, interactionType="focus", formId="contactForm", fieldName="email"))
        if rng.random() < 0.5:
            at += timedelta(seconds=rng.randint(10, 60))
            events.append(event("form_submit", at, formId="contactForm"))
            at += timedelta(seconds=1)
            events.append(event("event", at, name="lead_generated", email="lead@example.com"))
    return events


print("Creating sample sessions...")
session_count = 0
for i in range(60):
    fingerprint = f"fp_{i:04d}"
    ua = rng.choice(user_agents)
    referrer = rng.choice(referrers)
    for _ in range(rng.randint(1, 3)):
        start = now - timedelta(days=rng.randint(0, 27), hours=rng.randint(0, 23), minutes=rng.randint(0, 59))
        batch = schemas.EventBatch(
            fingerprint=fingerprint,
            session_id=uuid.UUID(int=rng.getrandbits(128)).hex,
            ip=f"192.168.1.{i}",
            user_agent=ua,
            referrer=referrer,
            title="Demo Website",
            events=sample_session(start),
        )
        record_batch(db, batch, batch.ip, now=now)
        session_count += 1

print(f"✓ Created {session_count} sample sessions")

print("\nCreating sample leads...")
statuses = ["new", "contacted", "qualified", "opportunity", "proposal", "converted", "lost", "pending", "confirmed"]
services = ["SEO audit", "Web design", "Ads management"]
for i in range(20):
    db.add(models.Lead(
        name=f"Lead {i + 1}",
        email=f"lead{i + 1}@example.com",
        status=rng.choice(statuses),
        type="form",
        value=float(rng.choice([500, 1200, 2500, 4000])),
        service=rng.choice(services),
        created_at=now - timedelta(days=rng.randint(0, 30))
    ))
db.commit()
print("✓ Created 20 sample leads")

period_key = utils.generate_period_key(now.date(), "monthly")
payload = build_rollup(db, "monthly", period_key)
print(f"\n✓ Generated monthly analytics {period_key}: {payload['sampleSize']} sessions, "
      f"confidence {payload['confidence']}")

db.close()
print("\n✅ Sample data created successfully!")
