"""
HTTP surface tests against an in-memory database
"""
import models

IPHONE_UA = ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
             "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1")


def batch(fingerprint, session_id, landing, day=5, converted=False, **extra):
    stamp = f"2026-10-{day:02d}T10:00:"
    events = [
        {"id": f"{session_id}-1", "type": "page_view", "timestamp": stamp + "00Z", "data": {"url": landing}},
        {"id": f"{session_id}-2", "type": "click", "timestamp": stamp + "10Z",
         "data": {"tagName": "button", "elementId": "cta"}},
        {"id": f"{session_id}-3", "type": "page_view", "timestamp": stamp + "30Z",
         "data": {"url": "https://site.com/pricing"}},
    ]
    if converted:
        events.append({"id": f"{session_id}-4", "type": "form_submit", "timestamp": stamp + "40Z",
                       "data": {"formId": "contactForm"}})
        events.append({"id": f"{session_id}-5", "type": "event", "timestamp": stamp + "41Z",
                       "data": {"name": "lead_generated"}})
    body = {
        "fingerprint": fingerprint,
        "sessionId": session_id,
        "userAgent": IPHONE_UA,
        "referrer": "https://www.google.com/",
        "title": "Home",
        "events": events,
    }
    body.update(extra)
    return body


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_ingest_creates_user_session_and_landing_page(client, db):
    response = client.post("/api/tracking/events", json=batch("fp-a", "sess-a", "https://site.com/", converted=True))

    assert response.status_code == 200
    body = response.json()
    assert body["stored"] == 5
    assert body["isConverted"] is True

    session = db.query(models.UserSession).filter(models.UserSession.id == "sess-a").first()
    assert session.pages_viewed == 2
    assert session.interactions_count == 3
    assert session.entry_url == "https://site.com/"
    assert session.exit_url == "https://site.com/pricing"
    assert session.landing_page.total_visits == 1
    assert session.landing_page.conversion_rate == 100.0


def test_retried_batch_is_not_stored_twice(client, db):
    payload = batch("fp-a", "sess-a", "https://site.com/")
    client.post("/api/tracking/events", json=payload)
    response = client.post("/api/tracking/events", json=payload)

    assert response.json()["stored"] == 0
    assert db.query(models.SessionEvent).count() == 3
    assert db.query(models.LandingPage).first().total_visits == 1


def test_repeated_event_id_within_batch_is_stored_once(client, db):
    payload = batch("fp-a", "sess-a", "https://site.com/")
    payload["events"].append(dict(payload["events"][1]))

    response = client.post("/api/tracking/events", json=payload)

    assert response.status_code == 200
    assert response.json()["stored"] == 3
    assert db.query(models.SessionEvent).count() == 3
    assert db.query(models.UserSession).first().interactions_count == 1


def test_empty_batch_is_rejected(client):
    payload = batch("fp-a", "sess-a", "https://site.com/")
    payload["events"] = []
    assert client.post("/api/tracking/events", json=payload).status_code == 400


def test_landing_pages_are_grouped(client):
    client.post("/api/tracking/events", json=batch("fp-a", "sess-a", "https://site.com/?fbclid=abc", converted=True))
    client.post("/api/tracking/events", json=batch("fp-b", "sess-b", "https://site.com/"))

    pages = client.get("/api/tracking/landing-pages", params={"timeRange": "all"}).json()

    assert len(pages) == 1
    page = pages[0]
    assert page["url"] == "https://site.com"
    assert page["totalVisits"] == 2
    assert page["uniqueUsers"] == 2
    assert page["conversionRate"] == 50.0
    assert sorted(page["originalUrls"]) == ["https://site.com/", "https://site.com/?fbclid=abc"]


def test_invalid_time_range(client):
    assert client.get("/api/tracking/landing-pages", params={"timeRange": "90d"}).status_code == 400


def test_users_and_sessions(client):
    created = client.post("/api/tracking/events", json=batch("fp-a", "sess-a", "https://site.com/")).json()
    client.post("/api/tracking/events", json=batch("fp-a", "sess-a2", "https://site.com/", day=6))

    page_id = client.get("/api/tracking/landing-pages").json()[0]["id"]
    users = client.get(f"/api/tracking/users/{page_id}").json()
    assert [u["fingerprint"] for u in users] == ["fp-a"]
    assert users[0]["sessionsCount"] == 2

    sessions = client.get(f"/api/tracking/sessions/{created['userId']}").json()
    assert [s["id"] for s in sessions] == ["sess-a2", "sess-a"]
    assert sessions[0]["pagesViewed"] == 2

    assert client.get("/api/tracking/users/999").status_code == 404
    assert client.get("/api/tracking/sessions/999").status_code == 404


def test_session_details_timeline(client):
    client.post("/api/tracking/events", json=batch("fp-a", "sess-a", "https://site.com/", converted=True))

    details = client.get("/api/tracking/sessions/details/sess-a").json()
    assert details["totalEvents"] == 5
    assert [n["category"] for n in details["nodes"]] == [
        "interaction", "interaction", "interaction", "form", "conversion",
    ]
    assert details["nodes"][0]["sessionId"] == "sess-a"

    limited = client.get("/api/tracking/sessions/details/sess-a", params={"limit": 2}).json()
    assert len(limited["nodes"]) == 2

    assert client.get("/api/tracking/sessions/details/nope").status_code == 404


def test_generate_analytics(client):
    client.post("/api/tracking/events", json=batch("fp-a", "sess-a", "https://site.com/", converted=True))
    client.post("/api/tracking/events", json=batch("fp-b", "sess-b", "https://site.com/", day=20))

    request = {"startDate": "2026-10-01", "endDate": "2026-11-01", "period": "monthly", "force": False}
    first = client.post("/api/analytics/generate", json=request).json()
    assert first["generated"] is True
    assert first["periodKey"] == "2026-10"
    assert first["analytics"]["sampleSize"] == 2
    assert first["analytics"]["funnelAnalysis"]["overall"]["totalCompletions"] == 1

    again = client.post("/api/analytics/generate", json=request).json()
    assert again["generated"] is False
    assert again["analytics"] == first["analytics"]

    forced = client.post("/api/analytics/generate", json={**request, "force": True}).json()
    assert forced["generated"] is True
    assert forced["analytics"] == first["analytics"]

    stored = client.get("/api/analytics/period/2026-10", params={"period": "monthly"}).json()
    assert stored["calculatedAt"] == "2026-11-01T00:00:00+00:00"
    assert stored["sampleSize"] == 2


def test_generate_validation(client):
    assert client.post("/api/analytics/generate", json={"startDate": "2026-10-01", "period": "hourly"}).status_code == 400
    assert client.post("/api/analytics/generate",
                       json={"startDate": "2026-10-05", "endDate": "2026-10-01"}).status_code == 400
    assert client.post("/api/analytics/generate", json={"startDate": "not-a-date"}).status_code == 422


def test_period_lookup_errors(client):
    assert client.get("/api/analytics/period/2026-10").status_code == 404
    assert client.get("/api/analytics/period/october").status_code == 400
    assert client.get("/api/analytics/insights/2026-10").status_code == 404


def test_insights_compare_with_previous_period(client):
    client.post("/api/tracking/events", json=batch("fp-a", "sess-a", "https://site.com/", converted=True))
    client.post("/api/analytics/generate", json={"startDate": "2026-09-01", "period": "monthly"})
    client.post("/api/analytics/generate", json={"startDate": "2026-10-01", "period": "monthly"})

    response = client.get("/api/analytics/insights/2026-10").json()

    assert response["analytics"]["sampleSize"] == 1
    assert response["comparativeInsights"]
    assert response["summary"]["totalInsights"] == len(response["insights"]) + len(response["comparativeInsights"])

    insight_fields = {"id", "type", "category", "message", "priority", "recommendation", "value", "change"}
    for insight in response["insights"] + response["comparativeInsights"]:
        assert set(insight) == insight_fields
    assert all(i["type"] == "comparison" for i in response["comparativeInsights"])


def test_dashboard(client):
    response = client.get("/api/analytics/dashboard")

    assert response.status_code == 200
    body = response.json()
    assert set(body["summary"]) == {"overallScore", "confidence", "sampleSize", "topInteraction", "peakHour", "topSource"}
    assert body["analytics"]["periodKey"] == body["periodKey"]
    assert all(set(i) >= {"id", "type", "priority", "message"} for i in body["insights"])


def test_funnel_board_and_stage_move(client, db):
    lead = client.post("/api/funnel/leads", json={"name": "Ada", "status": "pending", "value": 1200}).json()
    client.post("/api/funnel/leads", json={"name": "Bob", "status": "cancelled", "value": 300})
    assert lead["status"] == "new"

    board = client.get("/api/funnel/board").json()
    assert list(board["board"]) == ["new", "contacted", "qualified", "opportunity", "proposal", "customer", "lost"]
    assert [i["name"] for i in board["board"]["lost"]] == ["Bob"]

    moved = client.patch(f"/api/funnel/{lead['id']}/stage", json={"status": "customer"})
    assert moved.status_code == 200
    assert moved.json()["status"] == "customer"

    stored = db.query(models.Lead).filter(models.Lead.id == lead["id"]).first()
    assert stored.status == "converted"

    stats = client.get("/api/funnel/board").json()["stats"]
    assert stats["totalLeads"] == 2
    assert stats["conversionRate"] == 50
    assert stats["realizedValue"] == 1200


def test_stage_move_errors(client):
    assert client.patch("/api/funnel/1/stage", json={"status": "customer"}).status_code == 404
    lead = client.post("/api/funnel/leads", json={"name": "Ada"}).json()
    assert client.patch(f"/api/funnel/{lead['id']}/stage", json={"status": "archived"}).status_code == 400
