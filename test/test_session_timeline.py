"""
Session flow reconstruction tests
"""
import random
from datetime import datetime, timedelta, timezone

from event_classifier import CONVERSION, FORM, INTERACTION
from session_timeline import build_timeline, order_events, summarize_session

T0 = datetime(2026, 10, 1, 10, 0, tzinfo=timezone.utc)


def ev(id_, type_, seconds, **data):
    return {"id": id_, "session_id": "s1", "type": type_, "timestamp": T0 + timedelta(seconds=seconds), "data": data}


def conversion_flow():
    return [
        ev("1", "page_view", 0, url="https://site.com/"),
        ev("2", "click", 10, tagName="a", elementText="Pricing"),
        ev("3", "page_view", 12, url="https://site.com/pricing"),
        ev("4", "form_submit", 60, formId="contactForm"),
        ev("5", "event", 61, name="lead_generated"),
    ]


def test_conversion_flow_scenario():
    events = conversion_flow()
    shuffled = [events[3], events[0], events[4], events[2], events[1]]

    nodes = build_timeline(shuffled)

    assert [n.id for n in nodes] == ["1", "2", "3", "4", "5"]
    assert [n.category for n in nodes] == [INTERACTION, INTERACTION, INTERACTION, FORM, CONVERSION]


def test_bounce_session_scenario():
    events = [ev("1", "page_view", 0, url="https://site.com/landing")]

    nodes = build_timeline(events)
    summary = summarize_session(events)

    assert len(nodes) == 1
    assert nodes[0].category == INTERACTION
    assert summary["is_converted"] is False
    assert summary["exit_url"] is None
    assert summary["pages_viewed"] == 1
    assert summary["interactions_count"] == 0


def test_timeline_is_sorted_and_stable():
    rng = random.Random(7)
    events = [ev(str(i), "click", rng.choice([0, 5, 10])) for i in range(40)]

    nodes = build_timeline(events)

    stamps = [n.timestamp for n in nodes]
    assert stamps == sorted(stamps)
    for second in (0, 5, 10):
        expected = [e["id"] for e in events if e["timestamp"] == T0 + timedelta(seconds=second)]
        assert [n.id for n in nodes if n.timestamp == T0 + timedelta(seconds=second)] == expected


def test_timeline_accepts_mixed_timestamp_shapes():
    events = [
        {"id": "b", "type": "click", "timestamp": "2026-10-01T10:00:05Z"},
        {"id": "a", "type": "click", "timestamp": datetime(2026, 10, 1, 10, 0)},
        {"id": "none", "type": "click", "timestamp": None},
    ]
    assert [e["id"] for e in order_events(events)] == ["none", "a", "b"]


def test_timeline_tolerates_non_string_fields():
    events = [
        {"id": "a", "type": 5},
        {"id": 7, "sessionId": 12, "type": "click", "timestamp": "2026-10-01T10:00:00Z", "data": ["x"]},
    ]

    nodes = build_timeline(events)

    assert [n.id for n in nodes] == ["a", "7"]
    assert nodes[0].type == "5"
    assert nodes[0].category == INTERACTION
    assert nodes[0].label == "5"
    assert nodes[1].session_id == "12"
    assert nodes[1].data is None


def test_timeline_limit():
    nodes = build_timeline(conversion_flow(), limit=2)
    assert [n.id for n in nodes] == ["1", "2"]
    assert build_timeline(conversion_flow(), limit=0) == []


def test_empty_timeline():
    assert build_timeline([]) == []
    assert build_timeline(None) == []
    assert summarize_session([])["duration"] == 0.0


def test_summarize_conversion_flow():
    summary = summarize_session(conversion_flow())

    assert summary["start_time"] == T0
    assert summary["end_time"] == T0 + timedelta(seconds=61)
    assert summary["duration"] == round(61 / 60, 2)
    assert summary["pages_viewed"] == 2
    assert summary["interactions_count"] == 3
    assert summary["entry_url"] == "https://site.com/"
    assert summary["exit_url"] == "https://site.com/pricing"
    assert summary["is_converted"] is True
