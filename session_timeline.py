"""
Session flow reconstruction: raw events -> ordered list of classified nodes.

Edges of the flow are implicit (node i -> node i+1), only the node order is built here.
"""
from datetime import datetime, timezone

import event_classifier
from event_classifier import event_attr, resolve_field
import utils

_MISSING_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)

PAGE_VIEW_TYPES = {"page_view", "pageview"}


def _sort_key(event):
    return utils.to_datetime(event_attr(event, "timestamp")) or _MISSING_TIMESTAMP


def order_events(events):
    """Chronological order; sorted() is stable so equal timestamps keep emission order"""
    return sorted(events or [], key=_sort_key)


def build_timeline(events, limit=None):
    nodes = [event_classifier.classify_event(event) for event in order_events(events)]
    if limit is not None:
        nodes = nodes[:max(0, limit)]
    return nodes


def is_page_view(event):
    return str(event_attr(event, "type") or "").lower() in PAGE_VIEW_TYPES


def page_url(event):
    url = resolve_field(event, "url") or resolve_field(event, "page")
    return str(url) if url else None


def summarize_session(events):
    """Session counters derived from its events.

    exitUrl stays None when the visitor never left the entry page.
    """
    ordered = order_events(events)
    if not ordered:
        return {
            "start_time": None,
            "end_time": None,
            "duration": 0.0,
            "pages_viewed": 0,
            "interactions_count": 0,
            "entry_url": None,
            "exit_url": None,
            "is_converted": False,
        }

    urls = [page_url(e) for e in ordered if is_page_view(e)]
    urls = [u for u in urls if u]
    categories = [event_classifier.classify(e) for e in ordered]

    start_time = _sort_key(ordered[0])
    end_time = _sort_key(ordered[-1])
    if start_time == _MISSING_TIMESTAMP:
        start_time = None
    if end_time == _MISSING_TIMESTAMP:
        end_time = None

    duration = 0.0
    if start_time and end_time:
        duration = round((end_time - start_time).total_seconds() / 60, 2)

    entry_url = urls[0] if urls else None
    exit_url = urls[-1] if urls and urls[-1] != entry_url else None

    return {
        "start_time": start_time,
        "end_time": end_time,
        "duration": duration,
        "pages_viewed": len(urls),
        "interactions_count": sum(1 for e in ordered if not is_page_view(e)),
        "entry_url": entry_url,
        "exit_url": exit_url,
        "is_converted": event_classifier.CONVERSION in categories,
    }
