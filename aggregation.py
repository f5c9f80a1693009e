"""
Period rollups of behavioural analytics (the AdvancedAnalytics document).

Everything here is a pure function of its inputs: no clock reads, no randomness,
deterministic ordering everywhere, so regenerating a period with the same corpus
gives an identical document.
"""
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit
import logging
import math
import statistics

import config
import event_classifier
from event_classifier import event_attr, resolve_field
import session_timeline
import url_normalizer
import utils
from utils import safe_div

logger = logging.getLogger("app.aggregation")

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

# Engagement: a session saturates a component at these values
TIME_FULL_MINUTES = 10.0
INTERACTIONS_FULL = 20.0

ENGAGEMENT_WEIGHTS = {
    "timeEngagement": 0.3,
    "interactionEngagement": 0.3,
    "depthEngagement": 0.2,
    "conversionEngagement": 0.2,
}

HIGH_ENGAGEMENT = 70
MEDIUM_ENGAGEMENT = 40

SCROLL_COMPLETE_DEPTH = 95.0
FAST_SCROLL_SECONDS_PER_PERCENT = 0.5
SLOW_READ_SECONDS_PER_PERCENT = 3.0

MOMENTUM_THRESHOLD = 10.0
MAX_PATTERN_PAGES = 5

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

ELEMENT_TYPES = {
    "a": "link",
    "link": "link",
    "button": "button",
    "input": "form",
    "textarea": "form",
    "select": "form",
    "form": "form",
    "img": "image",
    "image": "image",
    "video": "video",
    "p": "text",
    "span": "text",
    "h1": "text",
    "h2": "text",
    "h3": "text",
    "text": "text",
}


def _r(value, digits=2):
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return round(value, digits)


def _mean(values):
    values = list(values)
    return safe_div(sum(values), len(values))


def _pct(part, whole):
    return _r(safe_div(part, whole) * 100)


def _top(counter, n):
    """Most common keys, ties broken alphabetically"""
    return [key for key, _ in sorted(counter.items(), key=lambda kv: (-kv[1], str(kv[0])))[:n]]


@dataclass(eq=False)
class SessionFacts:
    session: Any
    nodes: List[Any]
    user_key: str
    start: datetime
    end: datetime
    duration: float
    pages_viewed: int
    interactions: int
    converted: bool
    max_depth: Optional[float]
    seconds_to_max_depth: Optional[float]
    source: str = "direct"
    device: str = "desktop"
    region: str = "unknown"
    components: Dict[str, float] = field(default_factory=dict)
    score: float = 0.0


def session_components(duration_minutes, interactions, depth, converted):
    """Four 0-100 engagement components, each non-decreasing in its input"""
    return {
        "timeEngagement": min(max(duration_minutes or 0, 0) / TIME_FULL_MINUTES, 1.0) * 100,
        "interactionEngagement": min(max(interactions or 0, 0) / INTERACTIONS_FULL, 1.0) * 100,
        "depthEngagement": min(max(depth or 0, 0), 100.0),
        "conversionEngagement": 100.0 if converted else 0.0,
    }


def engagement_score(components):
    score = sum(components[name] * weight for name, weight in ENGAGEMENT_WEIGHTS.items())
    return _r(min(max(score, 0.0), 100.0))


def _user_key(session):
    user_id = event_attr(session, "user_id", "userId")
    if user_id is not None:
        return f"user:{user_id}"
    return f"session:{event_attr(session, 'id')}"


def _build_facts(session, nodes, user):
    start = utils.to_datetime(event_attr(session, "start_time", "startTime"))
    if start is None:
        start = nodes[0].timestamp if nodes and nodes[0].timestamp else _EPOCH
    end = utils.to_datetime(event_attr(session, "end_time", "endTime"))
    if end is None:
        stamps = [n.timestamp for n in nodes if n.timestamp]
        end = stamps[-1] if stamps else start

    duration = event_attr(session, "duration")
    if duration is None:
        duration = max((end - start).total_seconds(), 0) / 60

    pages_viewed = event_attr(session, "pages_viewed", "pagesViewed")
    if pages_viewed is None:
        pages_viewed = sum(1 for n in nodes if (n.type or "").lower() in session_timeline.PAGE_VIEW_TYPES)

    interactions = event_attr(session, "interactions_count", "interactionsCount")
    if interactions is None:
        interactions = sum(1 for n in nodes if (n.type or "").lower() not in session_timeline.PAGE_VIEW_TYPES)

    converted = bool(event_attr(session, "is_converted", "isConverted")) or any(
        n.category == event_classifier.CONVERSION for n in nodes
    )

    max_depth = None
    depth_at = None
    for node in nodes:
        depth = event_classifier.scroll_depth(node)
        if depth is not None and (max_depth is None or depth > max_depth):
            max_depth = depth
            depth_at = node.timestamp
    seconds_to_max_depth = None
    if max_depth is not None and depth_at is not None:
        first = nodes[0].timestamp or start
        seconds_to_max_depth = max((depth_at - first).total_seconds(), 0.0)

    facts = SessionFacts(
        session=session,
        nodes=nodes,
        user_key=_user_key(session),
        start=start,
        end=end,
        duration=float(duration or 0),
        pages_viewed=int(pages_viewed or 0),
        interactions=int(interactions or 0),
        converted=converted,
        max_depth=max_depth,
        seconds_to_max_depth=seconds_to_max_depth,
    )

    if user is not None:
        facts.source = utils.classify_traffic_source(event_attr(user, "referrer"))["type"]
        device = utils.parse_user_agent(event_attr(user, "user_agent", "userAgent"))["device"]
        facts.device = "desktop" if device == "Desktop" else "mobile"
        facts.region = event_attr(user, "location") or "unknown"

    facts.components = session_components(facts.duration, facts.interactions, max_depth, converted)
    facts.score = engagement_score(facts.components)
    return facts


def prepare(sessions, events, users=None):
    """Timelines for every session seen in `events`, plus per-session facts for `sessions`"""
    events_by_session = defaultdict(list)
    for event in events or []:
        events_by_session[str(event_attr(event, "session_id", "sessionId"))].append(event)
    timelines = {sid: session_timeline.build_timeline(evts) for sid, evts in events_by_session.items()}

    users_by_id = {}
    for user in users or []:
        users_by_id[event_attr(user, "id")] = user

    facts = []
    for session in sessions or []:
        sid = str(event_attr(session, "id"))
        user = users_by_id.get(event_attr(session, "user_id", "userId"))
        facts.append(_build_facts(session, timelines.get(sid, []), user))

    facts.sort(key=lambda f: (f.start, str(event_attr(f.session, "id"))))
    return facts, timelines


def _window(period_key, period, facts):
    try:
        return utils.period_bounds(period_key, period)
    except ValueError:
        logger.debug(f"Unparseable period key {period_key!r}, using the data span")
        if not facts:
            return _EPOCH, _EPOCH
        return facts[0].start, max(f.end for f in facts)


def temporal_distribution(facts, timelines, window):
    hourly = {h: {"visits": 0, "pageViews": 0, "scores": [], "conversions": 0} for h in range(24)}
    weekly = {d: {"visits": 0, "scores": [], "hours": Counter()} for d in range(7)}

    for f in facts:
        hour = f.start.hour
        day = (f.start.weekday() + 1) % 7
        hourly[hour]["visits"] += 1
        hourly[hour]["scores"].append(f.score)
        if f.converted:
            hourly[hour]["conversions"] += 1
        weekly[day]["visits"] += 1
        weekly[day]["scores"].append(f.score)
        weekly[day]["hours"][hour] += 1

    for sid in sorted(timelines):
        for node in timelines[sid]:
            if node.timestamp and (node.type or "").lower() in session_timeline.PAGE_VIEW_TYPES:
                hourly[node.timestamp.hour]["pageViews"] += 1

    hourly_distribution = [{
        "hour": h,
        "visits": b["visits"],
        "pageViews": b["pageViews"],
        "engagement": _r(_mean(b["scores"])),
        "conversions": b["conversions"],
    } for h, b in hourly.items()]

    weekly_distribution = [{
        "dayOfWeek": d,
        "dayName": DAY_NAMES[d],
        "visits": b["visits"],
        "avgEngagement": _r(_mean(b["scores"])),
        "peakHour": _top(b["hours"], 1)[0] if b["hours"] else 0,
    } for d, b in weekly.items()]

    start, end = window
    middle = start + (end - start) / 2
    earlier = sum(1 for f in facts if f.start < middle)
    later = len(facts) - earlier
    if earlier:
        growth = (later - earlier) / earlier * 100
    else:
        growth = 100.0 if later else 0.0

    if growth > MOMENTUM_THRESHOLD:
        momentum = "accelerating"
    elif growth < -MOMENTUM_THRESHOLD:
        momentum = "declining"
    else:
        momentum = "stable"

    day_visits = [b["visits"] for b in weekly.values()]
    seasonality = safe_div(statistics.pstdev(day_visits), _mean(day_visits))

    return {
        "hourlyDistribution": hourly_distribution,
        "weeklyDistribution": weekly_distribution,
        "weeklyTrends": {
            "growth": _r(growth),
            "momentum": momentum,
            "seasonality": _r(seasonality),
        },
    }


def engagement_metrics(facts):
    components = {
        name: _r(_mean(f.components[name] for f in facts)) for name in ENGAGEMENT_WEIGHTS
    }

    by_source = defaultdict(list)
    by_device = {"mobile": [], "desktop": []}
    for f in facts:
        by_source[f.source].append(f)
        by_device[f.device].append(f)

    sources = [{
        "source": source,
        "score": _r(_mean(f.score for f in group)),
        "userCount": len({f.user_key for f in group}),
    } for source, group in by_source.items()]
    sources.sort(key=lambda s: (-s["score"], s["source"]))

    return {
        "overallScore": _r(_mean(f.score for f in facts)),
        "components": components,
        "bySource": sources,
        "byDevice": {
            device: {
                "score": _r(_mean(f.score for f in group)),
                "userCount": len({f.user_key for f in group}),
            } for device, group in by_device.items()
        },
        "distribution": {
            "high": sum(1 for f in facts if f.score >= HIGH_ENGAGEMENT),
            "medium": sum(1 for f in facts if MEDIUM_ENGAGEMENT <= f.score < HIGH_ENGAGEMENT),
            "low": sum(1 for f in facts if f.score < MEDIUM_ENGAGEMENT),
        },
    }


def element_type(node):
    raw = resolve_field(node, "elementType") or resolve_field(node, "tagName") or resolve_field(node, "element")
    if raw is None:
        if node.category == event_classifier.FORM:
            return "form"
        return "unknown"
    return ELEMENT_TYPES.get(str(raw).strip().lower(), "unknown")


def element_id(node):
    for key in ("elementId", "selector", "formId", "formName", "elementText", "text"):
        value = resolve_field(node, key)
        if value not in (None, ""):
            return str(value)
    return "unknown"


def interaction_hotspots(facts, timelines, limit=20):
    """Heat score = 100 * sqrt(volume share * reach share).

    The geometric mean rewards elements that are both clicked a lot and by many
    different users over elements hammered by a handful of visitors.
    """
    user_for_session = {str(event_attr(f.session, "id")): f.user_key for f in facts}
    interactions = Counter()
    users = defaultdict(set)

    for sid in sorted(timelines):
        user_key = user_for_session.get(sid, f"session:{sid}")
        for node in timelines[sid]:
            if node.category not in (event_classifier.INTERACTION, event_classifier.FORM):
                continue
            if (node.type or "").lower() in session_timeline.PAGE_VIEW_TYPES:
                continue
            key = (element_type(node), element_id(node))
            interactions[key] += 1
            users[key].add(user_key)

    if not interactions:
        return []

    max_interactions = max(interactions.values())
    max_users = max(len(u) for u in users.values())

    hotspots = []
    for (etype, eid), count in interactions.items():
        reach = len(users[(etype, eid)])
        heat = 100 * math.sqrt(safe_div(count, max_interactions) * safe_div(reach, max_users))
        hotspots.append({
            "elementType": etype,
            "elementId": eid,
            "interactions": count,
            "uniqueUsers": reach,
            "heatScore": _r(heat),
        })

    hotspots.sort(key=lambda h: (-h["heatScore"], -h["interactions"], h["elementType"], h["elementId"]))
    return hotspots[:limit]


def scroll_behavior(facts):
    depths = [f.max_depth for f in facts if f.max_depth is not None]
    total = len(depths)

    drop_off_points = []
    reached_previous = total
    for depth in range(10, 101, 10):
        reached = sum(1 for d in depths if d >= depth)
        rate = safe_div(reached_previous - reached, reached_previous) * 100
        drop_off_points.append({"depth": depth, "dropOffRate": _r(rate)})
        reached_previous = reached

    ratios = [
        f.seconds_to_max_depth / f.max_depth
        for f in facts
        if f.max_depth and f.seconds_to_max_depth is not None
    ]

    return {
        "avgDepth": _r(_mean(depths)),
        "completionRate": _pct(sum(1 for d in depths if d >= SCROLL_COMPLETE_DEPTH), total),
        "dropOffPoints": drop_off_points,
        "fastScrollers": _pct(sum(1 for r in ratios if r < FAST_SCROLL_SECONDS_PER_PERCENT), len(ratios)),
        "slowReaders": _pct(sum(1 for r in ratios if r > SLOW_READ_SECONDS_PER_PERCENT), len(ratios)),
    }


def _page_path(url):
    try:
        path = urlsplit(str(url)).path
    except ValueError:
        return str(url)
    return path.rstrip("/") or "/"


def _page_urls(f):
    urls = [session_timeline.page_url(n) for n in f.nodes
            if (n.type or "").lower() in session_timeline.PAGE_VIEW_TYPES]
    return [u for u in urls if u]


def navigation_patterns(facts, limit=10):
    groups = defaultdict(list)
    for f in facts:
        pages = [_page_path(u) for u in _page_urls(f)]
        if not pages:
            pages = [_page_path(u) for u in (event_attr(f.session, "entry_url", "entryUrl"),
                                             event_attr(f.session, "exit_url", "exitUrl")) if u]
        collapsed = []
        for page in pages:
            if not collapsed or collapsed[-1] != page:
                collapsed.append(page)
        if not collapsed:
            continue
        groups[" > ".join(collapsed[:MAX_PATTERN_PAGES])].append(f)

    patterns = [{
        "pattern": pattern,
        "frequency": len(group),
        "conversionRate": _pct(sum(1 for f in group if f.converted), len(group)),
        "avgSessionValue": _r(_mean(f.score for f in group)),
    } for pattern, group in groups.items()]
    patterns.sort(key=lambda p: (-p["frequency"], p["pattern"]))
    return patterns[:limit]


def _step_matches(step, node):
    node_type = (node.type or "").lower()
    if step == "landing":
        return node_type in session_timeline.PAGE_VIEW_TYPES
    if step == "engagement":
        return node.category == event_classifier.NAVIGATION or (
            node.category == event_classifier.INTERACTION
            and node_type not in session_timeline.PAGE_VIEW_TYPES
        )
    if step == "form_start":
        return node.category == event_classifier.FORM
    if step == "lead":
        return node.category == event_classifier.CONVERSION
    name = str(resolve_field(node, "name") or "").lower()
    return step.lower() in (node_type, name)


def step_times(f, steps):
    """Time each funnel step was reached, in order, stopping at the first missing step"""
    times = []
    position = 0
    for order, step in enumerate(steps):
        reached = None
        if order == 0 and step == "landing":
            # every session lands, even without a recorded page view
            reached = (0, f.nodes[0].timestamp if f.nodes and f.nodes[0].timestamp else f.start)
        else:
            for index in range(position, len(f.nodes)):
                if _step_matches(step, f.nodes[index]):
                    reached = (index + 1, f.nodes[index].timestamp or f.start)
                    break
            if reached is None and step == "lead" and f.converted:
                reached = (len(f.nodes), f.end)
        if reached is None:
            break
        position = reached[0]
        times.append(reached[1])
    return times


def _seconds(later, earlier):
    return max((later - earlier).total_seconds(), 0.0)


def funnel_analysis(facts, steps=None):
    steps = list(steps or config.FUNNEL_STEPS)
    reached = [(f, step_times(f, steps)) for f in facts]

    step_rows = []
    for i, name in enumerate(steps):
        entries = sum(1 for _, t in reached if len(t) >= i)
        conversions = sum(1 for _, t in reached if len(t) >= i + 1)
        in_step = [_seconds(t[i + 1], t[i]) for _, t in reached if len(t) >= i + 2]
        step_rows.append({
            "stepName": name,
            "stepOrder": i + 1,
            "entries": entries,
            "exits": entries - conversions,
            "conversions": conversions,
            "dropOffRate": _r(safe_div(entries - conversions, entries) * 100),
            "avgTimeInStep": _r(_mean(in_step)),
        })

    bottleneck = ""
    worst = -1.0
    for row in step_rows:
        if row["entries"] > 0 and row["dropOffRate"] > worst:
            worst = row["dropOffRate"]
            bottleneck = row["stepName"]

    def completion(group):
        completed = [t for _, t in group if steps and len(t) == len(steps)]
        return (
            _pct(len(completed), len(group)),
            _r(_mean(_seconds(t[-1], t[0]) for t in completed)),
        )

    total_entries = step_rows[0]["entries"] if step_rows else 0
    total_completions = step_rows[-1]["conversions"] if step_rows else 0
    completion_rate, avg_time = completion(reached)

    by_source = defaultdict(list)
    for f, t in reached:
        by_source[f.source].append((f, t))
    sources = []
    for source in sorted(by_source):
        rate, seconds = completion(by_source[source])
        sources.append({"source": source, "completionRate": rate, "avgTimeToComplete": seconds})

    return {
        "steps": step_rows,
        "overall": {
            "totalEntries": total_entries,
            "totalCompletions": total_completions,
            "completionRate": completion_rate,
            "avgTimeToComplete": avg_time,
            "bottleneckStep": bottleneck,
        },
        "bySource": sources,
    }


CLUSTERS = ("Converters", "Explorers", "Casual Browsers", "Bouncers")


def _cluster_for(f):
    if f.converted:
        return "Converters"
    if f.pages_viewed <= 1 and f.duration < 1:
        return "Bouncers"
    if f.pages_viewed >= 4:
        return "Explorers"
    return "Casual Browsers"


def _value_segment(group):
    return {"count": len(group), "avgValue": _r(_mean(f.score for f in group))}


def user_segmentation(facts):
    clusters = defaultdict(list)
    regions = defaultdict(list)
    for f in facts:
        clusters[_cluster_for(f)].append(f)
        regions[f.region].append(f)

    behavioral = []
    for name in CLUSTERS:
        group = clusters.get(name)
        if not group:
            continue
        behavioral.append({
            "clusterName": name,
            "userCount": len({f.user_key for f in group}),
            "characteristics": {
                "avgSessionDuration": _r(_mean(f.duration for f in group)),
                "avgPageViews": _r(_mean(f.pages_viewed for f in group)),
                "conversionRate": _pct(sum(1 for f in group if f.converted), len(group)),
                "preferredDevice": _top(Counter(f.device for f in group), 1)[0],
                "topSources": _top(Counter(f.source for f in group), 3),
            },
        })

    geographic = []
    for region, group in regions.items():
        content = Counter()
        for f in group:
            entry = event_attr(f.session, "entry_url", "entryUrl")
            if entry:
                content[_page_path(entry)] += 1
        geographic.append({
            "region": region,
            "userCount": len({f.user_key for f in group}),
            "engagement": _r(_mean(f.score for f in group)),
            "conversionRate": _pct(sum(1 for f in group if f.converted), len(group)),
            "topContent": _top(content, 3),
        })
    geographic.sort(key=lambda g: (-g["userCount"], g["region"]))

    return {
        "behavioralClusters": behavioral,
        "geographic": geographic[:10],
        "valueSegments": {
            "highValue": _value_segment([f for f in facts if f.score >= HIGH_ENGAGEMENT]),
            "mediumValue": _value_segment([f for f in facts if MEDIUM_ENGAGEMENT <= f.score < HIGH_ENGAGEMENT]),
            "lowValue": _value_segment([f for f in facts if f.score < MEDIUM_ENGAGEMENT]),
        },
    }


def _category_for(url):
    path = _page_path(url).strip("/")
    if not path:
        return "home"
    return path.split("/")[0]


def content_performance(facts, top_n=10, exit_n=5):
    views = Counter()
    visitors = defaultdict(set)
    seconds_on_page = defaultdict(list)
    # facts hash by identity; dicts keep first-seen order
    sessions_on_page = defaultdict(dict)
    entries = Counter()
    bounces = Counter()
    exits = Counter()
    exit_actions = defaultdict(Counter)

    for f in facts:
        page_nodes = [n for n in f.nodes if (n.type or "").lower() in session_timeline.PAGE_VIEW_TYPES
                      and session_timeline.page_url(n)]
        urls = [url_normalizer.normalize_url(session_timeline.page_url(n)) for n in page_nodes]

        for i, (node, url) in enumerate(zip(page_nodes, urls)):
            views[url] += 1
            visitors[url].add(f.user_key)
            sessions_on_page[url][f] = True
            if node.timestamp:
                left_at = page_nodes[i + 1].timestamp if i + 1 < len(page_nodes) else None
                if left_at is None:
                    stamps = [n.timestamp for n in f.nodes if n.timestamp]
                    left_at = stamps[-1] if stamps else node.timestamp
                seconds_on_page[url].append(_seconds(left_at, node.timestamp))

        if urls:
            entries[urls[0]] += 1
            if len(urls) <= 1:
                bounces[urls[0]] += 1
            exit_url = urls[-1]
        else:
            fallback = event_attr(f.session, "exit_url", "exitUrl") or event_attr(f.session, "entry_url", "entryUrl")
            exit_url = url_normalizer.normalize_url(fallback) if fallback else None
        if exit_url:
            exits[exit_url] += 1
            for node in [n for n in f.nodes if (n.type or "").lower() not in session_timeline.PAGE_VIEW_TYPES][-3:]:
                exit_actions[exit_url][node.type or "event"] += 1

    def page_row(url):
        group = list(sessions_on_page[url])
        return {
            "url": url,
            "visits": views[url],
            "uniqueVisitors": len(visitors[url]),
            "avgTimeOnPage": _r(_mean(seconds_on_page[url])),
            "bounceRate": _pct(bounces[url], entries[url]),
            "conversionRate": _pct(sum(1 for f in group if f.converted), len(group)),
            "engagementScore": _r(_mean(f.score for f in group)),
        }

    ranked = sorted(views, key=lambda u: (-views[u], u))
    top_pages = []
    for rank, url in enumerate(ranked[:top_n], start=1):
        row = page_row(url)
        row["rank"] = rank
        top_pages.append(row)

    total_converted = sum(1 for f in facts if f.converted)
    by_category = defaultdict(list)
    for url in views:
        by_category[_category_for(url)].append(url)
    categories = []
    for category, urls in by_category.items():
        group = {}
        for url in urls:
            group.update(sessions_on_page[url])
        categories.append({
            "category": category,
            "pageCount": len(urls),
            "totalViews": sum(views[u] for u in urls),
            "avgEngagement": _r(_mean(f.score for f in group)),
            "conversionContribution": _pct(sum(1 for f in group if f.converted), total_converted),
        })
    categories.sort(key=lambda c: (-c["totalViews"], c["category"]))

    exit_analysis = []
    for url in sorted(exits, key=lambda u: (-exits[u], u))[:exit_n]:
        exit_rate = min(safe_div(exits[url], views[url], default=1.0) * 100, 100.0)
        exit_analysis.append({
            "url": url,
            "exitRate": _r(exit_rate),
            "beforeExitActions": _top(exit_actions[url], 3),
            "improvementOpportunity": _r(exit_rate * safe_div(exits[url], len(facts))),
        })

    return {
        "topPages": top_pages,
        "categories": categories,
        "exitAnalysis": exit_analysis,
    }


def session_quality(facts):
    by_source = defaultdict(list)
    for f in facts:
        by_source[f.source].append(f)

    sources = [{
        "source": source,
        "avgQualityScore": _r(_mean(f.score for f in group)),
        "sessionCount": len(group),
    } for source, group in by_source.items()]
    sources.sort(key=lambda s: (-s["sessionCount"], s["source"]))

    return {
        "qualityDistribution": {
            "excellent": sum(1 for f in facts if f.score >= 75),
            "good": sum(1 for f in facts if 50 <= f.score < 75),
            "average": sum(1 for f in facts if 25 <= f.score < 50),
            "poor": sum(1 for f in facts if f.score < 25),
        },
        "indicators": {
            "avgPagesPerSession": _r(_mean(f.pages_viewed for f in facts)),
            "avgSessionDuration": _r(_mean(f.duration for f in facts)),
            "interactionRate": _pct(sum(1 for f in facts if f.interactions > 0), len(facts)),
            "goalCompletionRate": _pct(sum(1 for f in facts if f.converted), len(facts)),
        },
        "byTrafficSource": sources,
    }


def _trend(value):
    if value >= 60:
        return "positive"
    if value < 30:
        return "negative"
    return "neutral"


def predictions(facts, engagement, temporal, confidence, window_end):
    trends = temporal["weeklyTrends"]
    conversion_rate = safe_div(sum(1 for f in facts if f.converted), len(facts)) * 100
    next_week = min(max(conversion_rate * (1 + trends["growth"] / 100), 0.0), 100.0)

    factors = [{
        "factor": name,
        "weight": weight,
        "trend": _trend(engagement["components"][name]),
    } for name, weight in ENGAGEMENT_WEIGHTS.items()]

    last_seen = {}
    for f in facts:
        if f.user_key not in last_seen or f.end > last_seen[f.user_key]:
            last_seen[f.user_key] = f.end
    idle_days = [(window_end - seen).days for seen in last_seen.values()]

    return {
        "conversionPropensity": {
            "nextWeekPrediction": _r(next_week),
            "confidence": confidence,
            "factors": factors,
        },
        "churnRisk": {
            "highRisk": sum(1 for d in idle_days if d > 14),
            "mediumRisk": sum(1 for d in idle_days if 7 <= d <= 14),
            "lowRisk": sum(1 for d in idle_days if d < 7),
        },
        "growthForecast": {
            "nextPeriodGrowth": trends["growth"],
            "seasonalityFactor": trends["seasonality"],
            "trendMomentum": trends["momentum"],
        },
    }


def confidence_for(sample_size, full_sample=None):
    """0-100, grows with the square root of the sample; ~39 at 30 sessions, 100 at full_sample"""
    full_sample = full_sample or config.CONFIDENCE_FULL_SAMPLE
    if sample_size <= 0:
        return 0.0
    return _r(min(100.0, 100 * math.sqrt(sample_size / full_sample)))


def aggregate(period_key, period, sessions, events, users=None, funnel_steps=None):
    """Build the AdvancedAnalytics rollup for one period from a materialised corpus"""
    facts, timelines = prepare(sessions, events, users)
    window = _window(period_key, period, facts)

    temporal = temporal_distribution(facts, timelines, window)
    engagement = engagement_metrics(facts)
    confidence = confidence_for(len(facts))

    data_sources = ["sessions", "events"]
    if users:
        data_sources.append("users")

    return {
        "date": window[0].date().isoformat(),
        "period": period,
        "periodKey": period_key,
        "temporalPatterns": temporal,
        "engagement": engagement,
        "behavioralHeatmap": {
            "interactionHotspots": interaction_hotspots(facts, timelines),
            "scrollBehavior": scroll_behavior(facts),
            "navigationPatterns": navigation_patterns(facts),
        },
        "funnelAnalysis": funnel_analysis(facts, funnel_steps),
        "userSegmentation": user_segmentation(facts),
        "contentPerformance": content_performance(facts),
        "sessionQuality": session_quality(facts),
        "predictions": predictions(facts, engagement, temporal, confidence, window[1]),
        "calculatedAt": window[1].isoformat(),
        "dataSourcesUsed": data_sources,
        "confidence": confidence,
        "sampleSize": len(facts),
    }
