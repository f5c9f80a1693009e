"""
Human-readable, prioritised insights derived from AdvancedAnalytics rollups.
"""
import logging

from utils import safe_div

logger = logging.getLogger("app.insights")

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

LOW_CONFIDENCE = 40
LOW_ENGAGEMENT = 40
STRONG_ENGAGEMENT = 70
LOW_SCROLL_COMPLETION = 25
MOBILE_LAG_RATIO = 0.8

# (metric key, category, label, path into the rollup)
COMPARABLE_METRICS = (
    ("overallScore", "engagement", "Engagement score", ("engagement", "overallScore")),
    ("confidence", "data_quality", "Confidence", ("confidence",)),
    ("sampleSize", "traffic", "Sessions", ("sampleSize",)),
    ("goalCompletionRate", "conversion", "Goal completion rate", ("sessionQuality", "indicators", "goalCompletionRate")),
    ("avgDepth", "scroll", "Average scroll depth", ("behavioralHeatmap", "scrollBehavior", "avgDepth")),
    ("completionRate", "funnel", "Funnel completion rate", ("funnelAnalysis", "overall", "completionRate")),
)


def _get(data, *path, default=None):
    for key in path:
        if not isinstance(data, dict):
            return default
        data = data.get(key)
        if data is None:
            return default
    return data


def _insight(type_, category, message, priority, recommendation=None, value=None, change=None, id_=None):
    return {
        "id": id_ or f"{type_}-{category}",
        "type": type_,
        "category": category,
        "message": message,
        "priority": priority,
        "recommendation": recommendation,
        "value": value,
        "change": change,
    }


def _funnel_insight(current):
    bottleneck = _get(current, "funnelAnalysis", "overall", "bottleneckStep")
    if not bottleneck:
        return None
    steps = _get(current, "funnelAnalysis", "steps", default=[])
    step = next((s for s in steps if s.get("stepName") == bottleneck), None)
    if step is None:
        return None
    drop_off = step.get("dropOffRate", 0)
    if drop_off > 50:
        priority = "high"
    elif drop_off > 25:
        priority = "medium"
    else:
        return None
    return _insight(
        "warning", "funnel",
        f"Bottleneck at step '{bottleneck}': {drop_off:.1f}% of visitors drop off",
        priority,
        recommendation=f"Review the '{bottleneck}' step, simplify it and make the next action clearer",
        value=drop_off,
    )


def _engagement_insight(current):
    score = _get(current, "engagement", "overallScore", default=0)
    if not _get(current, "sampleSize", default=0):
        return None
    if score < LOW_ENGAGEMENT:
        return _insight(
            "warning", "engagement",
            f"Engagement is low ({score:.1f}/100)",
            "medium",
            recommendation="Add calls to action and interactive content above the fold",
            value=score,
        )
    if score >= STRONG_ENGAGEMENT:
        return _insight(
            "opportunity", "engagement",
            f"Engagement is strong ({score:.1f}/100)",
            "low",
            recommendation="Use the most engaging pages as templates for new content",
            value=score,
        )
    return None


def _device_insight(current):
    mobile = _get(current, "engagement", "byDevice", "mobile", default={})
    desktop = _get(current, "engagement", "byDevice", "desktop", default={})
    if not mobile.get("userCount") or not desktop.get("userCount"):
        return None
    mobile_score, desktop_score = mobile.get("score", 0), desktop.get("score", 0)
    if mobile_score >= desktop_score * MOBILE_LAG_RATIO:
        return None
    gap = desktop_score - mobile_score
    return _insight(
        "warning", "device",
        f"Mobile engagement lags desktop by {gap:.1f} points",
        "high" if mobile_score < desktop_score * 0.5 else "medium",
        recommendation="Check the mobile layout, tap targets and page weight",
        value=gap,
    )


def _scroll_insight(current):
    scroll = _get(current, "behavioralHeatmap", "scrollBehavior", default={})
    if not scroll.get("avgDepth"):
        return None
    completion = scroll.get("completionRate", 0)
    if completion >= LOW_SCROLL_COMPLETION:
        return None
    return _insight(
        "warning", "scroll",
        f"Only {completion:.1f}% of visitors reach the end of the page",
        "medium",
        recommendation="Move key content and calls to action higher up the page",
        value=completion,
    )


def _quality_insight(current):
    distribution = _get(current, "sessionQuality", "qualityDistribution", default={})
    total = sum(distribution.values()) if distribution else 0
    poor_share = safe_div(distribution.get("poor", 0), total) * 100
    if poor_share <= 50:
        return None
    return _insight(
        "warning", "quality",
        f"{poor_share:.1f}% of sessions are poor quality",
        "medium",
        recommendation="Check the traffic sources that send the lowest quality sessions",
        value=round(poor_share, 2),
    )


def _peak_hour_insight(current):
    hours = _get(current, "temporalPatterns", "hourlyDistribution", default=[])
    busiest = None
    for bucket in hours:
        if bucket.get("visits", 0) > 0 and (busiest is None or bucket["visits"] > busiest["visits"]):
            busiest = bucket
    if busiest is None:
        return None
    return _insight(
        "info", "temporal",
        f"Peak traffic at {busiest['hour']:02d}:00 UTC ({busiest['visits']} visits)",
        "low",
        recommendation="Schedule campaigns and content updates before the peak hour",
        value=busiest["visits"],
    )


def _hotspot_insight(current):
    hotspots = _get(current, "behavioralHeatmap", "interactionHotspots", default=[])
    if not hotspots:
        return None
    top = hotspots[0]
    return _insight(
        "info", "interaction",
        f"Most engaging element: {top['elementType']} '{top['elementId']}' ({top['interactions']} interactions)",
        "low",
        recommendation="Place the main call to action near this element",
        value=top["heatScore"],
    )


SIGNALS = (
    _funnel_insight,
    _engagement_insight,
    _device_insight,
    _scroll_insight,
    _quality_insight,
    _peak_hour_insight,
    _hotspot_insight,
)


def _confidence_insight(current, strong_claim):
    confidence = _get(current, "confidence", default=0)
    if confidence >= LOW_CONFIDENCE:
        return None
    sample = _get(current, "sampleSize", default=0)
    return _insight(
        "warning", "data_quality",
        f"Low confidence ({confidence:.1f}%) with only {sample} sessions",
        "high" if strong_claim else "medium",
        recommendation="Treat these results as indicative until more sessions are collected",
        value=confidence,
    )


def _change(current_value, previous_value):
    if previous_value == 0:
        return 0.0 if current_value == 0 else 100.0
    return round((current_value - previous_value) / abs(previous_value) * 100, 2)


def comparative_insights(current, previous):
    insights = []
    for metric, category, label, path in COMPARABLE_METRICS:
        now = _get(current, *path)
        before = _get(previous, *path)
        if not isinstance(now, (int, float)) or not isinstance(before, (int, float)):
            continue

        change = _change(now, before)
        if abs(change) >= 25 and change < 0:
            priority = "high"
        elif abs(change) >= 10:
            priority = "medium"
        else:
            priority = "low"

        if change > 0:
            direction = "up"
        elif change < 0:
            direction = "down"
        else:
            direction = "unchanged"
        message = f"{label} {direction}" + (f" {abs(change):.1f}%" if change else "") + " versus the previous period"

        insights.append(_insight(
            "comparison", category, message, priority,
            value=now, change=change, id_=f"comparison-{metric}",
        ))
    return insights


def _sort_key(insight):
    magnitude = insight["change"] if insight["change"] is not None else insight["value"]
    return PRIORITY_ORDER[insight["priority"]], -abs(magnitude or 0), insight["id"]


def generate_insights(current, previous=None):
    """Insights for `current`, highest priority first, plus deltas against `previous` when given"""
    insights = [i for i in (signal(current) for signal in SIGNALS) if i is not None]

    # a low-confidence warning is only alarming when it undermines a high-priority claim
    confidence = _confidence_insight(current, any(i["priority"] == "high" for i in insights))
    if confidence is not None:
        insights.append(confidence)

    if previous:
        insights.extend(comparative_insights(current, previous))

    insights.sort(key=_sort_key)
    logger.debug(f"{len(insights)} insights for {current.get('periodKey')}")
    return insights


def build_insights_response(current, previous=None):
    insights = generate_insights(current, previous)
    plain = [i for i in insights if i["type"] != "comparison"]
    comparative = [i for i in insights if i["type"] == "comparison"]

    categories = []
    for insight in insights:
        if insight["category"] not in categories:
            categories.append(insight["category"])

    return {
        "periodKey": current.get("periodKey"),
        "insights": plain,
        "comparativeInsights": comparative,
        "summary": {
            "totalInsights": len(insights),
            "highPriority": sum(1 for i in insights if i["priority"] == "high"),
            "categories": categories,
        },
        "analytics": {
            "overallScore": _get(current, "engagement", "overallScore", default=0),
            "confidence": current.get("confidence", 0),
            "sampleSize": current.get("sampleSize", 0),
        },
    }
