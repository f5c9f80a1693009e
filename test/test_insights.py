"""
Insight generation tests
"""
import copy

import aggregation
import insights
from test_aggregation import corpus

PRIORITY = {"high": 0, "medium": 1, "low": 2}


def current_rollup():
    return aggregation.aggregate("2026-10", "monthly", *corpus())


def assert_ordered(items):
    keys = [(PRIORITY[i["priority"]], -abs(i["change"] if i["change"] is not None else (i["value"] or 0)))
            for i in items]
    assert keys == sorted(keys)


def test_insights_are_prioritised():
    result = insights.generate_insights(current_rollup())

    assert result
    assert all(i["priority"] in PRIORITY for i in result)
    assert_ordered(result)
    assert len({i["id"] for i in result}) == len(result)


def test_bottleneck_insight():
    result = insights.generate_insights(current_rollup())
    funnel = next(i for i in result if i["category"] == "funnel")
    assert "form_start" in funnel["message"]
    assert funnel["priority"] == "medium"
    assert funnel["value"] == 50.0


def test_severe_bottleneck_is_high_priority():
    current = current_rollup()
    for step in current["funnelAnalysis"]["steps"]:
        if step["stepName"] == "form_start":
            step["dropOffRate"] = 80.0

    result = insights.generate_insights(current)

    assert result[0]["category"] == "funnel"
    assert result[0]["priority"] == "high"


def test_low_confidence_backing_a_strong_claim_is_high():
    current = current_rollup()
    current["funnelAnalysis"]["steps"][2]["dropOffRate"] = 80.0

    confidence = next(i for i in insights.generate_insights(current) if i["category"] == "data_quality")

    assert current["confidence"] < 40
    assert confidence["priority"] == "high"


def test_no_comparisons_without_previous_period():
    result = insights.generate_insights(current_rollup(), None)
    assert not [i for i in result if i["type"] == "comparison"]


def test_comparative_insights():
    current = current_rollup()
    previous = copy.deepcopy(current)
    previous["engagement"]["overallScore"] = current["engagement"]["overallScore"] * 2
    previous["sampleSize"] = 3

    result = insights.generate_insights(current, previous)
    comparisons = {i["id"]: i for i in result if i["type"] == "comparison"}

    assert set(comparisons) == {
        "comparison-overallScore", "comparison-confidence", "comparison-sampleSize",
        "comparison-goalCompletionRate", "comparison-avgDepth", "comparison-completionRate",
    }
    engagement = comparisons["comparison-overallScore"]
    assert engagement["change"] == -50.0
    assert engagement["priority"] == "high"
    assert comparisons["comparison-sampleSize"]["change"] == 0.0
    assert comparisons["comparison-sampleSize"]["priority"] == "low"
    assert_ordered(result)


def test_change_from_zero_does_not_divide_by_zero():
    current = current_rollup()
    previous = aggregation.aggregate("2026-09", "monthly", [], [])

    result = insights.generate_insights(current, previous)

    sample = next(i for i in result if i["id"] == "comparison-sampleSize")
    assert sample["change"] == 100.0


def test_empty_rollup_has_no_crash():
    empty = aggregation.aggregate("2026-10", "monthly", [], [])
    result = insights.generate_insights(empty, empty)
    assert all(i["type"] in ("comparison", "warning") for i in result)


def test_insights_response():
    current = current_rollup()
    response = insights.build_insights_response(current, copy.deepcopy(current))

    assert response["periodKey"] == "2026-10"
    assert all(i["type"] != "comparison" for i in response["insights"])
    assert all(i["type"] == "comparison" for i in response["comparativeInsights"])
    summary = response["summary"]
    assert summary["totalInsights"] == len(response["insights"]) + len(response["comparativeInsights"])
    assert summary["highPriority"] == sum(
        1 for i in response["insights"] + response["comparativeInsights"] if i["priority"] == "high"
    )
    assert "funnel" in summary["categories"]
    assert response["analytics"] == {
        "overallScore": current["engagement"]["overallScore"],
        "confidence": current["confidence"],
        "sampleSize": 3,
    }
