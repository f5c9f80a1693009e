"""
Funnel stage mapping tests
"""
import pytest

from funnel_mapping import (
    FUNNEL_STAGES, build_funnel_board, funnel_stats, to_db_status, to_funnel_status,
)


@pytest.mark.parametrize("db_status,stage", [
    ("new", "new"),
    ("contacted", "contacted"),
    ("qualified", "qualified"),
    ("converted", "customer"),
    ("lost", "lost"),
    ("pending", "new"),
    ("confirmed", "contacted"),
    ("completed", "qualified"),
    ("cancelled", "lost"),
    ("opportunity", "opportunity"),
    ("proposal", "proposal"),
    ("customer", "customer"),
])
def test_forward_table(db_status, stage):
    assert to_funnel_status(db_status) == stage


def test_reverse_table():
    assert [to_db_status(s) for s in FUNNEL_STAGES] == [
        "new", "contacted", "qualified", "opportunity", "proposal", "converted", "lost",
    ]


@pytest.mark.parametrize("value", [None, "", "archived", 42, "  CONTACTED  "])
def test_unknown_values_default_to_new(value):
    assert to_db_status(to_funnel_status(value)) in ("new", "contacted")
    if value != "  CONTACTED  ":
        assert to_funnel_status(value) == "new"
        assert to_db_status(value) == "new"


@pytest.mark.parametrize("stage", FUNNEL_STAGES)
def test_round_trip_reaches_fixed_point(stage):
    once = to_db_status(to_funnel_status(stage))
    assert to_db_status(to_funnel_status(once)) == once


def test_legacy_statuses_are_rewritten_on_round_trip():
    assert to_db_status(to_funnel_status("pending")) == "new"
    assert to_db_status(to_funnel_status("completed")) == "qualified"
    assert to_db_status(to_funnel_status("cancelled")) == "lost"


def test_board_has_every_stage():
    items = [
        {"id": 1, "status": "converted", "value": 1000, "service": "SEO"},
        {"id": 2, "status": "pending", "value": 200},
        {"id": 3, "status": "cancelled", "value": 300},
        {"id": 4, "status": "mystery"},
    ]

    board = build_funnel_board(items)

    assert list(board) == list(FUNNEL_STAGES)
    assert [i["id"] for i in board["customer"]] == [1]
    assert [i["id"] for i in board["new"]] == [2, 4]
    assert [i["id"] for i in board["lost"]] == [3]
    assert board["proposal"] == []


def test_funnel_stats():
    items = [
        {"status": "customer", "value": 1000, "service": "SEO"},
        {"status": "customer", "value": 500, "service": "SEO"},
        {"status": "proposal", "value": 250},
        {"status": "lost", "value": 100},
        {"status": "new", "value": 50},
    ]

    stats = funnel_stats(build_funnel_board(items))

    assert stats["totalLeads"] == 5
    assert stats["conversionRate"] == 50
    assert stats["potentialValue"] == 1900
    assert stats["realizedValue"] == 1500
    assert stats["lostValue"] == 100
    assert stats["serviceDistribution"] == {"SEO": 2}


def test_funnel_stats_empty_board():
    stats = funnel_stats(build_funnel_board([]))
    assert stats["totalLeads"] == 0
    assert stats["conversionRate"] == 0
