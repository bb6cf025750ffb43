from datetime import date

import pytest

from trend.domain import Transaction
from trend.insights import takeout_data, takeout_insight


def make_tx(id, amount, description, category="food"):
    return Transaction(id=id, date=date(2025, 1, 15), amount=amount, category=category, description=description)


def test_takeout_percentage_of_food():
    data = takeout_data([make_tx("t1", 50, "Uber Eats"), make_tx("t2", 30, "Woolworths"),
                         make_tx("t3", 90, "Uber trip", category="transport")])
    assert data.total_food == 80
    assert data.spending == 50
    assert data.count == 1
    assert data.percentage == 62.5


def test_food_category_match_is_case_insensitive():
    assert takeout_data([make_tx("t1", 10, "Deliveroo", category="Food")]).count == 1


def test_weekly_strong_increase_warns():
    current = [make_tx("t1", 50, "Uber Eats"), make_tx("t2", 30, "Woolworths")]
    previous = [make_tx("t3", 20, "DoorDash"), make_tx("t4", 80, "Coles")]
    insight = takeout_insight(current, previous, "weekly")

    assert insight.type == "warning"
    assert insight.category == "Takeout Trend"
    assert "up from 20% last week" in insight.message
    assert insight.amount == 50


def test_weekly_similar_is_info():
    current = [make_tx("t1", 50, "Uber Eats"), make_tx("t2", 50, "Coles")]
    previous = [make_tx("t3", 40, "Uber Eats"), make_tx("t4", 40, "Coles")]
    insight = takeout_insight(current, previous, "weekly")
    assert insight.type == "info"
    assert "similar to last week" in insight.message


def test_monthly_strong_decrease_succeeds():
    current = [make_tx("t1", 10, "Menulog"), make_tx("t2", 90, "Coles")]
    previous = [make_tx("t3", 50, "Menulog"), make_tx("t4", 50, "Coles")]
    insight = takeout_insight(current, previous, "monthly")
    assert insight.type == "success"
    assert "down from 50% last month" in insight.message


def test_daily_slight_increase():
    current = [make_tx("t1", 55, "Uber Eats"), make_tx("t2", 45, "Coles")]
    previous = [make_tx("t3", 40, "Uber Eats"), make_tx("t4", 60, "Coles")]
    insight = takeout_insight(current, previous, "daily")
    assert insight.type == "info"
    assert insight.suggestion == "Slightly more takeout than yesterday"


def test_no_food_means_no_insight():
    assert takeout_insight([make_tx("t1", 20, "Uber", category="transport")],
                           [make_tx("t2", 20, "Uber Eats")], "weekly") is None


def test_daily_needs_previous_takeout():
    assert takeout_insight([make_tx("t1", 20, "Uber Eats")], [], "daily") is None
    assert takeout_insight([make_tx("t1", 20, "Uber Eats")], [make_tx("t2", 20, "Coles")], "daily") is None


def test_no_takeout_in_either_period():
    assert takeout_insight([make_tx("t1", 20, "Coles")], [make_tx("t2", 20, "Coles")], "weekly") is None


def test_first_takeout_this_week():
    insight = takeout_insight([make_tx("t1", 20, "Uber Eats"), make_tx("t2", 30, "Uber Eats")], [], "weekly")
    assert insight.type == "info"
    assert insight.message.startswith("2 takeout orders this week")


def test_daily_no_takeout_after_takeout_yesterday():
    insight = takeout_insight([make_tx("t1", 20, "Coles")], [make_tx("t2", 20, "Uber Eats")], "daily")
    assert insight.type == "success"
    assert insight.amount == 0


def test_unknown_granularity():
    with pytest.raises(ValueError):
        takeout_insight([], [], "yearly")
