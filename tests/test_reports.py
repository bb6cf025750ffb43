import asyncio
from datetime import date

import pytest

from trend.analytics import analytics_summary, period_frame
from trend.async_reports import category_totals_by_period, expenses_by_period
from trend.domain import Transaction
from trend.periods import build_periods, day_period
from trend.services import PeriodReportService, invalid_transactions

TODAY = date(2025, 1, 15)


def make_tx(id, day, amount, category="food", description="", recurrence="none", type="EXPENSE"):
    return Transaction(id=id, date=day, amount=amount, category=category, description=description,
                       recurrence=recurrence, type=type)


def sample_transactions():
    return [
        make_tx("t1", date(2025, 1, 14), 50, description="Uber Eats"),
        make_tx("t2", date(2025, 1, 15), 30, description="Woolworths"),
        make_tx("t3", date(2025, 1, 7), 20, description="DoorDash"),
        make_tx("t4", date(2025, 1, 8), 80, description="Coles"),
        make_tx("t5", date(2025, 1, 1), 400, category="rent", recurrence="monthly"),
        make_tx("t6", date(2025, 1, 15), 2000, category="salary", type="INCOME"),
    ]


def test_period_frame():
    periods = build_periods(sample_transactions(), "weekly", TODAY, week_start=0)
    df = period_frame(periods)

    assert list(df.columns) == ["label", "start", "end", "amount", "discretionary_amount", "recurring_amount"]
    assert len(df) == 4
    assert df["discretionary_amount"].tolist() == [0, 0, 100, 80]
    assert df["recurring_amount"].sum() == 400


def test_period_frame_empty():
    df = period_frame(())
    assert df.empty
    assert "recurring_amount" in df.columns


def test_analytics_summary():
    periods = build_periods(sample_transactions(), "weekly", TODAY, week_start=0)
    summary = analytics_summary(periods)

    assert summary["total"] == 580
    assert summary["discretionary_total"] == 180
    assert summary["discretionary_average"] == 45
    assert summary["highest"] == periods[2].label
    assert summary["change"] == -20


def test_analytics_summary_empty():
    assert analytics_summary(())["highest"] is None


def key(period):
    return period.start, period.end


@pytest.mark.asyncio
async def test_expenses_by_period():
    trans = sample_transactions()
    periods = build_periods(trans, "weekly", TODAY, week_start=0)

    res = await expenses_by_period(trans, periods)

    assert res[key(periods[-1])] == {"amount": 80, "discretionary_amount": 80, "count": 2}
    assert res[key(periods[1])] == {"amount": 400, "discretionary_amount": 0, "count": 1}
    assert res[key(periods[0])]["count"] == 0


@pytest.mark.asyncio
async def test_category_totals_by_period():
    trans = sample_transactions()
    periods = build_periods(trans, "weekly", TODAY, week_start=0)
    res = await category_totals_by_period(trans, periods)
    assert res[key(periods[-1])] == {"food": 80}
    assert res[key(periods[1])] == {}


@pytest.mark.asyncio
async def test_same_label_in_different_years_kept_apart():
    then, later = day_period(date(2024, 1, 15)), day_period(date(2029, 1, 15))
    assert then.label == later.label == "Mon 15"
    trans = [
        Transaction(id="a", date=date(2024, 1, 15), amount=10, category="food"),
        Transaction(id="b", date=date(2029, 1, 15), amount=25, category="fun"),
    ]

    totals = await expenses_by_period(trans, [then, later])
    categories = await category_totals_by_period(trans, [then, later])

    assert len(totals) == 2
    assert totals[key(then)]["amount"] == 10
    assert totals[key(later)]["amount"] == 25
    assert categories == {key(then): {"food": 10}, key(later): {"fun": 25}}


def test_reports_run_concurrently():
    trans = sample_transactions()
    periods = build_periods(trans, "monthly", TODAY)

    async def run_both():
        return await asyncio.gather(expenses_by_period(trans, periods), category_totals_by_period(trans, periods))

    totals, categories = asyncio.run(run_both())
    assert totals[key(periods[-1])]["amount"] == 580
    assert categories[key(periods[-1])] == {"food": 180}


def test_period_report_service():
    service = PeriodReportService(week_start=0)
    report = service.period_report("weekly", sample_transactions(), selected=TODAY, today=TODAY)

    assert [s["calculator"] for s in report["steps"]] == [
        "series_calculator", "breakdown_calculator", "takeout_calculator"
    ]
    assert report["validation"] == [{"validator": "invalid_transactions", "messages": []}]

    result = report["result"]
    assert result["breakdown"].is_custom_date
    assert result["breakdown"].categories[0].amount == 80
    assert result["takeout"].type == "warning"
    assert result["insights"] == (result["takeout"],)
    assert result["summary"]["discretionary_total"] == 180


def test_period_report_with_custom_calculators():
    def count_calculator(granularity, periods, transactions, categories, acc):
        return {"count": len(transactions)}

    def failing_validator(transactions):
        raise RuntimeError("boom")

    service = PeriodReportService(calculators=[count_calculator], validators=[failing_validator])
    report = service.period_report("daily", sample_transactions(), today=TODAY)

    assert report["result"]["count"] == 6
    assert report["result"]["insights"] == ()
    assert report["validation"][0]["messages"] == ["validator_error: boom"]


def test_invalid_transactions_messages():
    assert invalid_transactions([make_tx("t1", TODAY, 0)]) == ["t1: Transaction amount cannot be zero"]
