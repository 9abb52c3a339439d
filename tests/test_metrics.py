from types import SimpleNamespace
from app.services.metrics_service import (
    REVIEW_WEIGHTS, overall_rating, average_rating, percent, budget_totals, is_low_stock
)


def test_weights_sum_to_one():
    assert round(sum(REVIEW_WEIGHTS.values()), 6) == 1.0


def test_overall_rating_uses_scored_dimensions():
    assert overall_rating({"quality": 5, "timeliness": 3}) == 4.1
    assert overall_rating({k: 4 for k in REVIEW_WEIGHTS}) == 4.0
    assert overall_rating({"quality": None, "mood": 5}) is None
    assert overall_rating({}) is None


def test_average_rating():
    reviews = [SimpleNamespace(overall_rating=4.0), SimpleNamespace(overall_rating=3.0)]
    assert average_rating(reviews) == 3.5
    assert average_rating([]) is None


def test_percent():
    assert percent(1, 3) == 33
    assert percent(2, 2) == 100
    assert percent(5, 0) == 0


def test_budget_totals():
    items = [
        SimpleNamespace(total=10000, is_expense=False, is_paid=False),
        SimpleNamespace(total=2500, is_expense=True, is_paid=True),
        SimpleNamespace(total=500, is_expense=True, is_paid=False),
    ]
    assert budget_totals(items) == {
        "total_budget": 10000,
        "total_expenses": 3000,
        "paid_expenses": 2500,
        "unpaid_expenses": 500,
        "profit": 7000,
    }


def test_low_stock_rule():
    assert is_low_stock(SimpleNamespace(quantity=15, min_stock_level=15)) is True
    assert is_low_stock(SimpleNamespace(quantity=16, min_stock_level=15)) is False
    assert is_low_stock(SimpleNamespace(quantity=9, min_stock_level=None)) is True
    assert is_low_stock(SimpleNamespace(quantity=10, min_stock_level=None)) is False
