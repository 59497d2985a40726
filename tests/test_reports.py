from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from reports import build_sales_report, daily_sales, line_subtotal, monthly_sales, popular_products
from tests.factories import make_order

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def test_empty_report_has_defined_average():
    report = build_sales_report([], now=NOW)

    assert report["totalSales"] == 0
    assert report["totalOrders"] == 0
    assert report["averageOrderValue"] == 0.0
    assert report["popularProducts"] == []
    assert report["dailySales"] == []
    assert report["todaySales"] == 0.0
    assert report["todayOrders"] == 0


def test_totals_match_sum_of_orders():
    orders = [make_order(total=t) for t in (18.99, 37.98, 16.99, 5.5)]

    report = build_sales_report(orders, now=NOW)

    assert report["totalSales"] == pytest.approx(sum(o["total"] for o in orders))
    assert report["totalOrders"] == 4
    assert report["averageOrderValue"] == pytest.approx(round(report["totalSales"] / 4, 2))


def test_popular_products_ranking():
    orders = [
        make_order(items=[{"name": "A", "quantity": 2}]),
        make_order(items=[{"name": "B", "quantity": 5}]),
    ]

    assert [p["name"] for p in popular_products(orders)] == ["B", "A"]


def test_popular_products_ties_keep_first_seen_order_and_truncate():
    orders = [
        make_order(items=[{"name": "C", "quantity": 1}, {"name": "A", "quantity": 3}]),
        make_order(items=[{"product": "B", "quantity": 3}, {"name": "C", "quantity": 2}]),
        make_order(items=[{"quantity": 1}]),
    ]

    ranked = popular_products(orders, limit=3)

    assert ranked == [
        {"name": "C", "quantity": 3},
        {"name": "A", "quantity": 3},
        {"name": "B", "quantity": 3},
    ]
    assert popular_products(orders, limit=None)[-1] == {"name": "Unknown", "quantity": 1}


def test_malformed_order_degrades_per_field():
    orders = [
        make_order(total=20),
        {"orderId": "UC-2-x", "total": 15, "createdAt": "2026-10-19T09:00:00.000Z"},
        make_order(total=5, items="not a list"),
    ]

    report = build_sales_report(orders, now=NOW)

    assert report["totalSales"] == 40
    assert report["totalOrders"] == 3
    assert report["popularProducts"] == [{"name": "Colombian Supremo", "quantity": 1}]
    assert report["todaySales"] == 40
    assert report["todayOrders"] == 3


def test_orders_without_timestamp_skip_date_buckets():
    orders = [make_order(total=10, created_at=None), make_order(total=5, created_at="garbage")]

    report = build_sales_report(orders, now=NOW)

    assert report["totalSales"] == 15
    assert report["dailySales"] == []
    assert report["monthlySales"] == []


def test_daily_sales_sorted_and_recent_window():
    orders = [
        make_order(total=3, created_at="2026-10-03T12:00:00.000Z"),
        make_order(total=1, created_at="2026-10-01T12:00:00.000Z"),
        make_order(total=2, created_at="2026-10-02T12:00:00.000Z"),
        make_order(total=4, created_at="2026-10-01T18:00:00.000Z"),
    ]

    days = daily_sales(orders)
    assert [d["date"] for d in days] == ["2026-10-01", "2026-10-02", "2026-10-03"]
    assert days[0] == {"date": "2026-10-01", "total": 5.0, "orders": 2}

    assert [d["date"] for d in daily_sales(orders, recent=2)] == ["2026-10-02", "2026-10-03"]
    report = build_sales_report(orders, now=NOW, recent_days=1)
    assert [d["date"] for d in report["dailySales"]] == ["2026-10-03"]


def _has_zone(name):
    try:
        ZoneInfo(name)
    except Exception:
        return False
    return True


@pytest.mark.skipif(not _has_zone("America/New_York"), reason="tz database not available")
def test_daily_sales_use_report_timezone():
    orders = [make_order(total=7, created_at="2026-10-19T02:00:00.000Z")]

    report = build_sales_report(orders, now=NOW, tz="America/New_York")

    assert report["dailySales"] == [{"date": "2026-10-18", "total": 7.0, "orders": 1}]
    assert report["todayOrders"] == 0


def test_monthly_sales_ordered_by_date_not_label():
    orders = [
        make_order(total=10, created_at="2026-02-10T12:00:00.000Z"),
        make_order(total=20, created_at="2025-12-10T12:00:00.000Z"),
        make_order(total=5, created_at="2026-02-20T12:00:00.000Z"),
    ]

    assert monthly_sales(orders) == [
        {"month": "December 2025", "total": 20.0, "orders": 1},
        {"month": "February 2026", "total": 15.0, "orders": 2},
    ]


def test_non_object_rows_are_skipped():
    orders = [make_order(total=5, items=[]), None, "UC-9-x", 42, [make_order()]]

    report = build_sales_report(orders, now=NOW)

    assert report["totalSales"] == 5
    assert report["totalOrders"] == 1
    assert report["popularProducts"] == []
    assert report["dailySales"] == [{"date": "2026-10-19", "total": 5.0, "orders": 1}]
    assert daily_sales([None, make_order(total=2)]) == [{"date": "2026-10-19", "total": 2.0, "orders": 1}]


def test_unusual_labels_and_quantities():
    orders = [
        make_order(
            items=[
                {"name": ["Latte", "Oat"], "quantity": 2},
                {"name": {"size": "L"}, "quantity": 1},
                {"name": 7, "quantity": 3},
                {"name": "Mocha", "quantity": float("nan")},
                {"name": "Mocha", "quantity": "4"},
            ]
        ),
    ]

    assert popular_products(orders) == [
        {"name": "7", "quantity": 3},
        {"name": "['Latte', 'Oat']", "quantity": 2},
        {"name": "{'size': 'L'}", "quantity": 1},
    ]


def test_non_finite_totals_count_as_zero():
    orders = [make_order(total=float("nan")), make_order(total=float("inf")), make_order(total=4)]

    report = build_sales_report(orders, now=NOW)

    assert report["totalSales"] == 4
    assert report["averageOrderValue"] == pytest.approx(1.33)


def test_line_subtotal():
    assert line_subtotal({"price": 18.99, "quantity": 2}) == 37.98
    assert line_subtotal({"price": "2.5", "quantity": "2"}) == 5.0
    assert line_subtotal({"name": "Latte"}) == 0.0
    assert line_subtotal("Latte") == 0.0
