"""
Sales aggregation over the stored order log.

Everything is recomputed from the full order list on each call. Malformed
orders degrade per field: a missing item list only drops out of the product
ranking, a bad timestamp only drops out of the date buckets, and rows that
are not objects are skipped.
"""

import math
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

logger = structlog.get_logger()

DASHBOARD_TOP_PRODUCTS = 5
REPORT_TOP_PRODUCTS = 10
DASHBOARD_RECENT_DAYS = 7
REPORT_RECENT_DAYS = 30


def as_number(value) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def order_rows(orders: List) -> List[dict]:
    """Rows that are JSON objects; anything else in the document is ignored."""
    rows = [order for order in orders if isinstance(order, dict)]
    if len(rows) != len(orders):
        logger.warning("non_object_orders_skipped", skipped=len(orders) - len(rows))
    return rows


def parse_timestamp(value) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def resolve_timezone(name: str):
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown_report_timezone", timezone=name)
        return timezone.utc


def item_label(item: dict) -> str:
    label = item.get("name") or item.get("product")
    if not label:
        return "Unknown"
    return label if isinstance(label, str) else str(label)


def popular_products(orders: List[dict], limit: Optional[int] = REPORT_TOP_PRODUCTS) -> List[dict]:
    """Products ranked by total quantity sold, ties kept in first-seen order."""
    quantities: Dict[str, int] = {}
    for order in order_rows(orders):
        items = order.get("items")
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, dict):
                continue
            qty = item.get("quantity")
            if isinstance(qty, bool) or not isinstance(qty, (int, float)) or not math.isfinite(qty):
                continue
            label = item_label(item)
            quantities[label] = quantities.get(label, 0) + qty

    ranked = sorted(quantities.items(), key=lambda kv: kv[1], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return [{"name": name, "quantity": qty} for name, qty in ranked]


def _bucket(orders: List[dict], tz, key_fn) -> Dict[object, dict]:
    buckets: Dict[object, dict] = {}
    for order in order_rows(orders):
        created = parse_timestamp(order.get("createdAt"))
        if created is None:
            continue
        local = created.astimezone(tz)
        key = key_fn(local)
        bucket = buckets.setdefault(key, {"total": 0.0, "orders": 0})
        bucket["total"] += as_number(order.get("total"))
        bucket["orders"] += 1
    return buckets


def daily_sales(orders: List[dict], tz=timezone.utc, recent: Optional[int] = None) -> List[dict]:
    buckets = _bucket(orders, tz, lambda dt: dt.date())
    days = [
        {"date": day.isoformat(), "total": round(b["total"], 2), "orders": b["orders"]}
        for day, b in sorted(buckets.items())
    ]
    if recent is not None:
        days = days[-recent:] if recent > 0 else []
    return days


def monthly_sales(orders: List[dict], tz=timezone.utc) -> List[dict]:
    buckets = _bucket(orders, tz, lambda dt: (dt.year, dt.month))
    return [
        {
            "month": date(year, month, 1).strftime("%B %Y"),
            "total": round(b["total"], 2),
            "orders": b["orders"],
        }
        for (year, month), b in sorted(buckets.items())
    ]


def build_sales_report(
    orders: List[dict],
    now: Optional[datetime] = None,
    tz: str = "UTC",
    top_n: int = REPORT_TOP_PRODUCTS,
    recent_days: Optional[int] = None,
) -> dict:
    orders = order_rows(orders)
    zone = resolve_timezone(tz)
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    total_sales = sum(as_number(order.get("total")) for order in orders)
    total_orders = len(orders)
    average = total_sales / total_orders if total_orders else 0.0

    all_days = daily_sales(orders, zone)
    today_key = now.astimezone(zone).date().isoformat()
    today = next((d for d in all_days if d["date"] == today_key), None)
    if recent_days is not None:
        shown_days = all_days[-recent_days:] if recent_days > 0 else []
    else:
        shown_days = all_days

    return {
        "totalSales": round(total_sales, 2),
        "totalOrders": total_orders,
        "averageOrderValue": round(average, 2),
        "popularProducts": popular_products(orders, top_n),
        "dailySales": shown_days,
        "monthlySales": monthly_sales(orders, zone),
        "todaySales": today["total"] if today else 0.0,
        "todayOrders": today["orders"] if today else 0,
        "generatedAt": now.isoformat(),
    }


def line_subtotal(item) -> float:
    if not isinstance(item, dict):
        return 0.0
    return round(as_number(item.get("price")) * as_number(item.get("quantity")), 2)
