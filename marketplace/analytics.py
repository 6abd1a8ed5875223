"""
Price analytics over the price_history table.

The functions below are pure and take plain rows, so the dashboard view
and the JSON endpoint share one payload builder.
"""
import logging
from statistics import fmean, pstdev

from aws_config import PRICE_HISTORY_TABLE

from . import services

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100
LATEST_PRICES_LIMIT = 6
VOLATILITY_LIMIT = 8
TREND_POINTS = 30
HIGH_VOLATILITY = 10


def format_history(rows, materials, limit=HISTORY_LIMIT):
    """Oldest-first price points joined with their material name."""
    rows = sorted(rows, key=lambda r: r.get("date", ""))[:limit]
    return [
        {
            "material_id": r["material_id"],
            "date": r["date"],
            "price": r["price"],
            "material_name": (materials.get(r["material_id"]) or {}).get("name", "Unknown"),
        }
        for r in rows
    ]


def group_by_material(history):
    grouped = {}
    for point in history:
        grouped.setdefault(point["material_name"], []).append(
            {"date": point["date"], "price": point["price"]}
        )
    return grouped


def percent_change(previous, current):
    if not previous:
        return 0
    return round((current - previous) / previous * 100, 2)


def latest_prices(grouped, limit=LATEST_PRICES_LIMIT):
    latest = []
    for name, series in grouped.items():
        change = 0
        if len(series) > 1:
            change = percent_change(series[-2]["price"], series[-1]["price"])
        latest.append({"name": name, "price": series[-1]["price"], "change": change})
    return latest[:limit]


def count_price_changes(prices):
    return sum(1 for a, b in zip(prices, prices[1:]) if a != b)


def volatility(materials, rows, limit=VOLATILITY_LIMIT):
    """
    Rank materials by coefficient of variation of their recorded prices.

    volatility is population stdev / mean as a percentage. A material with
    fewer than two price points has zero volatility and its current price
    as the average.
    """
    prices_by_material = {}
    for r in sorted(rows, key=lambda r: r.get("date", "")):
        prices_by_material.setdefault(r["material_id"], []).append(float(r["price"]))

    ranked = []
    for material in materials:
        prices = prices_by_material.get(material["id"], [])
        if prices:
            mean = fmean(prices)
            spread = pstdev(prices) / mean * 100 if len(prices) > 1 and mean else 0.0
            avg_price = round(mean, 2)
        else:
            spread = 0.0
            avg_price = material.get("price", 0)
        ranked.append({
            "material_name": material.get("name", "Unknown"),
            "volatility": round(spread, 2),
            "avg_price": avg_price,
            "price_changes": count_price_changes(prices),
        })

    ranked.sort(key=lambda m: m["volatility"], reverse=True)
    return ranked[:limit]


def build_dashboard(history_rows, materials):
    """Everything the analytics page charts, as JSON-friendly data."""
    lookup = {m["id"]: m for m in materials}
    history = format_history(history_rows, lookup)
    grouped = group_by_material(history)
    latest = latest_prices(grouped)
    volatile = volatility(materials, history_rows)

    average_change = round(fmean([float(p["change"]) for p in latest]), 2) if latest else 0
    return {
        "price_history": history,
        "grouped": grouped,
        "latest_prices": latest,
        "volatility": volatile,
        "trend": history[-TREND_POINTS:],
        "stats": {
            "materials_tracked": len(grouped),
            "average_change": average_change,
            "high_volatility": len([m for m in volatile if m["volatility"] > HIGH_VOLATILITY]),
        },
    }


def load_dashboard():
    rows = services.ddb.scan(PRICE_HISTORY_TABLE)
    materials = list(services.material_lookup().values())
    logger.debug("Building analytics from %d price points", len(rows))
    return build_dashboard(rows, materials)
