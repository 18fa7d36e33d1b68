"""
Menu Engineering Classifier — profitability and popularity of menu items.

Each item is compared against the arithmetic mean of the current item set:
- Champions: profit >= average, quantity >= average → keep & promote
- Volume Drivers: profit < average, quantity >= average → raise price or cut cost
- Hidden Gems: profit >= average, quantity < average → reposition & promote
- Needs Review: profit < average, quantity < average → rework or remove

Ties at exactly the average go to the high side. Classification is a pure
function of the item set: the same set always yields the same categories,
and nothing is cached between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from kitchenbooks.models.ledger import Period
from kitchenbooks.models.money import CENT, ZERO, money, safe_percent, total
from kitchenbooks.models.reports import (
    MenuCategory,
    MenuEngineeringReport,
    MenuItemPerformance,
    MenuItemSales,
)

logger = logging.getLogger("kitchenbooks.analyzers.menu_engineering")

_RECOMMENDATIONS = {
    MenuCategory.CHAMPIONS: (
        "Feature prominently on the menu. Train servers to recommend. "
        "Maintain quality and portion consistency."
    ),
    MenuCategory.VOLUME_DRIVERS: (
        "Popular but below-average profit. Options: raise price slightly, "
        "trim portion, or source cheaper ingredients without affecting quality."
    ),
    MenuCategory.HIDDEN_GEMS: (
        "Profitable but under-ordered. Increase visibility: better menu placement, "
        "server upsell, or a more appealing name and description."
    ),
    MenuCategory.NEEDS_REVIEW: (
        "Consider removing from the menu. If keeping: reprice, reduce cost, "
        "or reposition entirely."
    ),
}


def classify(profit: Decimal, quantity: Decimal, avg_profit: Decimal, avg_quantity: Decimal) -> MenuCategory:
    """Quadrant for one item given the set averages. Ties resolve high."""
    high_profit = profit >= avg_profit
    high_volume = quantity >= avg_quantity
    if high_profit and high_volume:
        return MenuCategory.CHAMPIONS
    if high_volume:
        return MenuCategory.VOLUME_DRIVERS
    if high_profit:
        return MenuCategory.HIDDEN_GEMS
    return MenuCategory.NEEDS_REVIEW


class MenuEngineeringClassifier:
    """Classify menu items for a period."""

    @classmethod
    def analyze(
        cls,
        items: Iterable[MenuItemSales | dict[str, Any]],
        *,
        period: Period | None = None,
        warnings: list[str] | None = None,
    ) -> MenuEngineeringReport:
        """
        Classify menu items into quadrants.

        Args:
            items: Per-item aggregates as MenuItemSales, or dicts (older payloads
                with ``profit``/``qty`` keys are normalized here).
            period: Period the aggregates cover, carried onto the report.
            warnings: Upstream warnings (e.g. missing recipe costs) to carry.

        Returns:
            MenuEngineeringReport. An empty item set gives an empty report
            whose lookups answer ``N/A``.
        """
        sales = [i if isinstance(i, MenuItemSales) else MenuItemSales.from_legacy(i) for i in items]
        warnings = list(warnings or [])

        if not sales:
            return MenuEngineeringReport(period=period, warnings=warnings)

        count = Decimal(len(sales))
        avg_profit = sum((s.net_profit for s in sales), Decimal("0")) / count
        avg_quantity = sum((s.quantity_sold for s in sales), Decimal("0")) / count

        performances = [
            MenuItemPerformance(
                item_id=s.item_id,
                name=s.name or s.item_id,
                menu_category=s.menu_category,
                quantity_sold=s.quantity_sold,
                revenue=s.revenue,
                food_cost=s.food_cost,
                labor_cost=s.labor_cost,
                net_profit=s.net_profit,
                food_cost_percent=safe_percent(s.food_cost, s.revenue),
                category=(category := classify(s.net_profit, s.quantity_sold, avg_profit, avg_quantity)),
                recommendation=_RECOMMENDATIONS[category],
            )
            for s in sales
        ]
        performances.sort(key=lambda p: (-p.net_profit, p.item_id))

        total_revenue = total(p.revenue for p in performances)
        total_food_cost = total(p.food_cost for p in performances)
        counts = {c: 0 for c in _RECOMMENDATIONS}
        for p in performances:
            counts[p.category] += 1

        report = MenuEngineeringReport(
            period=period,
            items=performances,
            avg_profit=money(avg_profit),
            avg_quantity=avg_quantity.quantize(CENT, rounding=ROUND_HALF_UP),
            total_revenue=total_revenue,
            total_food_cost=total_food_cost,
            total_net_profit=total(p.net_profit for p in performances),
            overall_food_cost_percent=safe_percent(total_food_cost, total_revenue),
            counts=counts,
            warnings=warnings,
        )
        logger.info(
            "Menu engineering: %d items (%d champions, %d needs review)",
            len(performances),
            counts[MenuCategory.CHAMPIONS],
            counts[MenuCategory.NEEDS_REVIEW],
        )
        return report

    @staticmethod
    def summary(report: MenuEngineeringReport) -> str:
        """One-paragraph executive summary."""
        n = len(report.items)
        if n == 0:
            return "No items to analyze."

        champions = report.counts.get(MenuCategory.CHAMPIONS, 0)
        review = report.counts.get(MenuCategory.NEEDS_REVIEW, 0)
        parts = [
            f"Menu Analysis: {n} items analyzed.",
            f"Champions: {champions} ({champions / n * 100:.0f}%).",
            f"Volume Drivers: {report.counts.get(MenuCategory.VOLUME_DRIVERS, 0)}.",
            f"Hidden Gems: {report.counts.get(MenuCategory.HIDDEN_GEMS, 0)}.",
            f"Needs Review: {review} ({review / n * 100:.0f}%).",
        ]
        if review:
            # items are ordered by profit, so the weakest come last
            weakest = report.in_category(MenuCategory.NEEDS_REVIEW)[::-1][:3]
            parts.append(f"Weakest: {', '.join(i.name for i in weakest)}.")
        if review / n > 0.30:
            parts.append("Over 30% of the menu is underperforming; consider simplifying it.")
        if report.total_revenue == ZERO:
            parts.append("No revenue recorded for the period.")
        return " ".join(parts)


def analyze_menu(items: Iterable[MenuItemSales | dict[str, Any]], **kwargs: Any) -> MenuEngineeringReport:
    """Convenience function for menu engineering analysis."""
    return MenuEngineeringClassifier.analyze(items, **kwargs)
