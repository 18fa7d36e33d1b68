"""
Aggregation Layer — group ledger rows into sums, counts and shares.

Every report is built on top of these buckets. Results are ordered by total
descending with ties broken by key ascending, so "top N" lists are stable.
The buckets of one grouping always add up to the sum of the filtered rows.

This module is also the one place where menu-item sales are turned into
classifier input, so cost lookups and legacy field names are handled once.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

from kitchenbooks.models.ledger import (
    DEDUCTION_SALE_TYPES,
    REVENUE_SALE_TYPES,
    ExpenseCategory,
    MenuItemCost,
    Period,
    RecordKind,
    SaleType,
    TransactionRecord,
)
from kitchenbooks.models.money import money, safe_percent, total
from kitchenbooks.models.reports import AggregateBucket, AggregationResult, MenuItemSales

logger = logging.getLogger("kitchenbooks.analyzers.aggregation")

UNCATEGORIZED = "uncategorized"


class GroupBy(str, Enum):
    """Dimensions rows can be grouped on."""

    CATEGORY = "category"
    EXPENSE_TYPE = "expense_type"
    TAX_CATEGORY = "tax_category"
    SUBTYPE = "subtype"
    VENDOR = "vendor"
    MENU_ITEM = "menu_item"
    EMPLOYEE = "employee"
    DATE = "date"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time rows and master data a report is built from."""

    rows: tuple[TransactionRecord, ...] = ()
    categories: Mapping[str, ExpenseCategory] = field(default_factory=dict)
    menu_costs: tuple[MenuItemCost, ...] = ()

    def of_kind(self, kind: RecordKind, period: Period | None = None) -> list[TransactionRecord]:
        return filter_rows(self.rows, period=period, kind=kind)


def filter_rows(
    rows: Iterable[TransactionRecord],
    *,
    period: Period | None = None,
    kind: RecordKind | None = None,
) -> list[TransactionRecord]:
    """Rows of ``kind`` dated inside ``period`` (both optional)."""
    return [
        r
        for r in rows
        if (kind is None or r.kind == kind) and (period is None or period.contains(r.date))
    ]


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def sale_type_of(row: TransactionRecord) -> SaleType:
    """Sale subtype, with unknown or missing subtypes counted as other sales."""
    try:
        return SaleType(row.subtype) if row.subtype else SaleType.OTHER
    except ValueError:
        return SaleType.OTHER


class Aggregator:
    """Group ledger rows along one dimension.

    Usage::

        result = Aggregator.aggregate(rows, period=period, kind=RecordKind.EXPENSE,
                                      group_by=GroupBy.VENDOR)
        for bucket in Aggregator.top(result, 5):
            print(bucket.key, bucket.total_amount, bucket.percent_of_total)
    """

    @classmethod
    def aggregate(
        cls,
        rows: Iterable[TransactionRecord],
        *,
        group_by: GroupBy | str,
        period: Period | None = None,
        kind: RecordKind | None = None,
        categories: Mapping[str, ExpenseCategory] | None = None,
    ) -> AggregationResult:
        """Filter rows, group them and compute per-bucket shares.

        Args:
            rows: Ledger snapshot.
            group_by: Grouping dimension.
            period: Keep only rows dated inside this inclusive range.
            kind: Keep only rows of this kind.
            categories: Category master data, needed for ``expense_type`` and
                ``tax_category`` groupings.

        Returns:
            AggregationResult whose buckets sum to ``grand_total``.
        """
        dimension = GroupBy(group_by)
        key_fn = cls._key_function(dimension, categories or {})
        selected = filter_rows(rows, period=period, kind=kind)

        sums: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        counts: dict[str, int] = defaultdict(int)
        for row in selected:
            key = key_fn(row) or UNCATEGORIZED
            sums[key] += row.amount
            counts[key] += 1

        grand_total = money(sum(sums.values(), Decimal("0")))
        buckets = [
            AggregateBucket(
                key=key,
                total_amount=money(amount),
                count=counts[key],
                percent_of_total=safe_percent(amount, grand_total),
            )
            for key, amount in sums.items()
        ]
        buckets.sort(key=lambda b: (-b.total_amount, b.key))

        logger.debug(
            "Aggregated %d rows into %d %s buckets (total %s)",
            len(selected),
            len(buckets),
            dimension.value,
            grand_total,
        )
        return AggregationResult(
            dimension=dimension.value,
            buckets=buckets,
            grand_total=grand_total,
            count=len(selected),
        )

    @staticmethod
    def top(result: AggregationResult, n: int) -> list[AggregateBucket]:
        return result.buckets[:n]

    @staticmethod
    def _key_function(
        dimension: GroupBy, categories: Mapping[str, ExpenseCategory]
    ) -> Callable[[TransactionRecord], str | None]:
        def expense_type(row: TransactionRecord) -> str | None:
            category = categories.get(row.category_id) if row.category_id else None
            return category.expense_type.value if category else None

        def tax_category(row: TransactionRecord) -> str | None:
            category = categories.get(row.category_id) if row.category_id else None
            return category.tax_category if category else None

        key_functions: dict[GroupBy, Callable[[TransactionRecord], str | None]] = {
            GroupBy.CATEGORY: lambda r: r.category_id,
            GroupBy.EXPENSE_TYPE: expense_type,
            GroupBy.TAX_CATEGORY: tax_category,
            GroupBy.SUBTYPE: lambda r: r.subtype,
            GroupBy.VENDOR: lambda r: r.vendor_id,
            GroupBy.MENU_ITEM: lambda r: r.menu_item_id,
            GroupBy.EMPLOYEE: lambda r: r.employee_id,
            GroupBy.DATE: lambda r: r.date.isoformat(),
            GroupBy.WEEK: lambda r: week_start(r.date).isoformat(),
            GroupBy.MONTH: lambda r: r.date.strftime("%Y-%m"),
        }
        return key_functions[dimension]


def _missing_cost_warning(item_id: str) -> str:
    return f"Menu item {item_id} has no recorded recipe cost; treated as zero cost"


def calculated_food_cost(
    rows: Iterable[TransactionRecord],
    costs: Iterable[MenuItemCost],
    *,
    period: Period | None = None,
) -> tuple[Decimal, list[str]]:
    """Recipe cost times units sold, over sale rows that reference a menu item.

    Rounded per item, so it matches the food cost the menu report shows.
    Returns the cost and a list of warnings for items with no recorded cost.
    """
    items, warnings = menu_item_sales(rows, costs, period=period)
    return total(item.food_cost for item in items), warnings


def menu_item_sales(
    rows: Iterable[TransactionRecord],
    costs: Iterable[MenuItemCost],
    *,
    period: Period | None = None,
) -> tuple[list[MenuItemSales], list[str]]:
    """Build per-item classifier input from sale rows and unit costs.

    Revenue sale rows add units and revenue. Discount, comp and refund rows
    that reference an item reduce its revenue only, matching net revenue on
    the P&L. Items sold without a recorded cost get zero food and labor cost
    and a warning, so one bad reference does not blank the report.
    """
    cost_map = {c.item_id: c for c in costs}
    quantity: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    revenue: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for row in filter_rows(rows, period=period, kind=RecordKind.SALE):
        if not row.menu_item_id:
            continue
        sale_type = sale_type_of(row)
        if sale_type in REVENUE_SALE_TYPES:
            quantity[row.menu_item_id] += row.quantity
            revenue[row.menu_item_id] += row.amount
        elif sale_type in DEDUCTION_SALE_TYPES:
            revenue[row.menu_item_id] -= row.amount

    items: list[MenuItemSales] = []
    warnings: list[str] = []
    for item_id in sorted(quantity.keys() | revenue.keys()):
        cost = cost_map.get(item_id)
        if cost is None:
            warnings.append(_missing_cost_warning(item_id))
            logger.warning(warnings[-1])
            cost = MenuItemCost(item_id=item_id, name=item_id)
        qty = quantity[item_id]
        items.append(
            MenuItemSales(
                item_id=item_id,
                name=cost.name or item_id,
                menu_category=cost.menu_category,
                quantity_sold=qty,
                revenue=money(revenue[item_id]),
                food_cost=money(qty * cost.recipe_cost),
                labor_cost=money(qty * cost.labor_cost),
            )
        )
    return items, warnings
