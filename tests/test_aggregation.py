"""Tests for the aggregation layer."""

from datetime import date
from decimal import Decimal

from conftest import CATEGORIES, JUNE, MENU_COSTS, expense, sale

from kitchenbooks.analyzers.aggregation import (
    UNCATEGORIZED,
    Aggregator,
    GroupBy,
    LedgerSnapshot,
    calculated_food_cost,
    menu_item_sales,
    sale_type_of,
    week_start,
)
from kitchenbooks.analyzers.pnl import PnLBuilder
from kitchenbooks.models.ledger import RecordKind, SaleType


class TestAggregator:
    """Grouping, ordering and shares."""

    def test_buckets_sum_to_grand_total(self, rows):
        """June expense buckets add up to the grand total."""
        result = Aggregator.aggregate(rows, group_by=GroupBy.CATEGORY, period=JUNE, kind=RecordKind.EXPENSE)
        assert result.grand_total == Decimal("660.00")
        assert sum(b.total_amount for b in result.buckets) == result.grand_total
        assert sum(b.count for b in result.buckets) == result.count == 7

    def test_largest_first(self, rows):
        """Buckets are ordered by amount, largest first."""
        result = Aggregator.aggregate(rows, group_by="category", period=JUNE, kind=RecordKind.EXPENSE)
        assert [b.key for b in result.buckets][:3] == ["rent", "food_purchases", "temps"]

    def test_ties_break_on_key(self):
        """Equal totals fall back to key order."""
        rows = [
            expense(date(2025, 6, 1), 10, "zeta"),
            expense(date(2025, 6, 2), 10, "alpha"),
            expense(date(2025, 6, 3), 10, "mid"),
        ]
        result = Aggregator.aggregate(rows, group_by=GroupBy.CATEGORY)
        assert [b.key for b in result.buckets] == ["alpha", "mid", "zeta"]

    def test_percent_of_total(self):
        """Each bucket carries its share of the grand total."""
        rows = [expense(date(2025, 6, 1), 75, "a"), expense(date(2025, 6, 2), 25, "b")]
        result = Aggregator.aggregate(rows, group_by=GroupBy.CATEGORY)
        assert result.get("a").percent_of_total == Decimal("75.00")
        assert result.get("b").percent_of_total == Decimal("25.00")

    def test_zero_total_gives_zero_percent(self):
        """A zero grand total gives zero shares instead of dividing by zero."""
        rows = [expense(date(2025, 6, 1), 0, "a")]
        result = Aggregator.aggregate(rows, group_by=GroupBy.CATEGORY)
        assert result.get("a").percent_of_total == Decimal("0")

    def test_missing_key_goes_to_uncategorized(self):
        """Rows without a category are grouped as uncategorized."""
        rows = [expense(date(2025, 6, 1), 12, None), expense(date(2025, 6, 2), 8, "rent")]
        result = Aggregator.aggregate(rows, group_by=GroupBy.CATEGORY)
        assert result.amount(UNCATEGORIZED) == Decimal("12.00")

    def test_period_filter_is_inclusive(self):
        """Both period bounds are included."""
        rows = [
            sale(date(2025, 5, 31), 1),
            sale(date(2025, 6, 1), 2),
            sale(date(2025, 6, 30), 4),
            sale(date(2025, 7, 1), 8),
        ]
        result = Aggregator.aggregate(rows, group_by=GroupBy.SUBTYPE, period=JUNE)
        assert result.grand_total == Decimal("6.00")

    def test_expense_type_grouping_uses_categories(self, rows):
        """Expense types come from the category master data."""
        result = Aggregator.aggregate(
            rows,
            group_by=GroupBy.EXPENSE_TYPE,
            period=JUNE,
            kind=RecordKind.EXPENSE,
            categories={c.id: c for c in CATEGORIES},
        )
        assert result.as_dict() == {
            "operating": Decimal("375.00"),
            "cogs": Decimal("135.00"),
            "labor": Decimal("100.00"),
            "marketing": Decimal("40.00"),
            "other": Decimal("10.00"),
        }

    def test_month_grouping(self, rows):
        """Sales grouped by calendar month."""
        result = Aggregator.aggregate(rows, group_by=GroupBy.MONTH, kind=RecordKind.SALE)
        assert result.amount("2025-05") == Decimal("1000.00")
        assert result.amount("2025-06") == Decimal("1250.00")

    def test_top(self, rows):
        """Top N returns the largest buckets."""
        result = Aggregator.aggregate(rows, group_by=GroupBy.VENDOR, kind=RecordKind.EXPENSE)
        top = Aggregator.top(result, 1)
        assert len(top) == 1
        assert top[0].key == "landlord"

    def test_empty(self):
        """No rows gives no buckets."""
        result = Aggregator.aggregate([], group_by=GroupBy.CATEGORY)
        assert result.buckets == []
        assert result.grand_total == Decimal("0")

    def test_sale_type_of_defaults_to_other(self):
        """Missing or unknown sale subtypes count as other sales."""
        assert sale_type_of(sale(date(2025, 6, 1), 1, subtype=None)) == SaleType.OTHER
        assert sale_type_of(sale(date(2025, 6, 1), 1, subtype="gift_card")) == SaleType.OTHER
        assert sale_type_of(sale(date(2025, 6, 1), 1, subtype="refund")) == SaleType.REFUND

    def test_group_by_week(self, rows):
        """Weeks are keyed by their Monday; Sunday June 15 joins the week of June 9."""
        assert week_start(date(2025, 6, 15)) == date(2025, 6, 9)
        assert week_start(date(2025, 6, 9)) == date(2025, 6, 9)
        result = Aggregator.aggregate(rows, group_by=GroupBy.WEEK, period=JUNE, kind=RecordKind.EXPENSE)
        assert result.as_dict() == {"2025-06-09": Decimal("360.00"), "2025-05-26": Decimal("300.00")}


class TestMenuItemSales:
    """Per-item classifier input."""

    def test_costs_applied(self, rows):
        """Recipe costs turn units sold into food cost."""
        items, warnings = menu_item_sales(rows, MENU_COSTS, period=JUNE)
        assert warnings == []
        burger = next(i for i in items if i.item_id == "burger")
        assert burger.quantity_sold == Decimal("40")
        assert burger.revenue == Decimal("600.00")
        assert burger.food_cost == Decimal("180.00")
        assert burger.net_profit == Decimal("420.00")
        assert burger.menu_category == "Entrees"

    def test_missing_cost_warns(self):
        """Items without a recipe cost are kept at zero cost with a warning."""
        rows = [sale(date(2025, 6, 3), 90, menu_item_id="special", quantity=Decimal("6"))]
        items, warnings = menu_item_sales(rows, MENU_COSTS)
        assert items[0].food_cost == Decimal("0")
        assert len(warnings) == 1
        assert "special" in warnings[0]

    def test_calculated_food_cost(self, rows):
        """Calculated food cost for June is recipe cost times units sold."""
        cost, warnings = calculated_food_cost(rows, MENU_COSTS, period=JUNE)
        assert cost == Decimal("210.00")
        assert warnings == []

    def test_refund_reduces_item_revenue(self):
        """Refunds tied to an item lower its revenue, not raise it."""
        rows = [
            sale(date(2025, 6, 3), 100, menu_item_id="burger", quantity=Decimal("10")),
            sale(date(2025, 6, 4), 20, subtype="refund", menu_item_id="burger", quantity=Decimal("2")),
        ]
        items, _ = menu_item_sales(rows, MENU_COSTS)
        assert items[0].revenue == Decimal("80.00")
        assert items[0].quantity_sold == Decimal("10")
        assert items[0].food_cost == Decimal("45.00")

    def test_item_revenue_matches_pnl_net_revenue(self):
        """An item's menu revenue equals the P&L net revenue of its own rows."""
        rows = [
            sale(date(2025, 6, 3), 100, menu_item_id="burger", quantity=Decimal("10")),
            sale(date(2025, 6, 4), 30, subtype="beverage", menu_item_id="burger", quantity=Decimal("3")),
            sale(date(2025, 6, 5), 20, subtype="refund", menu_item_id="burger", quantity=Decimal("2")),
            sale(date(2025, 6, 6), 5, subtype="discount", menu_item_id="burger"),
            sale(date(2025, 6, 7), 12, subtype="comp", menu_item_id="burger", quantity=Decimal("1")),
        ]
        items, _ = menu_item_sales(rows, MENU_COSTS, period=JUNE)
        statement = PnLBuilder.build(LedgerSnapshot(rows=tuple(rows), menu_costs=tuple(MENU_COSTS)), JUNE)
        assert items[0].revenue == statement.net_revenue == Decimal("93.00")
        assert items[0].quantity_sold == Decimal("13")

    def test_deduction_only_item_listed(self):
        """An item with only a refund in the period still appears, with negative revenue."""
        rows = [sale(date(2025, 6, 4), 20, subtype="refund", menu_item_id="salad", quantity=Decimal("2"))]
        items, _ = menu_item_sales(rows, MENU_COSTS)
        assert [i.item_id for i in items] == ["salad"]
        assert items[0].revenue == Decimal("-20.00")
        assert items[0].food_cost == Decimal("0")

    def test_refunded_units_do_not_add_food_cost(self):
        """Calculated food cost counts only units actually sold."""
        rows = [
            sale(date(2025, 6, 3), 100, menu_item_id="burger", quantity=Decimal("10")),
            sale(date(2025, 6, 4), 20, subtype="refund", menu_item_id="burger", quantity=Decimal("2")),
        ]
        cost, _ = calculated_food_cost(rows, MENU_COSTS)
        assert cost == Decimal("45.00")
