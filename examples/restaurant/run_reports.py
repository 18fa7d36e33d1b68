"""
Example: Month-end reports for a small restaurant.

Run:
    python examples/restaurant/run_reports.py

Or via CLI, against a folder of CSV exports:
    kitchenbooks pnl --data ./exports --start 2025-06-01 --end 2025-06-30 --compare previous_period
"""

import asyncio
from datetime import date
from decimal import Decimal

from kitchenbooks import AnalyticsEngine
from kitchenbooks.connectors import InMemoryLedgerStore
from kitchenbooks.models.ledger import (
    Employee,
    ExpenseCategory,
    ExpenseType,
    MenuItemCost,
    Period,
    RecordKind,
    TransactionRecord,
    Vendor,
)

JUNE = Period(start=date(2025, 6, 1), end=date(2025, 6, 30))


def _row(kind: RecordKind, day: int, amount: str, **kw) -> TransactionRecord:
    return TransactionRecord(kind=kind, date=date(2025, 6, day), amount=Decimal(amount), **kw)


def build_store() -> InMemoryLedgerStore:
    rows = [
        _row(RecordKind.SALE, 2, "4200", subtype="food", menu_item_id="burger", quantity=Decimal("300")),
        _row(RecordKind.SALE, 2, "1800", subtype="food", menu_item_id="pasta", quantity=Decimal("100")),
        _row(RecordKind.SALE, 3, "950", subtype="food", menu_item_id="salmon", quantity=Decimal("38")),
        _row(RecordKind.SALE, 3, "2100", subtype="alcohol"),
        _row(RecordKind.SALE, 9, "120", subtype="comp"),
        _row(RecordKind.EXPENSE, 5, "1450", category_id="produce", vendor_id="farm"),
        _row(RecordKind.EXPENSE, 1, "2500", category_id="rent", vendor_id="landlord"),
        _row(RecordKind.EXPENSE, 12, "310", category_id="utilities"),
        _row(RecordKind.EXPENSE, 15, "275", category_id="ads", vendor_id="printer"),
        _row(RecordKind.PAYABLE, 5, "1450", vendor_id="farm", due_date=date(2025, 5, 20)),
        _row(RecordKind.PAYABLE, 20, "640", vendor_id="printer", due_date=date(2025, 7, 5)),
    ]
    return InMemoryLedgerStore(
        rows,
        categories=[
            ExpenseCategory(id="produce", name="Produce", expense_type=ExpenseType.COGS),
            ExpenseCategory(id="rent", name="Rent", tax_category="rent"),
            ExpenseCategory(id="utilities", name="Utilities", tax_category="utilities"),
            ExpenseCategory(id="ads", name="Advertising", expense_type=ExpenseType.MARKETING,
                            tax_category="advertising"),
        ],
        employees=[
            Employee(id="e1", first_name="Rosa", last_name="Diaz", position="Line Cook", pay_rate=Decimal("18")),
            Employee(id="e2", first_name="Sam", last_name="Lee", position="Server", pay_rate=Decimal("9.50")),
        ],
        vendors=[
            Vendor(id="farm", name="Valley Farm Co-op"),
            Vendor(id="landlord", name="Main Street Properties"),
            Vendor(id="printer", name="QuickPrint"),
        ],
        menu_costs=[
            MenuItemCost(item_id="burger", name="House Burger", recipe_cost=Decimal("4.10")),
            MenuItemCost(item_id="pasta", name="Cacio e Pepe", recipe_cost=Decimal("3.20")),
            MenuItemCost(item_id="salmon", name="Seared Salmon", recipe_cost=Decimal("9.75")),
        ],
    )


async def main() -> None:
    engine = AnalyticsEngine(store=build_store(), today=date(2025, 6, 30))

    engine.run_payroll(
        Period(start=date(2025, 6, 1), end=date(2025, 6, 14)),
        [
            {"employee_id": "e1", "regular_hours": "80", "overtime_hours": "4"},
            {"employee_id": "e2", "regular_hours": "64", "tips": "910"},
        ],
    )

    statement = await engine.get_pnl(JUNE)
    print(f"P&L {statement.period}")
    print("=" * 60)
    for section in statement.sections():
        label = section.name.replace("_", " ").title()
        print(f"  {label:<14} ${section.amount:>12,.2f}  {section.margin_percent:>6}%")
    print(f"\n  Prime cost: {statement.ratios.prime_cost_percent}% of revenue")

    aging = engine.get_aging_report()
    print(f"\nPayables as of {aging.as_of}: ${aging.total:,.2f} outstanding")
    for bucket in aging.buckets:
        if bucket.count:
            print(f"  {bucket.name.value:<12} {bucket.count} item(s)  ${bucket.total:,.2f}")

    menu = engine.get_menu_engineering(JUNE)
    print("\nMenu engineering")
    for item in menu.items:
        print(f"  {item.name:<16} {item.category.value:<14} profit ${item.net_profit:,.2f}")

    estimate = engine.get_schedule_c(2025)
    print(f"\nSchedule C net profit (YTD): ${estimate.schedule_c.line_31_net_profit:,.2f}")
    print(f"Estimated tax payments:      ${estimate.annual.total_payment:,.2f}")


if __name__ == "__main__":
    asyncio.run(main())
