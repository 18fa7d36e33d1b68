"""Shared sample ledger for a small restaurant, June 2025 with a May comparison.

Worked totals for June 2025:
    gross sales 1200, discounts 50 → net revenue 1150
    calculated food cost 210 + food purchases 135 → COGS 345 → gross profit 805 (70%)
    labor 100 (temps) + payroll 220 → 320;  operating 385;  marketing 40 → net income 60
"""

from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from kitchenbooks.analyzers.aggregation import LedgerSnapshot
from kitchenbooks.connectors.memory_store import InMemoryLedgerStore
from kitchenbooks.models.ledger import (
    Employee,
    ExpenseCategory,
    ExpenseType,
    MenuItemCost,
    Period,
    PayType,
    RecordKind,
    TransactionRecord,
    Vendor,
)

JUNE = Period(start=date(2025, 6, 1), end=date(2025, 6, 30))
MAY = Period(start=date(2025, 5, 2), end=date(2025, 5, 31))
AS_OF = date(2025, 6, 30)


def sale(day: date, amount, subtype="food", **kw) -> TransactionRecord:
    return TransactionRecord(kind=RecordKind.SALE, date=day, amount=Decimal(str(amount)), subtype=subtype, **kw)


def expense(day: date, amount, category_id=None, **kw) -> TransactionRecord:
    return TransactionRecord(
        kind=RecordKind.EXPENSE, date=day, amount=Decimal(str(amount)), category_id=category_id, **kw
    )


def payable(amount, due: date, paid=0, **kw) -> TransactionRecord:
    return TransactionRecord(
        kind=RecordKind.PAYABLE,
        date=due,
        due_date=due,
        amount=Decimal(str(amount)),
        amount_paid=Decimal(str(paid)),
        **kw,
    )


CATEGORIES = [
    ExpenseCategory(id="food_purchases", name="Food Purchases", expense_type=ExpenseType.COGS, tax_category="supplies"),
    ExpenseCategory(id="temps", name="Temp Staffing", expense_type=ExpenseType.LABOR, tax_category="contract_labor"),
    ExpenseCategory(id="rent", name="Rent", expense_type=ExpenseType.OPERATING, tax_category="rent"),
    ExpenseCategory(id="utilities", name="Utilities", expense_type=ExpenseType.OPERATING, tax_category="utilities"),
    ExpenseCategory(id="ads", name="Advertising", expense_type=ExpenseType.MARKETING, tax_category="advertising"),
    ExpenseCategory(id="misc", name="Miscellaneous", expense_type=ExpenseType.OTHER),
    ExpenseCategory(
        id="owner_meals",
        name="Owner Meals",
        expense_type=ExpenseType.OPERATING,
        tax_category="meals",
        is_tax_deductible=False,
    ),
]

MENU_COSTS = [
    MenuItemCost(item_id="burger", name="House Burger", recipe_cost=Decimal("4.50"), menu_category="Entrees"),
    MenuItemCost(item_id="salad", name="Garden Salad", recipe_cost=Decimal("3.00"), menu_category="Salads"),
]

EMPLOYEES = [
    Employee(id="e1", first_name="Ana", last_name="Cook", position="Line Cook", pay_rate=Decimal("15.00")),
    Employee(
        id="e2",
        first_name="Ben",
        last_name="Manager",
        position="GM",
        pay_type=PayType.SALARY,
        pay_rate=Decimal("52000"),
    ),
    Employee(id="e3", first_name="Cal", last_name="Former", pay_rate=Decimal("14.00"), is_active=False),
]

VENDORS = [
    Vendor(id="sysco", name="Sysco", is_1099_exempt=True),
    Vendor(id="landlord", name="Main Street Properties"),
    Vendor(id="temps", name="QuickStaff"),
]


def ledger_rows() -> list[TransactionRecord]:
    return [
        # June sales
        sale(date(2025, 6, 3), 600, menu_item_id="burger", quantity=Decimal("40")),
        sale(date(2025, 6, 4), 400, menu_item_id="salad", quantity=Decimal("10")),
        sale(date(2025, 6, 5), 200, subtype="beverage"),
        sale(date(2025, 6, 6), 50, subtype="discount"),
        # June expenses
        expense(date(2025, 6, 10), 135, "food_purchases", vendor_id="sysco"),
        expense(date(2025, 6, 11), 100, "temps", vendor_id="temps"),
        expense(date(2025, 6, 1), 300, "rent", vendor_id="landlord"),
        expense(date(2025, 6, 12), 50, "utilities"),
        expense(date(2025, 6, 13), 40, "ads"),
        expense(date(2025, 6, 14), 10, "misc"),
        expense(date(2025, 6, 15), 25, "owner_meals"),
        # June payroll, as committed runs appear in the ledger
        TransactionRecord(id="pr-1:wages", kind=RecordKind.PAYROLL, date=date(2025, 6, 14),
                          amount=Decimal("200"), subtype="wages", employee_id="e1"),
        TransactionRecord(id="pr-1:employer_taxes", kind=RecordKind.PAYROLL, date=date(2025, 6, 14),
                          amount=Decimal("20"), subtype="employer_taxes", employee_id="e1"),
        # May
        sale(date(2025, 5, 15), 1000),
        expense(date(2025, 5, 20), 300, "rent", vendor_id="landlord"),
        # Payables
        payable(500, date(2025, 5, 16), paid=200, id="bill-1", vendor_id="sysco", status="partial"),
        payable(120, date(2025, 7, 10), id="bill-2", vendor_id="landlord"),
        payable(80, date(2025, 1, 1), paid=80, id="bill-3", vendor_id="temps", status="paid"),
        payable(1000, date(2025, 3, 1), id="bill-4", vendor_id="temps"),
    ]


@pytest.fixture
def rows() -> list[TransactionRecord]:
    return ledger_rows()


@pytest.fixture
def snapshot(rows) -> LedgerSnapshot:
    return LedgerSnapshot(
        rows=tuple(rows),
        categories={c.id: c for c in CATEGORIES},
        menu_costs=tuple(MENU_COSTS),
    )


@pytest.fixture
def export_dir(tmp_path):
    """The sample ledger written out as a directory of CSV exports."""
    tables = {
        "rows.csv": ledger_rows(),
        "categories.csv": CATEGORIES,
        "employees.csv": EMPLOYEES,
        "vendors.csv": VENDORS,
        "menu_costs.csv": MENU_COSTS,
    }
    for filename, records in tables.items():
        frame = pd.DataFrame([r.model_dump(mode="json") for r in records])
        frame.to_csv(tmp_path / filename, index=False)
    return tmp_path


@pytest.fixture
def store(rows) -> InMemoryLedgerStore:
    return InMemoryLedgerStore(
        rows,
        categories=CATEGORIES,
        employees=EMPLOYEES,
        vendors=VENDORS,
        menu_costs=MENU_COSTS,
    )
