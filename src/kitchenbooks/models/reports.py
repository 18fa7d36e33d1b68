"""
Report models — P&L statements, aging, menu engineering, budgets, cash flow and tax.

These are derived views. They are rebuilt on every request and never
persisted. Money fields are cent-rounded ``Decimal`` and serialize to
fixed-point strings in JSON mode.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from kitchenbooks.models.ledger import ExpenseType, Period, RecordKind
from kitchenbooks.models.money import ZERO, money

# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class AggregateBucket(BaseModel):
    """Sum and count of rows sharing one grouping key."""

    key: str
    total_amount: Decimal = ZERO
    count: int = 0
    percent_of_total: Decimal = ZERO


class AggregationResult(BaseModel):
    """Buckets for one grouping, largest first."""

    dimension: str
    buckets: list[AggregateBucket] = Field(default_factory=list)
    grand_total: Decimal = ZERO
    count: int = 0

    def get(self, key: str) -> AggregateBucket | None:
        return next((b for b in self.buckets if b.key == key), None)

    def amount(self, key: str) -> Decimal:
        """Total for a key, 0 if the key never occurred."""
        bucket = self.get(key)
        return bucket.total_amount if bucket else ZERO

    def as_dict(self) -> dict[str, Decimal]:
        return {b.key: b.total_amount for b in self.buckets}


# ---------------------------------------------------------------------------
# P&L
# ---------------------------------------------------------------------------


class PnLLine(BaseModel):
    """A line item inside a P&L section."""

    label: str
    amount: Decimal = ZERO
    count: int = 0


class PnLSection(BaseModel):
    """A P&L section with its share of net revenue."""

    name: str
    amount: Decimal = ZERO
    margin_percent: Decimal = ZERO
    lines: list[PnLLine] = Field(default_factory=list)


class RevenueBreakdown(BaseModel):
    """Sales by type, less discounts, comps and refunds."""

    food_sales: Decimal = ZERO
    beverage_sales: Decimal = ZERO
    alcohol_sales: Decimal = ZERO
    catering_sales: Decimal = ZERO
    other_sales: Decimal = ZERO
    gross_sales: Decimal = ZERO
    discounts: Decimal = ZERO
    comps: Decimal = ZERO
    refunds: Decimal = ZERO
    net_revenue: Decimal = ZERO

    @property
    def deductions(self) -> Decimal:
        return self.discounts + self.comps + self.refunds


class PnLRatios(BaseModel):
    """Key restaurant cost ratios, as percent of net revenue."""

    food_cost_percent: Decimal = ZERO
    labor_cost_percent: Decimal = ZERO
    prime_cost_percent: Decimal = ZERO
    operating_expense_percent: Decimal = ZERO


PNL_SECTIONS = (
    "revenue",
    "cogs",
    "gross_profit",
    "labor",
    "prime_cost",
    "operating",
    "marketing",
    "net_income",
)


class PnLStatement(BaseModel):
    """Profit-and-loss statement for one period."""

    period: Period
    revenue: RevenueBreakdown = Field(default_factory=RevenueBreakdown)
    revenue_section: PnLSection = Field(default_factory=lambda: PnLSection(name="revenue"))
    cogs: PnLSection = Field(default_factory=lambda: PnLSection(name="cogs"))
    gross_profit: PnLSection = Field(default_factory=lambda: PnLSection(name="gross_profit"))
    labor: PnLSection = Field(default_factory=lambda: PnLSection(name="labor"))
    prime_cost: PnLSection = Field(default_factory=lambda: PnLSection(name="prime_cost"))
    operating: PnLSection = Field(default_factory=lambda: PnLSection(name="operating"))
    marketing: PnLSection = Field(default_factory=lambda: PnLSection(name="marketing"))
    net_income: PnLSection = Field(default_factory=lambda: PnLSection(name="net_income"))
    ratios: PnLRatios = Field(default_factory=PnLRatios)

    comparison: PnLStatement | None = None
    variance: dict[str, Decimal] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    @property
    def net_revenue(self) -> Decimal:
        return self.revenue.net_revenue

    @property
    def total_expenses(self) -> Decimal:
        return self.cogs.amount + self.labor.amount + self.operating.amount + self.marketing.amount

    def section(self, name: str) -> PnLSection:
        """Look up a section by name (``revenue`` maps to the revenue section)."""
        if name == "revenue":
            return self.revenue_section
        if name not in PNL_SECTIONS:
            raise KeyError(name)
        return getattr(self, name)

    def sections(self) -> list[PnLSection]:
        return [self.section(name) for name in PNL_SECTIONS]


# ---------------------------------------------------------------------------
# Aging
# ---------------------------------------------------------------------------


class AgingBucketName(str, Enum):
    """Time-since-due buckets, in display order."""

    CURRENT = "current"
    DAYS_1_30 = "days_1_30"
    DAYS_31_60 = "days_31_60"
    DAYS_61_90 = "days_61_90"
    OVER_90 = "over_90"


class AgingBucket(BaseModel):
    name: AgingBucketName
    total: Decimal = ZERO
    count: int = 0


class VendorAging(BaseModel):
    """Outstanding balances for one counterparty split by bucket."""

    vendor_id: str
    vendor_name: str
    buckets: dict[AgingBucketName, Decimal] = Field(
        default_factory=lambda: {name: ZERO for name in AgingBucketName}
    )
    total_due: Decimal = ZERO


class AgingReport(BaseModel):
    """Open payables (or receivables) partitioned by days overdue."""

    as_of: date
    kind: RecordKind = RecordKind.PAYABLE
    buckets: list[AgingBucket] = Field(
        default_factory=lambda: [AgingBucket(name=name) for name in AgingBucketName]
    )
    total: Decimal = ZERO
    open_items: int = 0
    by_vendor: list[VendorAging] = Field(default_factory=list)

    def bucket(self, name: AgingBucketName | str) -> AgingBucket:
        name = AgingBucketName(name)
        return next(b for b in self.buckets if b.name == name)


# ---------------------------------------------------------------------------
# Menu engineering
# ---------------------------------------------------------------------------


class MenuCategory(str, Enum):
    """Menu-engineering quadrant."""

    CHAMPIONS = "Champions"  # high profit, high popularity
    HIDDEN_GEMS = "HiddenGems"  # high profit, low popularity
    VOLUME_DRIVERS = "VolumeDrivers"  # low profit, high popularity
    NEEDS_REVIEW = "NeedsReview"  # low profit, low popularity
    NOT_APPLICABLE = "N/A"  # no items to compare against


MENU_SCHEMA_VERSION = 2

# Older payloads named these fields differently.
_LEGACY_MENU_FIELDS = {
    "id": "item_id",
    "menu_item_id": "item_id",
    "qty": "quantity_sold",
    "quantity": "quantity_sold",
    "total_revenue": "revenue",
    "food_cost_total": "food_cost",
    "total_cost": "food_cost",
}


class MenuItemSales(BaseModel):
    """Per-item aggregates for a period, as fed to the menu classifier."""

    item_id: str
    name: str = ""
    menu_category: str = "Uncategorized"
    quantity_sold: Decimal = Decimal("0")
    revenue: Decimal = ZERO
    food_cost: Decimal = ZERO
    labor_cost: Decimal = ZERO

    @property
    def net_profit(self) -> Decimal:
        return money(self.revenue - self.food_cost - self.labor_cost)

    @classmethod
    def from_legacy(cls, data: dict[str, Any]) -> MenuItemSales:
        """Normalize an older payload.

        Old payloads may carry a precomputed ``profit`` instead of costs. When
        costs are absent the profit is preserved by folding the gap between
        revenue and profit into ``food_cost``.
        """
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            normalized.setdefault(_LEGACY_MENU_FIELDS.get(key, key), value)

        profit = normalized.pop("net_profit", None)
        if profit is None:
            profit = normalized.pop("profit", None)
        else:
            normalized.pop("profit", None)
        if profit is not None and "food_cost" not in normalized:
            revenue = money(normalized.get("revenue", 0))
            labor = money(normalized.get("labor_cost", 0))
            normalized["food_cost"] = revenue - labor - money(profit)
        normalized["item_id"] = str(normalized.get("item_id", normalized.get("name", "")))
        return cls.model_validate({k: v for k, v in normalized.items() if k in cls.model_fields})


class MenuItemPerformance(BaseModel):
    """A classified menu item."""

    schema_version: int = MENU_SCHEMA_VERSION
    item_id: str
    name: str = ""
    menu_category: str = "Uncategorized"
    quantity_sold: Decimal
    revenue: Decimal
    food_cost: Decimal
    labor_cost: Decimal
    net_profit: Decimal
    food_cost_percent: Decimal
    category: MenuCategory
    recommendation: str = ""

    @model_validator(mode="after")
    def _check_schema(self) -> MenuItemPerformance:
        if self.schema_version != MENU_SCHEMA_VERSION:
            raise ValueError(f"unsupported menu item schema version {self.schema_version}")
        return self


class MenuEngineeringReport(BaseModel):
    """Classified items for a period plus set-level averages."""

    period: Period | None = None
    items: list[MenuItemPerformance] = Field(default_factory=list)
    avg_profit: Decimal = ZERO
    avg_quantity: Decimal = Decimal("0")
    total_revenue: Decimal = ZERO
    total_food_cost: Decimal = ZERO
    total_net_profit: Decimal = ZERO
    overall_food_cost_percent: Decimal = ZERO
    counts: dict[MenuCategory, int] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    def category_for(self, item_id: str) -> MenuCategory:
        """Quadrant for an item; ``N/A`` for an empty set or unknown item."""
        for item in self.items:
            if item.item_id == item_id:
                return item.category
        return MenuCategory.NOT_APPLICABLE

    def in_category(self, category: MenuCategory) -> list[MenuItemPerformance]:
        return [i for i in self.items if i.category == category]


# ---------------------------------------------------------------------------
# Budget vs actual
# ---------------------------------------------------------------------------


class BudgetLine(BaseModel):
    """One expense category's monthly budget against what was spent."""

    category_id: str
    name: str
    expense_type: ExpenseType
    budget: Decimal = ZERO
    actual: Decimal = ZERO
    variance: Decimal = ZERO  # budget - actual; negative when over
    percent_used: Decimal | None = None  # None when the budget is zero
    over_budget: bool = False


class BudgetReport(BaseModel):
    """Budget vs actual for one calendar month."""

    period: Period
    lines: list[BudgetLine] = Field(default_factory=list)
    uncategorized_actual: Decimal = ZERO
    total_budget: Decimal = ZERO
    total_actual: Decimal = ZERO
    total_variance: Decimal = ZERO

    @property
    def over_budget_count(self) -> int:
        return sum(1 for line in self.lines if line.over_budget)

    def line(self, category_id: str) -> BudgetLine | None:
        return next((line for line in self.lines if line.category_id == category_id), None)


# ---------------------------------------------------------------------------
# Payroll by department
# ---------------------------------------------------------------------------

UNASSIGNED_DEPARTMENT = "Unassigned"


class DepartmentPayroll(BaseModel):
    """Committed payroll totals for one department."""

    department: str
    employee_count: int = 0
    regular_hours: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    gross_pay: Decimal = ZERO
    net_pay: Decimal = ZERO
    employer_cost: Decimal = ZERO


class DepartmentPayrollReport(BaseModel):
    """Departments ordered by employer cost, largest first."""

    period: Period | None = None
    departments: list[DepartmentPayroll] = Field(default_factory=list)
    total_employees: int = 0
    total_gross: Decimal = ZERO
    total_net: Decimal = ZERO
    total_employer_cost: Decimal = ZERO

    def get(self, department: str) -> DepartmentPayroll | None:
        return next((d for d in self.departments if d.department == department), None)


# ---------------------------------------------------------------------------
# Cash flow
# ---------------------------------------------------------------------------


class WeeklyCashFlow(BaseModel):
    """Money in and out during one Monday-to-Sunday week."""

    week_start: date
    cash_in: Decimal = ZERO
    expenses_out: Decimal = ZERO
    payroll_out: Decimal = ZERO
    total_out: Decimal = ZERO
    net_cash_flow: Decimal = ZERO
    running_balance: Decimal = ZERO


class CashFlowReport(BaseModel):
    """Weekly cash flow for a period, oldest week first."""

    period: Period
    opening_balance: Decimal = ZERO
    weeks: list[WeeklyCashFlow] = Field(default_factory=list)
    total_in: Decimal = ZERO
    total_out: Decimal = ZERO
    net_change: Decimal = ZERO

    @property
    def closing_balance(self) -> Decimal:
        return self.opening_balance + self.net_change

    def week(self, week_start: date) -> WeeklyCashFlow | None:
        return next((w for w in self.weeks if w.week_start == week_start), None)


# ---------------------------------------------------------------------------
# Tax
# ---------------------------------------------------------------------------


class ScheduleCPartI(BaseModel):
    """Income."""

    line_1_gross_receipts: Decimal = ZERO
    line_2_returns_allowances: Decimal = ZERO
    line_3_net_receipts: Decimal = ZERO
    line_4_cost_of_goods: Decimal = ZERO
    line_5_gross_profit: Decimal = ZERO
    line_6_other_income: Decimal = ZERO
    line_7_gross_income: Decimal = ZERO


class ScheduleCPartIII(BaseModel):
    """Cost of goods sold."""

    line_35_inventory_beginning: Decimal = ZERO
    line_36_purchases: Decimal = ZERO
    line_37_cost_of_labor: Decimal = ZERO
    line_38_materials_supplies: Decimal = ZERO
    line_39_other_costs: Decimal = ZERO
    line_40_total: Decimal = ZERO
    line_41_inventory_ending: Decimal = ZERO
    line_42_cost_of_goods_sold: Decimal = ZERO


class ScheduleC(BaseModel):
    """Schedule-C-shaped income and expense summary for a period."""

    period: Period
    part_i: ScheduleCPartI = Field(default_factory=ScheduleCPartI)
    part_ii_expenses: dict[str, Decimal] = Field(default_factory=dict)
    line_28_total_expenses: Decimal = ZERO
    line_29_tentative_profit: Decimal = ZERO
    line_30_home_office: Decimal = ZERO
    line_31_net_profit: Decimal = ZERO
    part_iii: ScheduleCPartIII = Field(default_factory=ScheduleCPartIII)


class QuarterlyEstimate(BaseModel):
    quarter: int
    period: Period
    due_date: date
    gross_income: Decimal = ZERO
    deductions: Decimal = ZERO
    net_income: Decimal = ZERO
    se_tax: Decimal = ZERO
    income_tax: Decimal = ZERO
    payment: Decimal = ZERO


class AnnualEstimate(BaseModel):
    gross_income: Decimal = ZERO
    deductions: Decimal = ZERO
    net_income: Decimal = ZERO
    se_tax: Decimal = ZERO
    income_tax: Decimal = ZERO
    total_payment: Decimal = ZERO


class Vendor1099(BaseModel):
    """A vendor's total payments for a tax year."""

    vendor_id: str
    name: str
    total_paid: Decimal = ZERO
    payment_count: int = 0
    requires_1099: bool = False
    near_threshold: bool = False


class TaxEstimate(BaseModel):
    """Schedule C, quarterly projections and the 1099 list for a tax year."""

    tax_year: int
    schedule_c: ScheduleC
    quarterly: list[QuarterlyEstimate] = Field(default_factory=list)
    annual: AnnualEstimate = Field(default_factory=AnnualEstimate)
    vendors_1099: list[Vendor1099] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
