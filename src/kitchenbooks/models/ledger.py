"""
Ledger data models — transactional rows and the master data they reference.

Rows are owned by the ledger store; the engine only reads snapshots of them.
Amounts are always non-negative at the row level, the direction is implied
by ``kind``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kitchenbooks.exceptions import InvalidPeriod
from kitchenbooks.models.money import money


class RecordKind(str, Enum):
    """Discriminant for ledger rows."""

    SALE = "sale"
    EXPENSE = "expense"
    PAYABLE = "payable"
    RECEIVABLE = "receivable"
    PAYROLL = "payroll"
    BANK = "bank"


class SaleType(str, Enum):
    """Sale row subtypes. The last three reduce revenue."""

    FOOD = "food"
    BEVERAGE = "beverage"
    ALCOHOL = "alcohol"
    CATERING = "catering"
    OTHER = "other"
    DISCOUNT = "discount"
    COMP = "comp"
    REFUND = "refund"


REVENUE_SALE_TYPES = (SaleType.FOOD, SaleType.BEVERAGE, SaleType.ALCOHOL, SaleType.CATERING, SaleType.OTHER)
DEDUCTION_SALE_TYPES = (SaleType.DISCOUNT, SaleType.COMP, SaleType.REFUND)


class PayrollRowType(str, Enum):
    """Each committed payroll record shows up as two ledger rows."""

    WAGES = "wages"
    EMPLOYER_TAXES = "employer_taxes"


class ExpenseType(str, Enum):
    """How an expense category rolls up on the P&L."""

    COGS = "cogs"
    LABOR = "labor"
    OPERATING = "operating"
    MARKETING = "marketing"
    OTHER = "other"


class PayType(str, Enum):
    HOURLY = "hourly"
    SALARY = "salary"


class Period(BaseModel):
    """An inclusive ``[start, end]`` day range."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self) -> Period:
        if self.end < self.start:
            raise ValueError(f"period end {self.end} precedes start {self.start}")
        return self

    @classmethod
    def between(cls, start: date | str, end: date | str) -> Period:
        """Build a period, raising ``InvalidPeriod`` for bad or inverted bounds."""
        try:
            start_d = start if isinstance(start, date) else date.fromisoformat(str(start))
            end_d = end if isinstance(end, date) else date.fromisoformat(str(end))
        except ValueError as e:
            raise InvalidPeriod(f"Malformed date: {e}") from e
        if end_d < start_d:
            raise InvalidPeriod(f"Period end {end_d} precedes start {start_d}")
        return cls(start=start_d, end=end_d)

    @property
    def days(self) -> int:
        """Number of calendar days, both ends included."""
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def preceding(self) -> Period:
        """The equal-length period ending the day before this one starts."""
        end = self.start - timedelta(days=1)
        return Period(start=end - timedelta(days=self.days - 1), end=end)

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


class TransactionRecord(BaseModel):
    """A dated monetary event from the ledger."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    kind: RecordKind
    date: date
    amount: Decimal = Field(ge=0)
    category_id: str | None = None
    vendor_id: str | None = None
    menu_item_id: str | None = None
    employee_id: str | None = None

    # Kind-dependent detail
    subtype: str | None = None
    quantity: Decimal = Decimal("0")
    due_date: date | None = None
    amount_paid: Decimal = Decimal("0")
    status: str = "open"  # payables/receivables: open, partial, paid
    payment_method: str | None = None
    description: str = ""

    @field_validator("amount", "amount_paid", mode="after")
    @classmethod
    def _to_cents(cls, v: Decimal) -> Decimal:
        return money(v)

    @property
    def outstanding(self) -> Decimal:
        """Unpaid balance for payables/receivables."""
        return money(self.amount - self.amount_paid)


class ExpenseCategory(BaseModel):
    """An expense category (master data)."""

    id: str
    name: str
    expense_type: ExpenseType = ExpenseType.OPERATING
    tax_category: str | None = None  # Schedule C line key, e.g. "advertising"
    is_tax_deductible: bool = True
    budget_monthly: Decimal = Decimal("0")


class Employee(BaseModel):
    """An employee (master data)."""

    id: str
    first_name: str
    last_name: str
    position: str = ""
    department: str | None = None
    pay_type: PayType = PayType.HOURLY
    pay_rate: Decimal = Field(ge=0, description="Hourly rate, or annual salary for salaried staff")
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Vendor(BaseModel):
    """A vendor (master data)."""

    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    is_1099_exempt: bool = False  # e.g. incorporated suppliers


class MenuItemCost(BaseModel):
    """Per-unit cost of a menu item for a period, supplied from recipe costing."""

    item_id: str
    name: str = ""
    recipe_cost: Decimal = Field(default=Decimal("0"), ge=0)
    labor_cost: Decimal = Field(default=Decimal("0"), ge=0)
    menu_category: str = "Uncategorized"


class EmployeeHours(BaseModel):
    """Hours and tips entered for one employee in a payroll run."""

    employee_id: str
    regular_hours: Decimal = Field(default=Decimal("0"), ge=0)
    overtime_hours: Decimal = Field(default=Decimal("0"), ge=0)
    tips: Decimal = Field(default=Decimal("0"), ge=0)


class Withholdings(BaseModel):
    """Employee-side withholdings for one pay period."""

    model_config = ConfigDict(frozen=True)

    federal: Decimal
    state: Decimal
    social_security: Decimal
    medicare: Decimal

    @property
    def total(self) -> Decimal:
        return self.federal + self.state + self.social_security + self.medicare


class EmployerTaxes(BaseModel):
    """Employer-side payroll taxes for one pay period."""

    model_config = ConfigDict(frozen=True)

    social_security: Decimal
    medicare: Decimal
    futa: Decimal
    suta: Decimal

    @property
    def total(self) -> Decimal:
        return self.social_security + self.medicare + self.futa + self.suta


class PayrollRecord(BaseModel):
    """One employee's pay for one pay period. Immutable once created.

    Corrections are new offsetting records, never edits.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    employee_id: str
    pay_period: Period
    pay_type: PayType
    regular_hours: Decimal
    overtime_hours: Decimal
    tips: Decimal
    regular_pay: Decimal
    overtime_pay: Decimal
    gross_pay: Decimal
    withholdings: Withholdings
    net_pay: Decimal
    employer_taxes: EmployerTaxes
    employer_cost: Decimal
    payment_date: date | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def key(self) -> tuple[str, date, date]:
        """Uniqueness key: one record per employee per pay period."""
        return (self.employee_id, self.pay_period.start, self.pay_period.end)

    def to_ledger_rows(self) -> list[TransactionRecord]:
        """Wages and employer-tax rows consumed by the P&L and Schedule C."""
        common: dict[str, Any] = {
            "kind": RecordKind.PAYROLL,
            "date": self.pay_period.end,
            "employee_id": self.employee_id,
        }
        return [
            TransactionRecord(
                id=f"{self.id}:wages", subtype=PayrollRowType.WAGES.value, amount=self.gross_pay, **common
            ),
            TransactionRecord(
                id=f"{self.id}:employer_taxes",
                subtype=PayrollRowType.EMPLOYER_TAXES.value,
                amount=self.employer_taxes.total,
                **common,
            ),
        ]

    def to_flat(self) -> dict[str, Any]:
        """One column per field, as stored in the payroll table and payroll.csv."""
        w, t = self.withholdings, self.employer_taxes
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "pay_period_start": self.pay_period.start,
            "pay_period_end": self.pay_period.end,
            "pay_type": self.pay_type.value,
            "regular_hours": self.regular_hours,
            "overtime_hours": self.overtime_hours,
            "tips": self.tips,
            "regular_pay": self.regular_pay,
            "overtime_pay": self.overtime_pay,
            "gross_pay": self.gross_pay,
            "federal_tax_withheld": w.federal,
            "state_tax_withheld": w.state,
            "social_security_withheld": w.social_security,
            "medicare_withheld": w.medicare,
            "net_pay": self.net_pay,
            "employer_social_security": t.social_security,
            "employer_medicare": t.medicare,
            "employer_futa": t.futa,
            "employer_suta": t.suta,
            "employer_cost": self.employer_cost,
            "payment_date": self.payment_date,
            "created_at": self.created_at,
        }

    @classmethod
    def from_flat(cls, row: Mapping[str, Any]) -> PayrollRecord:
        """Inverse of :meth:`to_flat`. Values may be strings."""
        return cls(
            id=row["id"],
            employee_id=row["employee_id"],
            pay_period=Period(start=row["pay_period_start"], end=row["pay_period_end"]),
            pay_type=row["pay_type"],
            regular_hours=row["regular_hours"],
            overtime_hours=row["overtime_hours"],
            tips=row["tips"],
            regular_pay=row["regular_pay"],
            overtime_pay=row["overtime_pay"],
            gross_pay=row["gross_pay"],
            withholdings=Withholdings(
                federal=row["federal_tax_withheld"],
                state=row["state_tax_withheld"],
                social_security=row["social_security_withheld"],
                medicare=row["medicare_withheld"],
            ),
            net_pay=row["net_pay"],
            employer_taxes=EmployerTaxes(
                social_security=row["employer_social_security"],
                medicare=row["employer_medicare"],
                futa=row["employer_futa"],
                suta=row["employer_suta"],
            ),
            employer_cost=row["employer_cost"],
            payment_date=row.get("payment_date"),
            created_at=row["created_at"],
        )


class RunSummary(BaseModel):
    """Result of a committed payroll run."""

    pay_period: Period
    employees_processed: int = 0
    total_gross: Decimal = Decimal("0.00")
    total_net: Decimal = Decimal("0.00")
    total_employer_cost: Decimal = Decimal("0.00")
    records: list[PayrollRecord] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
