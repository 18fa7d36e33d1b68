"""
Tax Estimator — Schedule C summary, quarterly estimates and the 1099-NEC list.

Builds a sole-proprietor view of a tax year from the ledger:
1. **Schedule C** — Part I income, Part II expenses on fixed line numbers,
   Part III cost of goods sold, and net profit after the home office deduction
2. **Quarterly estimates** — IRS-aligned quarters with flat-rate
   self-employment and income tax approximations
3. **1099-NEC vendors** — vendors paid at or above the reporting threshold

Rates come from ``kitchenbooks.config.TaxRates``. They are planning
approximations, not bracket logic.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from kitchenbooks.analyzers.aggregation import Aggregator, GroupBy, LedgerSnapshot
from kitchenbooks.analyzers.periods import quarters_of, year_period
from kitchenbooks.analyzers.pnl import PnLBuilder
from kitchenbooks.config import TaxRates
from kitchenbooks.models.ledger import ExpenseType, PayrollRowType, Period, RecordKind, Vendor
from kitchenbooks.models.money import ZERO, money, total
from kitchenbooks.models.reports import (
    AnnualEstimate,
    QuarterlyEstimate,
    ScheduleC,
    ScheduleCPartI,
    ScheduleCPartIII,
    TaxEstimate,
    Vendor1099,
)

logger = logging.getLogger("kitchenbooks.analyzers.tax_estimator")

# Part II expense lines, in form order
EXPENSE_LINES = (
    "line_8_advertising",
    "line_9_car_truck",
    "line_10_commissions",
    "line_11_contract_labor",
    "line_12_depletion",
    "line_13_depreciation",
    "line_14_employee_benefits",
    "line_15_insurance",
    "line_16a_mortgage_interest",
    "line_16b_other_interest",
    "line_17_legal_professional",
    "line_18_office_expense",
    "line_19_pension_profit_sharing",
    "line_20a_rent_vehicles",
    "line_20b_rent_other",
    "line_21_repairs_maintenance",
    "line_22_supplies",
    "line_23_taxes_licenses",
    "line_24a_travel",
    "line_24b_meals",
    "line_25_utilities",
    "line_26_wages",
    "line_27a_other",
)

# Expense category ``tax_category`` → Part II line
TAX_CATEGORY_LINES = {
    "advertising": "line_8_advertising",
    "car_and_truck": "line_9_car_truck",
    "commissions": "line_10_commissions",
    "contract_labor": "line_11_contract_labor",
    "depletion": "line_12_depletion",
    "depreciation": "line_13_depreciation",
    "employee_benefits": "line_14_employee_benefits",
    "insurance": "line_15_insurance",
    "mortgage_interest": "line_16a_mortgage_interest",
    "other_interest": "line_16b_other_interest",
    "legal_and_professional": "line_17_legal_professional",
    "office_expense": "line_18_office_expense",
    "pension": "line_19_pension_profit_sharing",
    "rent_vehicles": "line_20a_rent_vehicles",
    "rent": "line_20b_rent_other",
    "repairs": "line_21_repairs_maintenance",
    "supplies": "line_22_supplies",
    "taxes_and_licenses": "line_23_taxes_licenses",
    "travel": "line_24a_travel",
    "meals": "line_24b_meals",
    "utilities": "line_25_utilities",
    "wages": "line_26_wages",
}
OTHER_LINE = "line_27a_other"


def line_for(tax_category: str | None) -> str:
    """Part II line for a tax category; unknown or missing ones go to 27a."""
    if not tax_category:
        return OTHER_LINE
    return TAX_CATEGORY_LINES.get(tax_category.lower(), OTHER_LINE)


class TaxEstimator:
    """Rule-based estimated tax planner."""

    @classmethod
    def estimate(
        cls,
        snapshot: LedgerSnapshot,
        year: int,
        *,
        vendors: Mapping[str, Vendor] | None = None,
        rates: TaxRates | None = None,
    ) -> TaxEstimate:
        """Full tax-year view: Schedule C, quarterly estimates and 1099 list.

        Args:
            snapshot: Ledger rows covering the year, with category master data
                and menu item costs.
            year: Tax year.
            vendors: Vendor master data, for 1099 names and exemptions.
            rates: Tax rates (defaults to the module constants).

        Returns:
            TaxEstimate. Warnings from missing recipe costs or unknown vendors
            are collected rather than raised.
        """
        rates = rates or TaxRates()
        schedule_c, warnings = cls.schedule_c(snapshot, year_period(year), home_office=rates.home_office_deduction)
        quarterly = cls.quarterly_estimates(snapshot, year, rates=rates)
        vendors_1099, vendor_warnings = cls.vendors_1099(snapshot, year, vendors=vendors, rates=rates)

        for message in vendor_warnings:
            if message not in warnings:
                warnings.append(message)

        result = TaxEstimate(
            tax_year=year,
            schedule_c=schedule_c,
            quarterly=quarterly,
            annual=cls.annual_totals(quarterly),
            vendors_1099=vendors_1099,
            warnings=warnings,
        )
        logger.info(
            "Tax estimate %d: net profit %s, estimated payments %s, %d vendors need a 1099",
            year,
            schedule_c.line_31_net_profit,
            result.annual.total_payment,
            sum(1 for v in vendors_1099 if v.requires_1099),
        )
        return result

    # ------------------------------------------------------------------ #
    #  Schedule C                                                         #
    # ------------------------------------------------------------------ #

    @classmethod
    def schedule_c(
        cls,
        snapshot: LedgerSnapshot,
        period: Period,
        *,
        home_office: Decimal = ZERO,
    ) -> tuple[ScheduleC, list[str]]:
        """Schedule-C-shaped summary for ``period``.

        Net profit is gross income less total expenses less the home office
        deduction. COGS-typed expenses land on line 4 with the calculated
        food cost rather than in Part II.
        """
        revenue = PnLBuilder.revenue(snapshot, period)
        cogs, warnings = PnLBuilder.cogs(snapshot, period)

        line_3 = revenue.gross_sales - revenue.deductions
        line_5 = line_3 - cogs.amount
        part_i = ScheduleCPartI(
            line_1_gross_receipts=revenue.gross_sales,
            line_2_returns_allowances=revenue.deductions,
            line_3_net_receipts=line_3,
            line_4_cost_of_goods=cogs.amount,
            line_5_gross_profit=line_5,
            line_6_other_income=ZERO,
            line_7_gross_income=line_5,
        )

        expenses = cls._part_ii(snapshot, period)
        line_28 = total(expenses.values())
        line_29 = part_i.line_7_gross_income - line_28
        home_office = money(home_office)

        schedule = ScheduleC(
            period=period,
            part_i=part_i,
            part_ii_expenses=expenses,
            line_28_total_expenses=line_28,
            line_29_tentative_profit=line_29,
            line_30_home_office=home_office,
            line_31_net_profit=line_29 - home_office,
            part_iii=ScheduleCPartIII(
                line_36_purchases=cogs.amount,
                line_40_total=cogs.amount,
                line_42_cost_of_goods_sold=cogs.amount,
            ),
        )
        return schedule, list(warnings)

    @staticmethod
    def _part_ii(snapshot: LedgerSnapshot, period: Period) -> dict[str, Decimal]:
        sums: dict[str, Decimal] = {line: Decimal("0") for line in EXPENSE_LINES}

        for row in snapshot.of_kind(RecordKind.EXPENSE, period):
            category = snapshot.categories.get(row.category_id) if row.category_id else None
            if category is not None:
                if not category.is_tax_deductible or category.expense_type == ExpenseType.COGS:
                    continue
                sums[line_for(category.tax_category)] += row.amount
            else:
                sums[OTHER_LINE] += row.amount

        payroll = Aggregator.aggregate(
            snapshot.rows, period=period, kind=RecordKind.PAYROLL, group_by=GroupBy.SUBTYPE
        )
        sums["line_26_wages"] += payroll.amount(PayrollRowType.WAGES.value)
        sums["line_23_taxes_licenses"] += payroll.amount(PayrollRowType.EMPLOYER_TAXES.value)

        return {line: money(amount) for line, amount in sums.items()}

    # ------------------------------------------------------------------ #
    #  Quarterly estimates                                                #
    # ------------------------------------------------------------------ #

    @classmethod
    def quarterly_estimates(
        cls,
        snapshot: LedgerSnapshot,
        year: int,
        *,
        rates: TaxRates | None = None,
    ) -> list[QuarterlyEstimate]:
        """Estimated tax payment per IRS quarter.

        The home office deduction is spread evenly over the quarters, with
        any rounding remainder in Q4. A loss quarter owes nothing.
        """
        rates = rates or TaxRates()
        home_office = money(rates.home_office_deduction)
        share = money(home_office / 4)
        estimates = []

        for quarter in quarters_of(year):
            deduction = share if quarter.quarter < 4 else home_office - share * 3
            schedule, _ = cls.schedule_c(snapshot, quarter.period, home_office=deduction)
            net = schedule.line_31_net_profit
            se_tax = max(ZERO, money(net * rates.se_tax_base * rates.se_tax_rate))
            income_tax = max(ZERO, money(net * rates.income_tax_rate))
            estimates.append(
                QuarterlyEstimate(
                    quarter=quarter.quarter,
                    period=quarter.period,
                    due_date=quarter.due_date,
                    gross_income=schedule.part_i.line_7_gross_income,
                    deductions=schedule.line_28_total_expenses + deduction,
                    net_income=net,
                    se_tax=se_tax,
                    income_tax=income_tax,
                    payment=se_tax + income_tax,
                )
            )
        return estimates

    @staticmethod
    def annual_totals(quarterly: Iterable[QuarterlyEstimate]) -> AnnualEstimate:
        quarterly = list(quarterly)
        return AnnualEstimate(
            gross_income=total(q.gross_income for q in quarterly),
            deductions=total(q.deductions for q in quarterly),
            net_income=total(q.net_income for q in quarterly),
            se_tax=total(q.se_tax for q in quarterly),
            income_tax=total(q.income_tax for q in quarterly),
            total_payment=total(q.payment for q in quarterly),
        )

    # ------------------------------------------------------------------ #
    #  1099-NEC                                                           #
    # ------------------------------------------------------------------ #

    @classmethod
    def vendors_1099(
        cls,
        snapshot: LedgerSnapshot,
        year: int,
        *,
        vendors: Mapping[str, Vendor] | None = None,
        rates: TaxRates | None = None,
    ) -> tuple[list[Vendor1099], list[str]]:
        """Vendors paid at least the near-threshold amount during ``year``.

        ``requires_1099`` is set at or above the reporting threshold unless the
        vendor is marked exempt; vendors below it but at or above the
        near-threshold are listed with ``near_threshold`` so they can be
        watched. Exempt vendors are left off the list.
        """
        rates = rates or TaxRates()
        vendors = vendors or {}
        paid = Aggregator.aggregate(
            [r for r in snapshot.rows if r.vendor_id],
            period=year_period(year),
            kind=RecordKind.EXPENSE,
            group_by=GroupBy.VENDOR,
        )

        result: list[Vendor1099] = []
        warnings: list[str] = []
        for bucket in paid.buckets:
            if bucket.total_amount < rates.form_1099_near_threshold:
                continue
            vendor = vendors.get(bucket.key)
            if vendor is None:
                warnings.append(f"Vendor {bucket.key} has no master record; listed by id")
                logger.warning(warnings[-1])
            elif vendor.is_1099_exempt:
                logger.debug("Vendor %s is 1099-exempt; skipped", vendor.id)
                continue
            requires = bucket.total_amount >= rates.form_1099_threshold
            result.append(
                Vendor1099(
                    vendor_id=bucket.key,
                    name=vendor.name if vendor else bucket.key,
                    total_paid=bucket.total_amount,
                    payment_count=bucket.count,
                    requires_1099=requires,
                    near_threshold=not requires,
                )
            )
        # Aggregation buckets are already ordered by total desc, key asc.
        return result, warnings
