"""
KitchenBooks CLI — command-line interface.

Usage:
    kitchenbooks pnl --data ./exports --period month --compare previous_period
    kitchenbooks aging --config kitchenbooks.yaml --as-of 2025-06-30
    kitchenbooks payroll --data ./exports --start 2025-06-01 --end 2025-06-14 --hours hours.csv
    kitchenbooks budget --data ./exports --year 2025 --month 6
    kitchenbooks cash-flow --data ./exports --start 2025-06-01 --end 2025-06-30
    kitchenbooks departments --data ./exports
    kitchenbooks schedule-c 2025 --json
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import typer
import yaml
from pydantic import BaseModel
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from kitchenbooks import __version__

app = typer.Typer(
    name="kitchenbooks",
    help="KitchenBooks — restaurant financial analytics",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)

ConfigOption = typer.Option("kitchenbooks.yaml", "--config", "-c", help="Path to config file")
DataOption = typer.Option(None, "--data", "-d", help="Directory of CSV exports (overrides the configured store)")
JsonOption = typer.Option(False, "--json", help="Print the report as JSON")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]KitchenBooks[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show engine logs"),
) -> None:
    """KitchenBooks — P&L, aging, menu engineering, budgets, cash flow, payroll and tax."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        )


# ---------------------------------------------------------------------- #
#  Helpers                                                                #
# ---------------------------------------------------------------------- #


def _engine(config: str, data: str | None):  # noqa: ANN202
    from kitchenbooks.engine import AnalyticsEngine

    config_path = config if Path(config).exists() else None
    overrides: dict[str, Any] = {}
    if data:
        overrides["store"] = {"type": "csv", "options": {"data_dir": data}}
    return AnalyticsEngine.from_config(config_path, **overrides)


@contextmanager
def _errors() -> Iterator[None]:
    """Turn engine and input errors (AnalyticsError is a ValueError) into exit code 1."""
    try:
        yield
    except (ValueError, FileNotFoundError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _emit_json(model: BaseModel | list[BaseModel]) -> None:
    if isinstance(model, list):
        typer.echo("[" + ",".join(m.model_dump_json() for m in model) + "]")
    else:
        typer.echo(model.model_dump_json(indent=2))


def _fmt(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def _pct(value: Decimal) -> str:
    return f"{value:.1f}%"


def _print_warnings(warnings: list[str]) -> None:
    for message in warnings:
        console.print(f"[yellow]⚠[/yellow] {message}")


# ---------------------------------------------------------------------- #
#  Commands                                                               #
# ---------------------------------------------------------------------- #


@app.command()
def pnl(
    period: str = typer.Option("month", "--period", "-p", help="today, week, month, quarter, year, ytd"),
    start: Optional[str] = typer.Option(None, "--start", help="Custom period start (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Custom period end (YYYY-MM-DD)"),
    compare: Optional[str] = typer.Option(None, "--compare", help="previous_period or previous_year"),
    config: str = ConfigOption,
    data: Optional[str] = DataOption,
    as_json: bool = JsonOption,
) -> None:
    """Profit and loss statement."""
    with _errors():
        engine = _engine(config, data)
        name = "custom" if start or end else period
        resolved = engine.resolve_period(name, start=start, end=end, compare=compare)
        statement = engine.get_pnl_sync(resolved.period, resolved.comparison)

    if as_json:
        _emit_json(statement)
        return

    prior = statement.comparison
    table = Table(title=f"Profit & Loss {statement.period}", show_lines=False)
    table.add_column("Section", style="bold")
    table.add_column("Amount", justify="right")
    table.add_column("% of revenue", justify="right")
    if prior is not None:
        table.add_column(f"Prior {prior.period}", justify="right")
        table.add_column("Change", justify="right")

    for section in statement.sections():
        row = [section.name.replace("_", " ").title(), _fmt(section.amount), _pct(section.margin_percent)]
        if prior is not None:
            row += [_fmt(prior.section(section.name).amount), _pct(statement.variance[section.name])]
        table.add_row(*row)

    console.print(table)
    r = statement.ratios
    console.print(f"Total expenses {_fmt(statement.total_expenses)}")
    console.print(
        f"Food cost {_pct(r.food_cost_percent)} · Labor {_pct(r.labor_cost_percent)} · "
        f"Prime cost {_pct(r.prime_cost_percent)}"
    )
    _print_warnings(statement.warnings)


@app.command()
def aging(
    kind: str = typer.Option("payable", "--kind", "-k", help="payable or receivable"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Age as of this date (default today)"),
    config: str = ConfigOption,
    data: Optional[str] = DataOption,
    as_json: bool = JsonOption,
) -> None:
    """Accounts payable (or receivable) aging."""
    with _errors():
        engine = _engine(config, data)
        today = date.fromisoformat(as_of) if as_of else None
        report = engine.get_aging_report(kind, today=today)

    if as_json:
        _emit_json(report)
        return

    table = Table(title=f"{report.kind.value.title()} aging as of {report.as_of}")
    table.add_column("Bucket", style="bold")
    table.add_column("Items", justify="right")
    table.add_column("Outstanding", justify="right")
    for bucket in report.buckets:
        table.add_row(bucket.name.value, str(bucket.count), _fmt(bucket.total))
    table.add_row("[bold]Total[/bold]", str(report.open_items), f"[bold]{_fmt(report.total)}[/bold]")
    console.print(table)

    if report.by_vendor:
        console.print("[bold]Largest balances:[/bold]")
        for i, vendor in enumerate(report.by_vendor[:5], 1):
            console.print(f"  {i}. {vendor.vendor_name} — {_fmt(vendor.total_due)}")


@app.command()
def menu(
    period: str = typer.Option("month", "--period", "-p", help="today, week, month, quarter, year, ytd"),
    start: Optional[str] = typer.Option(None, "--start", help="Custom period start (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Custom period end (YYYY-MM-DD)"),
    config: str = ConfigOption,
    data: Optional[str] = DataOption,
    as_json: bool = JsonOption,
) -> None:
    """Menu engineering quadrants."""
    from kitchenbooks.analyzers.menu_engineering import MenuEngineeringClassifier

    with _errors():
        engine = _engine(config, data)
        name = "custom" if start or end else period
        report = engine.get_menu_engineering(engine.resolve_period(name, start=start, end=end).period)

    if as_json:
        _emit_json(report)
        return

    table = Table(title=f"Menu engineering {report.period}")
    table.add_column("Item", style="bold")
    table.add_column("Sold", justify="right")
    table.add_column("Revenue", justify="right")
    table.add_column("Profit", justify="right")
    table.add_column("Food cost %", justify="right")
    table.add_column("Category")
    for item in report.items:
        table.add_row(
            item.name,
            f"{item.quantity_sold:,}",
            _fmt(item.revenue),
            _fmt(item.net_profit),
            _pct(item.food_cost_percent),
            item.category.value,
        )
    console.print(table)
    console.print(MenuEngineeringClassifier.summary(report))
    _print_warnings(report.warnings)


@app.command()
def budget(
    year: Optional[int] = typer.Option(None, "--year", help="Calendar year (default: this year)"),
    month: Optional[int] = typer.Option(None, "--month", help="Month 1-12 (default: this month)"),
    config: str = ConfigOption,
    data: Optional[str] = DataOption,
    as_json: bool = JsonOption,
) -> None:
    """Category budgets vs actual spend for a month."""
    with _errors():
        report = _engine(config, data).get_budget_vs_actual(year, month)

    if as_json:
        _emit_json(report)
        return

    table = Table(title=f"Budget vs actual {report.period}")
    table.add_column("Category", style="bold")
    table.add_column("Type")
    table.add_column("Budget", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Variance", justify="right")
    table.add_column("Used", justify="right")
    for line in report.lines:
        used = _pct(line.percent_used) if line.percent_used is not None else "—"
        variance = f"[red]{_fmt(line.variance)}[/red]" if line.over_budget else _fmt(line.variance)
        table.add_row(line.name, line.expense_type.value, _fmt(line.budget), _fmt(line.actual), variance, used)
    if report.uncategorized_actual:
        table.add_row("Uncategorized", "", "", _fmt(report.uncategorized_actual), "", "")
    table.add_row(
        "[bold]Total[/bold]", "", _fmt(report.total_budget), _fmt(report.total_actual), _fmt(report.total_variance), ""
    )
    console.print(table)
    if report.over_budget_count:
        console.print(f"[yellow]{report.over_budget_count} categories over budget[/yellow]")


@app.command("cash-flow")
def cash_flow(
    period: str = typer.Option("month", "--period", "-p", help="today, week, month, quarter, year, ytd"),
    start: Optional[str] = typer.Option(None, "--start", help="Custom period start (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Custom period end (YYYY-MM-DD)"),
    opening: float = typer.Option(0.0, "--opening-balance", help="Balance at the start of the period"),
    config: str = ConfigOption,
    data: Optional[str] = DataOption,
    as_json: bool = JsonOption,
) -> None:
    """Weekly cash in, cash out and running balance."""
    from kitchenbooks.models.money import to_decimal

    with _errors():
        engine = _engine(config, data)
        name = "custom" if start or end else period
        resolved = engine.resolve_period(name, start=start, end=end)
        report = engine.get_cash_flow(resolved.period, opening_balance=to_decimal(opening))

    if as_json:
        _emit_json(report)
        return

    table = Table(title=f"Cash flow {report.period}")
    table.add_column("Week of", style="bold")
    table.add_column("In", justify="right")
    table.add_column("Expenses", justify="right")
    table.add_column("Payroll", justify="right")
    table.add_column("Net", justify="right")
    table.add_column("Balance", justify="right")
    for week in report.weeks:
        table.add_row(
            week.week_start.isoformat(),
            _fmt(week.cash_in),
            _fmt(week.expenses_out),
            _fmt(week.payroll_out),
            _fmt(week.net_cash_flow),
            _fmt(week.running_balance),
        )
    console.print(table)
    console.print(
        f"In {_fmt(report.total_in)} · Out {_fmt(report.total_out)} · "
        f"Net change {_fmt(report.net_change)} · Closing {_fmt(report.closing_balance)}"
    )


def _load_hours(path: Path) -> list[dict[str, Any]]:
    """Hours entries from a CSV, YAML or JSON file."""
    if not path.exists():
        raise FileNotFoundError(f"Hours file not found: {path}")
    if path.suffix.lower() == ".csv":
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        df.columns = df.columns.str.strip().str.lower()
        return [{k: v for k, v in row.items() if v != ""} for row in df.to_dict("records")]
    with open(path) as f:
        return yaml.safe_load(f) or []


@app.command()
def payroll(
    start: str = typer.Option(..., "--start", help="Pay period start (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", help="Pay period end (YYYY-MM-DD)"),
    hours: Path = typer.Option(..., "--hours", help="CSV/YAML/JSON with employee_id, regular_hours, overtime_hours, tips"),
    payment_date: Optional[str] = typer.Option(None, "--payment-date", help="Pay date (YYYY-MM-DD)"),
    config: str = ConfigOption,
    data: Optional[str] = DataOption,
    as_json: bool = JsonOption,
) -> None:
    """Calculate and commit a payroll run."""
    from kitchenbooks.exceptions import AnalyticsError
    from kitchenbooks.models.ledger import Period

    with _errors():
        engine = _engine(config, data)
        if not engine.store.persistent:
            raise AnalyticsError(
                f"The {engine.store.name} store does not keep payroll runs after this command exits; "
                "use --data or a SQL database store"
            )
        paid_on = date.fromisoformat(payment_date) if payment_date else None
        summary = engine.run_payroll(Period.between(start, end), _load_hours(hours), payment_date=paid_on)

    if as_json:
        _emit_json(summary)
        return

    table = Table(title=f"Payroll {summary.pay_period}")
    table.add_column("Employee", style="bold")
    table.add_column("Gross", justify="right")
    table.add_column("Withheld", justify="right")
    table.add_column("Net", justify="right")
    table.add_column("Employer cost", justify="right")
    for record in summary.records:
        table.add_row(
            record.employee_id,
            _fmt(record.gross_pay),
            _fmt(record.withholdings.total),
            _fmt(record.net_pay),
            _fmt(record.employer_cost),
        )
    console.print(table)
    console.print(Panel.fit(
        f"{summary.employees_processed} employees · gross {_fmt(summary.total_gross)} · "
        f"net {_fmt(summary.total_net)} · employer cost {_fmt(summary.total_employer_cost)}",
    ))
    _print_warnings(summary.warnings)


@app.command()
def departments(
    start: Optional[str] = typer.Option(None, "--start", help="First pay period start (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Last pay period end (YYYY-MM-DD)"),
    config: str = ConfigOption,
    data: Optional[str] = DataOption,
    as_json: bool = JsonOption,
) -> None:
    """Committed payroll by department (all time unless --start and --end are given)."""
    from kitchenbooks.models.ledger import Period

    with _errors():
        engine = _engine(config, data)
        period = Period.between(start, end) if start and end else None
        report = engine.get_payroll_by_department(period)

    if as_json:
        _emit_json(report)
        return

    table = Table(title=f"Payroll by department {report.period or '(all time)'}")
    table.add_column("Department", style="bold")
    table.add_column("Staff", justify="right")
    table.add_column("Hours", justify="right")
    table.add_column("OT hours", justify="right")
    table.add_column("Gross", justify="right")
    table.add_column("Employer cost", justify="right")
    for dept in report.departments:
        table.add_row(
            dept.department,
            str(dept.employee_count),
            f"{dept.regular_hours:,}",
            f"{dept.overtime_hours:,}",
            _fmt(dept.gross_pay),
            _fmt(dept.employer_cost),
        )
    table.add_row(
        "[bold]Total[/bold]", str(report.total_employees), "", "", _fmt(report.total_gross),
        _fmt(report.total_employer_cost),
    )
    console.print(table)


@app.command("schedule-c")
def schedule_c(
    year: int = typer.Argument(..., help="Tax year"),
    config: str = ConfigOption,
    data: Optional[str] = DataOption,
    as_json: bool = JsonOption,
) -> None:
    """Schedule C summary and quarterly estimated tax."""
    with _errors():
        estimate = _engine(config, data).get_schedule_c(year)

    if as_json:
        _emit_json(estimate)
        return

    sc = estimate.schedule_c
    table = Table(title=f"Schedule C — {year}")
    table.add_column("Line", style="bold")
    table.add_column("Amount", justify="right")
    table.add_row("1 Gross receipts", _fmt(sc.part_i.line_1_gross_receipts))
    table.add_row("2 Returns and allowances", _fmt(sc.part_i.line_2_returns_allowances))
    table.add_row("4 Cost of goods sold", _fmt(sc.part_i.line_4_cost_of_goods))
    table.add_row("7 Gross income", _fmt(sc.part_i.line_7_gross_income))
    for line, amount in sc.part_ii_expenses.items():
        if amount:
            table.add_row(line.removeprefix("line_").replace("_", " "), _fmt(amount))
    table.add_row("28 Total expenses", _fmt(sc.line_28_total_expenses))
    table.add_row("30 Home office", _fmt(sc.line_30_home_office))
    table.add_row("[bold]31 Net profit[/bold]", f"[bold]{_fmt(sc.line_31_net_profit)}[/bold]")
    console.print(table)

    quarters = Table(title="Estimated tax payments")
    quarters.add_column("Quarter", style="bold")
    quarters.add_column("Due")
    quarters.add_column("Net income", justify="right")
    quarters.add_column("SE tax", justify="right")
    quarters.add_column("Income tax", justify="right")
    quarters.add_column("Payment", justify="right")
    for q in estimate.quarterly:
        quarters.add_row(
            f"Q{q.quarter}", str(q.due_date), _fmt(q.net_income), _fmt(q.se_tax), _fmt(q.income_tax), _fmt(q.payment)
        )
    quarters.add_row("[bold]Year[/bold]", "", _fmt(estimate.annual.net_income), _fmt(estimate.annual.se_tax),
                     _fmt(estimate.annual.income_tax), f"[bold]{_fmt(estimate.annual.total_payment)}[/bold]")
    console.print(quarters)
    _print_warnings(estimate.warnings)


@app.command("vendors-1099")
def vendors_1099(
    year: int = typer.Argument(..., help="Tax year"),
    config: str = ConfigOption,
    data: Optional[str] = DataOption,
    as_json: bool = JsonOption,
) -> None:
    """Vendors that need (or are close to needing) a 1099-NEC."""
    with _errors():
        vendors = _engine(config, data).get_1099_vendors(year)

    if as_json:
        _emit_json(vendors)
        return

    table = Table(title=f"1099-NEC vendors — {year}")
    table.add_column("Vendor", style="bold")
    table.add_column("Payments", justify="right")
    table.add_column("Total paid", justify="right")
    table.add_column("Status")
    for v in vendors:
        status = "[red]1099 required[/red]" if v.requires_1099 else "[yellow]Near threshold[/yellow]"
        table.add_row(v.name, str(v.payment_count), _fmt(v.total_paid), status)
    console.print(table)


if __name__ == "__main__":
    app()
