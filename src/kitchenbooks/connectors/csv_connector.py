"""
CSV Store — load a directory of CSV exports into an in-memory ledger.

The simplest way to get started: export your POS, expense and payroll data
to CSV and point ``--data`` at the folder. Expected files (only
``rows.csv`` is required):

- ``rows.csv``: ledger rows (kind, date, amount, category_id, vendor_id, ...)
- ``categories.csv``: expense categories
- ``employees.csv``: employees
- ``vendors.csv``: vendors
- ``menu_costs.csv``: per-unit recipe and labor cost per menu item
- ``payroll.csv``: committed payroll records, written by this store

Common alternate column names are recognized. The export files are only
read. Committed payroll runs are appended to ``payroll.csv`` and loaded back
on startup, so a pay period already paid is rejected in later sessions too.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd
from pydantic import BaseModel, ValidationError

from kitchenbooks.connectors.memory_store import InMemoryLedgerStore
from kitchenbooks.exceptions import InvalidRecord
from kitchenbooks.models.ledger import (
    Employee,
    ExpenseCategory,
    MenuItemCost,
    PayrollRecord,
    TransactionRecord,
    Vendor,
)

logger = logging.getLogger("kitchenbooks.connectors.csv")

# Common column name mappings
_COLUMN_ALIASES: dict[str, list[str]] = {
    "kind": ["kind", "record_type", "row_type"],
    "date": ["date", "transaction_date", "txn_date", "expense_date", "sale_date", "invoice_date"],
    "amount": ["amount", "total", "value", "net_amount"],
    "subtype": ["subtype", "sale_type", "type"],
    "category_id": ["category_id", "category", "expense_category"],
    "vendor_id": ["vendor_id", "vendor", "payee", "supplier"],
    "menu_item_id": ["menu_item_id", "menu_item", "item_id"],
    "employee_id": ["employee_id", "employee"],
    "quantity": ["quantity", "qty", "quantity_sold", "units"],
    "description": ["description", "memo", "details", "note"],
}

PAYROLL_FILE = "payroll.csv"

_FILES: dict[str, type[BaseModel]] = {
    "categories.csv": ExpenseCategory,
    "employees.csv": Employee,
    "vendors.csv": Vendor,
    "menu_costs.csv": MenuItemCost,
}


class CSVLedgerStore(InMemoryLedgerStore):
    """Ledger loaded from a directory of CSV files.

    Usage::

        store = CSVLedgerStore(data_dir="exports/2025")
        rows = store.fetch_rows(RecordKind.SALE, period)
    """

    name = "csv"
    description = "Ledger loaded from CSV exports"
    persistent = True

    def __init__(
        self,
        data_dir: str | Path | None = None,
        *,
        encoding: str = "utf-8",
        delimiter: str = ",",
        **options: Any,
    ) -> None:
        self.data_dir = Path(data_dir or ".")
        self.encoding = encoding
        self.delimiter = delimiter

        rows_path = self.data_dir / "rows.csv"
        if not rows_path.exists():
            raise FileNotFoundError(f"Ledger file not found: {rows_path}")

        rows = self._load(rows_path, TransactionRecord, aliases=True)
        master = {filename: self._load(self.data_dir / filename, model) for filename, model in _FILES.items()}

        super().__init__(
            rows,
            categories=master["categories.csv"],
            employees=master["employees.csv"],
            vendors=master["vendors.csv"],
            menu_costs=master["menu_costs.csv"],
            **options,
        )
        payroll = self._load_payroll()
        self._remember(payroll)
        logger.info(
            "Loaded %d ledger rows and %d payroll records from %s", len(rows), len(payroll), self.data_dir
        )

    @property
    def payroll_path(self) -> Path:
        return self.data_dir / PAYROLL_FILE

    def _persist(self, records: list[PayrollRecord]) -> None:
        """Append the run to payroll.csv. A failed write leaves the run uncommitted."""
        path = self.payroll_path
        frame = pd.DataFrame([r.to_flat() for r in records])
        frame.to_csv(
            path,
            mode="a",
            header=not path.exists(),
            index=False,
            sep=self.delimiter,
            encoding=self.encoding,
        )
        logger.debug("Appended %d payroll records to %s", len(records), path)

    def _load_payroll(self) -> list[PayrollRecord]:
        path = self.payroll_path
        if not path.exists():
            return []
        records = []
        for line, raw in enumerate(self._read(path).to_dict("records"), start=2):
            cleaned = {k: v.strip() for k, v in raw.items() if isinstance(v, str) and v.strip()}
            try:
                records.append(PayrollRecord.from_flat(cleaned))
            except (KeyError, ValidationError) as e:
                raise InvalidRecord(f"{path.name} line {line}: {e}", record_id=cleaned.get("id")) from e
        return records

    def _read(self, path: Path) -> pd.DataFrame:
        df = pd.read_csv(path, encoding=self.encoding, delimiter=self.delimiter, dtype=str, keep_default_na=False)
        df.columns = df.columns.str.strip().str.lower()
        return df

    def _load(self, path: Path, model: type[BaseModel], *, aliases: bool = False) -> list[Any]:
        """Validate each line of ``path`` as ``model``. Blank cells count as missing."""
        if not path.exists():
            logger.debug("Optional file %s not present", path.name)
            return []

        df = self._read(path)
        if aliases:
            df = df.rename(columns=self._detect_columns(df))

        records = []
        for line, raw in enumerate(df.to_dict("records"), start=2):
            cleaned = {k: v.strip() for k, v in raw.items() if isinstance(v, str) and v.strip()}
            try:
                records.append(model.model_validate(cleaned))
            except ValidationError as e:
                raise InvalidRecord(
                    f"{path.name} line {line}: {e.errors()[0]['msg']}", record_id=cleaned.get("id")
                ) from e
        return records

    @staticmethod
    def _detect_columns(df: pd.DataFrame) -> dict[str, str]:
        """Map the first alias found for each field to its canonical name."""
        col_map: dict[str, str] = {}
        df_cols = set(df.columns)

        for field, aliases in _COLUMN_ALIASES.items():
            if field in df_cols:
                continue
            for alias in aliases:
                if alias in df_cols and alias not in col_map:
                    col_map[alias] = field
                    break

        return col_map
