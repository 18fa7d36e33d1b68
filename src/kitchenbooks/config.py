"""
KitchenBooks configuration management.

Supports loading from YAML files, environment variables, and keyword overrides.

The approximate payroll and tax rates live here as named constants. They are
planning estimates, not real bracket or jurisdiction logic; swapping them for a
tax-table lookup only has to touch this module.
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

# Employee-side withholding (fraction of gross pay)
FEDERAL_WITHHOLDING_RATE = Decimal("0.12")
STATE_WITHHOLDING_RATE = Decimal("0.05")
SOCIAL_SECURITY_RATE = Decimal("0.062")
MEDICARE_RATE = Decimal("0.0145")

# Employer-side payroll taxes (fraction of gross pay)
EMPLOYER_SOCIAL_SECURITY_RATE = Decimal("0.062")
EMPLOYER_MEDICARE_RATE = Decimal("0.0145")
FUTA_RATE = Decimal("0.006")
SUTA_RATE = Decimal("0.027")

OVERTIME_MULTIPLIER = Decimal("1.5")
PAY_PERIODS_PER_YEAR = 26  # biweekly

# Estimated tax
SE_TAX_BASE = Decimal("0.9235")
SE_TAX_RATE = Decimal("0.153")
INCOME_TAX_RATE = Decimal("0.22")
FORM_1099_THRESHOLD = Decimal("600")
FORM_1099_NEAR_THRESHOLD = Decimal("400")

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class StoreConfig(BaseModel):
    """Which ledger store adapter to use and how to reach it."""

    type: str = Field(default="memory", description="Store type: memory, csv, sql, or a dotted class path")
    options: dict[str, Any] = Field(default_factory=dict)


class PeriodConfig(BaseModel):
    """Calendar conventions for named periods."""

    week_starts_on: str = Field(default="sunday", description="First day of the calendar week")

    @field_validator("week_starts_on")
    @classmethod
    def _known_weekday(cls, v: str) -> str:
        if v.lower() not in WEEKDAYS:
            raise ValueError(f"week_starts_on must be one of {', '.join(WEEKDAYS)}")
        return v.lower()

    @property
    def week_start_index(self) -> int:
        """Weekday index (Monday=0) of the first day of the week."""
        return WEEKDAYS.index(self.week_starts_on.lower())


class PayrollRates(BaseModel):
    """Withholding and employer tax rates applied to gross pay."""

    federal: Decimal = FEDERAL_WITHHOLDING_RATE
    state: Decimal = STATE_WITHHOLDING_RATE
    social_security: Decimal = SOCIAL_SECURITY_RATE
    medicare: Decimal = MEDICARE_RATE
    employer_social_security: Decimal = EMPLOYER_SOCIAL_SECURITY_RATE
    employer_medicare: Decimal = EMPLOYER_MEDICARE_RATE
    futa: Decimal = FUTA_RATE
    suta: Decimal = SUTA_RATE
    overtime_multiplier: Decimal = OVERTIME_MULTIPLIER
    pay_periods_per_year: int = Field(default=PAY_PERIODS_PER_YEAR, ge=1)


class TaxRates(BaseModel):
    """Flat-rate approximations used for estimated tax planning."""

    se_tax_base: Decimal = SE_TAX_BASE
    se_tax_rate: Decimal = SE_TAX_RATE
    income_tax_rate: Decimal = INCOME_TAX_RATE
    form_1099_threshold: Decimal = FORM_1099_THRESHOLD
    form_1099_near_threshold: Decimal = FORM_1099_NEAR_THRESHOLD
    home_office_deduction: Decimal = Field(default=Decimal("0"), ge=0)


class KitchenBooksConfig(BaseModel):
    """Root configuration for KitchenBooks."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    periods: PeriodConfig = Field(default_factory=PeriodConfig)
    payroll: PayrollRates = Field(default_factory=PayrollRates)
    tax: TaxRates = Field(default_factory=TaxRates)

    currency: str = Field(default="USD")

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> KitchenBooksConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

        # 2. Override from environment variables
        env_db = os.environ.get("KITCHENBOOKS_DATABASE_URL")
        env_dir = os.environ.get("KITCHENBOOKS_DATA_DIR")
        env_week = os.environ.get("KITCHENBOOKS_WEEK_START")

        if env_db:
            data["store"] = {"type": "sql", "options": {"url": env_db}}
        elif env_dir:
            data["store"] = {"type": "csv", "options": {"data_dir": env_dir}}

        if env_week:
            periods = data.get("periods", {})
            periods["week_starts_on"] = env_week.lower()
            data["periods"] = periods

        # 3. Apply keyword overrides
        data.update(overrides)

        return cls.model_validate(data)
