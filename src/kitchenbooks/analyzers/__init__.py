"""
KitchenBooks Analyzers — pure computation modules.

Each analyzer is a function of an explicit ledger snapshot and period. None
of them reads from a store, caches results or mutates its input.
"""

from kitchenbooks.analyzers.aggregation import Aggregator, GroupBy, LedgerSnapshot
from kitchenbooks.analyzers.aging import AgingBucketer
from kitchenbooks.analyzers.menu_engineering import MenuEngineeringClassifier, analyze_menu
from kitchenbooks.analyzers.payroll import PayrollCalculator
from kitchenbooks.analyzers.periods import PeriodResolver
from kitchenbooks.analyzers.pnl import PnLBuilder
from kitchenbooks.analyzers.tax_estimator import TaxEstimator

__all__ = [
    "Aggregator",
    "AgingBucketer",
    "GroupBy",
    "LedgerSnapshot",
    "MenuEngineeringClassifier",
    "PayrollCalculator",
    "PeriodResolver",
    "PnLBuilder",
    "TaxEstimator",
    "analyze_menu",
]
