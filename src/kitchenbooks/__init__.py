"""
KitchenBooks — restaurant financial analytics.

P&L statements, payables aging, menu engineering, payroll runs and
Schedule C tax estimates from your restaurant's ledger.
"""

__version__ = "0.1.0"
__all__ = ["AnalyticsEngine"]

from kitchenbooks.engine import AnalyticsEngine  # noqa: E402
