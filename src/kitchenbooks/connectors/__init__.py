"""Connectors package — ledger stores."""
from kitchenbooks.connectors.base import BaseLedgerStore
from kitchenbooks.connectors.csv_connector import CSVLedgerStore
from kitchenbooks.connectors.memory_store import InMemoryLedgerStore
from kitchenbooks.connectors.registry import StoreRegistry, default_registry
from kitchenbooks.connectors.sql_connector import SQLLedgerStore

__all__ = [
    "BaseLedgerStore",
    "CSVLedgerStore",
    "InMemoryLedgerStore",
    "SQLLedgerStore",
    "StoreRegistry",
    "default_registry",
]
