"""
Store Registry — builds the configured ledger store.

Supports the built-in store types and custom stores given as a fully
qualified class path.
"""

from __future__ import annotations

import importlib
import logging

from kitchenbooks.config import KitchenBooksConfig, StoreConfig
from kitchenbooks.connectors.base import BaseLedgerStore
from kitchenbooks.exceptions import AnalyticsError

logger = logging.getLogger("kitchenbooks.connectors.registry")

# Built-in store type mapping
_BUILTIN_STORES: dict[str, str] = {
    "memory": "kitchenbooks.connectors.memory_store.InMemoryLedgerStore",
    "csv": "kitchenbooks.connectors.csv_connector.CSVLedgerStore",
    "sql": "kitchenbooks.connectors.sql_connector.SQLLedgerStore",
}


class StoreRegistry:
    """Maps store type names to store classes.

    Supports:
    - The built-in ``memory``, ``csv`` and ``sql`` stores.
    - Manual registration of custom store classes.
    - Plugin-style loading from a dotted class path.
    """

    def __init__(self) -> None:
        self._types: dict[str, str | type[BaseLedgerStore]] = dict(_BUILTIN_STORES)

    def __contains__(self, name: str) -> bool:
        return name in self._types

    @property
    def types(self) -> list[str]:
        return sorted(self._types)

    def register(self, name: str, store_cls: str | type[BaseLedgerStore]) -> None:
        """Register a store class (or its dotted path) under ``name``."""
        self._types[name] = store_cls
        logger.info("Registered store type: %s", name)

    def create(self, config: StoreConfig | KitchenBooksConfig) -> BaseLedgerStore:
        """Instantiate the store described by ``config``.

        Raises:
            AnalyticsError: The store type cannot be resolved to a
                ``BaseLedgerStore`` subclass.
        """
        if isinstance(config, KitchenBooksConfig):
            config = config.store
        store_cls = self.resolve(config.type)
        store = store_cls(**config.options)
        logger.debug("Created %s store", store.name)
        return store

    def resolve(self, type_name: str) -> type[BaseLedgerStore]:
        # Unknown names are tried as a fully qualified class path (plugin support)
        target = self._types.get(type_name, type_name)
        if isinstance(target, type):
            store_cls = target
        else:
            try:
                module_path, class_name = target.rsplit(".", 1)
                module = importlib.import_module(module_path)
                store_cls = getattr(module, class_name)
            except (ValueError, ImportError, AttributeError) as e:
                logger.error("Cannot load store '%s': %s", type_name, e)
                raise AnalyticsError(f"Unknown ledger store type: {type_name!r}") from e

        if not (isinstance(store_cls, type) and issubclass(store_cls, BaseLedgerStore)):
            raise AnalyticsError(f"{target} is not a ledger store")
        return store_cls


default_registry = StoreRegistry()
