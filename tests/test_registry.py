"""Tests for the store registry."""

from pathlib import Path

import pytest

from kitchenbooks.config import KitchenBooksConfig, StoreConfig
from kitchenbooks.connectors.base import BaseLedgerStore
from kitchenbooks.connectors.csv_connector import CSVLedgerStore
from kitchenbooks.connectors.memory_store import InMemoryLedgerStore
from kitchenbooks.connectors.registry import StoreRegistry, default_registry
from kitchenbooks.connectors.sql_connector import SQLLedgerStore
from kitchenbooks.exceptions import AnalyticsError


class MockStore(InMemoryLedgerStore):
    """A simple custom store for testing."""

    name = "mock"
    description = "Mock store"


class NotAStore:
    pass


class TestStoreRegistry:
    def test_builtin_types(self) -> None:
        """Test the built-in store types."""
        registry = StoreRegistry()
        assert registry.types == ["csv", "memory", "sql"]
        assert "memory" in registry

    def test_create_memory(self) -> None:
        """Test creating the default in-memory store."""
        store = StoreRegistry().create(StoreConfig())
        assert isinstance(store, InMemoryLedgerStore)

    def test_create_from_full_config(self, tmp_path: Path) -> None:
        """Test creating a CSV store from a full config."""
        (tmp_path / "rows.csv").write_text("kind,date,amount\nsale,2025-01-01,100\n")
        config = KitchenBooksConfig(store=StoreConfig(type="csv", options={"data_dir": str(tmp_path)}))

        store = StoreRegistry().create(config)
        assert isinstance(store, CSVLedgerStore)
        assert len(store.fetch_rows()) == 1

    def test_create_sql(self) -> None:
        """Test creating a SQL store on in-memory SQLite."""
        store = default_registry.create(StoreConfig(type="sql", options={"url": "sqlite://", "create_schema": True}))
        assert isinstance(store, SQLLedgerStore)
        assert store.fetch_rows() == []

    def test_register_class(self) -> None:
        """Test registering a custom store class."""
        registry = StoreRegistry()
        registry.register("mock", MockStore)

        assert "mock" in registry
        assert isinstance(registry.create(StoreConfig(type="mock")), MockStore)

    def test_dotted_path(self) -> None:
        """Test loading a store class by dotted import path."""
        store = StoreRegistry().create(StoreConfig(type="test_registry.MockStore"))
        assert store.name == "mock"

    def test_unknown_type(self) -> None:
        """Test that an unknown store type is rejected."""
        with pytest.raises(AnalyticsError, match="Unknown ledger store type"):
            StoreRegistry().create(StoreConfig(type="quickbooks"))

    def test_not_a_store(self) -> None:
        """Test that a registered class must be a ledger store."""
        registry = StoreRegistry()
        registry.register("bad", NotAStore)  # type: ignore[arg-type]
        with pytest.raises(AnalyticsError, match="not a ledger store"):
            registry.resolve("bad")

    def test_base_is_abstract(self) -> None:
        """Test that the base store cannot be instantiated."""
        with pytest.raises(TypeError):
            BaseLedgerStore()  # type: ignore[abstract]
