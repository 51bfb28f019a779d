"""Unit tests for the tenant scope store and its storages."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tenantroute.scope.store import (
    TENANT_KEY,
    VIEW_ALL_KEY,
    InMemoryStorage,
    JsonFileStorage,
    ScopeStore,
    TenantScope,
)


@pytest.mark.unit
class TestScopeStore:
    def test_defaults_when_nothing_written(self) -> None:
        store = ScopeStore(InMemoryStorage())
        assert store.get_active_tenant() is None
        assert store.view_all_mode is False

    def test_set_active_tenant_round_trip(self) -> None:
        store = ScopeStore(InMemoryStorage())
        store.set_active_tenant("tenant-1")
        assert store.get_active_tenant() == "tenant-1"

    def test_view_all_hides_active_tenant(self) -> None:
        store = ScopeStore(InMemoryStorage())
        store.set_active_tenant("tenant-1")
        store.set_view_all_mode(True)
        assert store.get_active_tenant() is None

    def test_set_active_tenant_keeps_view_all(self) -> None:
        store = ScopeStore(InMemoryStorage())
        store.set_view_all_mode(True)
        store.set_active_tenant("tenant-1")
        assert store.view_all_mode is True
        assert store.get_active_tenant() is None

    def test_disabling_view_all_restores_tenant(self) -> None:
        store = ScopeStore(InMemoryStorage())
        store.set_active_tenant("tenant-1")
        store.set_view_all_mode(True)
        store.set_view_all_mode(False)
        assert store.get_active_tenant() == "tenant-1"

    def test_clear_active_tenant(self) -> None:
        store = ScopeStore(InMemoryStorage())
        store.set_active_tenant("tenant-1")
        store.clear_active_tenant()
        assert store.get_active_tenant() is None

    def test_flag_persisted_as_literal_strings(self) -> None:
        storage = InMemoryStorage()
        store = ScopeStore(storage)
        store.set_view_all_mode(True)
        assert storage.get(VIEW_ALL_KEY) == "true"
        store.set_view_all_mode(False)
        assert storage.get(VIEW_ALL_KEY) == "false"

    def test_unrecognised_flag_value_is_false(self) -> None:
        store = ScopeStore(InMemoryStorage({VIEW_ALL_KEY: "yes", TENANT_KEY: "t"}))
        assert store.view_all_mode is False
        assert store.get_active_tenant() == "t"

    def test_stores_are_isolated(self) -> None:
        a = ScopeStore(InMemoryStorage())
        b = ScopeStore(InMemoryStorage())
        a.set_active_tenant("tenant-a")
        assert b.get_active_tenant() is None

    def test_snapshot_is_not_affected_by_later_writes(self) -> None:
        store = ScopeStore(InMemoryStorage())
        store.set_active_tenant("tenant-1")
        snapshot = store.snapshot()
        store.set_active_tenant("tenant-2")
        assert snapshot.effective_tenant_id == "tenant-1"
        assert store.get_active_tenant() == "tenant-2"


@pytest.mark.unit
class TestTenantScope:
    def test_effective_tenant_with_view_all(self) -> None:
        assert TenantScope("t", view_all_mode=True).effective_tenant_id is None

    def test_effective_tenant_without_view_all(self) -> None:
        assert TenantScope("t").effective_tenant_id == "t"


@pytest.mark.unit
class TestJsonFileStorage:
    def test_persists_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "scope.json"
        ScopeStore(JsonFileStorage(path)).set_active_tenant("tenant-9")
        assert ScopeStore(JsonFileStorage(path)).get_active_tenant() == "tenant-9"

    def test_keys_are_independent(self, tmp_path: Path) -> None:
        path = tmp_path / "scope.json"
        store = ScopeStore(JsonFileStorage(path))
        store.set_active_tenant("tenant-9")
        store.set_view_all_mode(True)
        data = json.loads(path.read_text())
        assert data == {TENANT_KEY: "tenant-9", VIEW_ALL_KEY: "true"}

    def test_missing_file_reads_defaults(self, tmp_path: Path) -> None:
        store = ScopeStore(JsonFileStorage(tmp_path / "nested" / "scope.json"))
        assert store.get_active_tenant() is None
        assert store.view_all_mode is False

    def test_corrupt_file_reads_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "scope.json"
        path.write_text("{not json")
        assert JsonFileStorage(path).get(TENANT_KEY) is None

    def test_remove_missing_key_is_noop(self, tmp_path: Path) -> None:
        storage = JsonFileStorage(tmp_path / "scope.json")
        storage.remove(TENANT_KEY)
        assert not (tmp_path / "scope.json").exists()

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "a" / "b" / "scope.json"
        JsonFileStorage(path).set(TENANT_KEY, "t")
        assert path.exists()
