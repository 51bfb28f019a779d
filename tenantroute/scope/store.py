"""Tenant scope state: the active tenant and the view-all override.

The scope is persisted under two independent keys so it survives restarts.
Every write goes straight to storage and every read goes straight back to it,
so a write is visible to the next read in the same process.
"""

from __future__ import annotations

import json
import pathlib  # noqa: TC003 - used at runtime for Path operations
from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

TENANT_KEY = "supabase-admin:selected-tenant"
VIEW_ALL_KEY = "supabase-admin:view-all-mode"


class KeyValueStorage(ABC):
    """String-keyed durable storage for client-side session state."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key was never written."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value under the key."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove the key if present."""


class InMemoryStorage(KeyValueStorage):
    """Process-local storage. Each instance is isolated."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """Storage backed by a single JSON object on disk.

    Concurrent writers are not coordinated: the last write wins.
    """

    def __init__(self, path: pathlib.Path) -> None:
        self._path = path.expanduser()

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("scope_storage_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _dump(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, sort_keys=True), encoding="utf-8")
        tmp.replace(self._path)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


@dataclass(frozen=True, slots=True)
class TenantScope:
    """Immutable snapshot of the scope, read once at the start of a call."""

    active_tenant_id: str | None = None
    view_all_mode: bool = False

    @property
    def effective_tenant_id(self) -> str | None:
        """Tenant to filter by, or None when no filter applies."""
        if self.view_all_mode:
            return None
        return self.active_tenant_id


class ScopeStore:
    """Reads and writes the tenant scope through a :class:`KeyValueStorage`."""

    def __init__(self, storage: KeyValueStorage | None = None) -> None:
        self._storage = storage if storage is not None else InMemoryStorage()

    def get_active_tenant(self) -> str | None:
        """Active tenant id, or None in view-all mode or when none is selected."""
        return self.snapshot().effective_tenant_id

    def set_active_tenant(self, tenant_id: str) -> None:
        self._storage.set(TENANT_KEY, tenant_id)
        logger.info("scope_tenant_selected", tenant_id=tenant_id)

    def clear_active_tenant(self) -> None:
        self._storage.remove(TENANT_KEY)
        logger.info("scope_tenant_cleared")

    def set_view_all_mode(self, enabled: bool) -> None:
        self._storage.set(VIEW_ALL_KEY, "true" if enabled else "false")
        logger.info("scope_view_all_changed", enabled=enabled)

    @property
    def view_all_mode(self) -> bool:
        return self._storage.get(VIEW_ALL_KEY) == "true"

    def snapshot(self) -> TenantScope:
        tenant_id = self._storage.get(TENANT_KEY) or None
        return TenantScope(active_tenant_id=tenant_id, view_all_mode=self.view_all_mode)
