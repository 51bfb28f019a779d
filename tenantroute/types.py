"""Enums and type aliases for tenantroute."""

from enum import StrEnum

Identifier = str | int


class ResourceClass(StrEnum):
    NATIVE_SEARCH = "native_search"
    TENANT_SCOPED = "tenant_scoped"
    PLAIN = "plain"


class SortOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"
