"""Exception hierarchy for tenantroute."""


class TenantRouteError(Exception):
    """Base exception for all tenantroute errors."""


class ConfigurationError(TenantRouteError):
    """Raised when a required backend or resource config is missing or invalid."""


class BackendError(TenantRouteError):
    """Raised when a backend call fails. Carries the HTTP status when known."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SearchRuntimeError(BackendError):
    """Raised when the search engine fails or answers with a non-success status."""


class RelationalError(BackendError):
    """Raised when the relational store fails or answers with a non-success status."""


class UnsupportedOperationError(TenantRouteError):
    """Raised when a resource does not support the requested operation."""
