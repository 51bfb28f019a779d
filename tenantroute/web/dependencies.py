"""FastAPI dependency injection for the shared data provider."""

from __future__ import annotations

from functools import lru_cache

import structlog
from fastapi import Depends, Header, HTTPException, status

from tenantroute.provider import CompositeDataProvider, create_data_provider
from tenantroute.scope.store import ScopeStore

logger = structlog.get_logger(__name__)


@lru_cache
def get_data_provider() -> CompositeDataProvider:
    """Process-wide provider built from settings. Override in tests."""
    return create_data_provider()


def get_scope_store() -> ScopeStore:
    return get_data_provider().scope


def get_access_token(authorization: str | None = Header(None)) -> str | None:
    """User JWT from an optional ``Authorization: Bearer <token>`` header."""
    if authorization is None:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning("authorization_header_invalid")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format",
        )
    return parts[1]


def get_request_provider(
    provider: CompositeDataProvider = Depends(get_data_provider),
    access_token: str | None = Depends(get_access_token),
) -> CompositeDataProvider:
    """Provider acting as the caller when a bearer token is present.

    Without a token the shared provider's publishable key is used.
    """
    if access_token is None:
        return provider
    return provider.with_access_token(access_token)
