"""Dependency injection for the access module.

Service instances are built once at startup by main.py, which registers
getters here. Tests replace them with ``app.dependency_overrides``.
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends

from .integrity import IntegrityScanner
from .resolver import RequestResolver
from .service import AccessQueryService


# ==============================================================================
# Service Getters (set by main.py)
# ==============================================================================

_resolver_getter: Callable[[], RequestResolver] | None = None
_query_service_getter: Callable[[], AccessQueryService] | None = None
_integrity_getter: Callable[[], IntegrityScanner] | None = None


def set_resolver_getter(getter: Callable[[], RequestResolver]) -> None:
    """Set the request resolver getter function."""
    global _resolver_getter  # noqa: PLW0603 - Required for DI pattern
    _resolver_getter = getter


def set_query_service_getter(getter: Callable[[], AccessQueryService]) -> None:
    """Set the access query service getter function."""
    global _query_service_getter  # noqa: PLW0603 - Required for DI pattern
    _query_service_getter = getter


def set_integrity_getter(getter: Callable[[], IntegrityScanner]) -> None:
    """Set the integrity scanner getter function."""
    global _integrity_getter  # noqa: PLW0603 - Required for DI pattern
    _integrity_getter = getter


def get_resolver() -> RequestResolver:
    """Get RequestResolver instance from app state."""
    if _resolver_getter is None:
        msg = "RequestResolver not configured"
        raise RuntimeError(msg)
    return _resolver_getter()


def get_query_service() -> AccessQueryService:
    """Get AccessQueryService instance from app state."""
    if _query_service_getter is None:
        msg = "AccessQueryService not configured"
        raise RuntimeError(msg)
    return _query_service_getter()


def get_integrity_scanner() -> IntegrityScanner:
    """Get IntegrityScanner instance from app state."""
    if _integrity_getter is None:
        msg = "IntegrityScanner not configured"
        raise RuntimeError(msg)
    return _integrity_getter()


# ==============================================================================
# Type Aliases for Dependencies
# ==============================================================================

ResolverDep = Annotated[RequestResolver, Depends(get_resolver)]
QueryServiceDep = Annotated[AccessQueryService, Depends(get_query_service)]
IntegrityDep = Annotated[IntegrityScanner, Depends(get_integrity_scanner)]
