"""Admin read model for pending access requests.

The listing the admin sees can lag behind a resolution that has already
committed. The view handles that explicitly:

1. After approve/deny/delete succeeds, the row is removed locally at once and
   the resolution is recorded as UNCONFIRMED.
2. After ``refetch_delay`` seconds, exactly one confirmatory re-fetch runs.
3. If the row is gone the resolution is confirmed and dropped from
   ``resolutions``. If it is still listed it becomes LINGERING: it is shown
   again and logged, never hidden, until a later refresh no longer lists it.

A 404 from a mutation means someone else resolved the request first and is
reconciled the same way. There is no polling loop and no background task.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

import httpx

from coursegate.catalog.models import ContentKind
from coursegate.config import get_settings
from coursegate.core.logging import get_logger

from .errors import AccessError, NotFoundError, error_from_code
from .models import RequestOutcome
from .schemas import (
    IntegrityFaultResponse,
    PendingRequestListResponse,
    PendingRequestResponse,
    ResolutionResponse,
)


logger = get_logger(__name__)


class AdminClientError(AccessError):
    """The access API could not be reached or answered unexpectedly."""

    def __init__(self, message: str = "Access API unavailable"):
        super().__init__(message, "admin_client_error")


# ==============================================================================
# HTTP Client
# ==============================================================================


class AdminAccessClient:
    """Thin client for the admin access endpoints.

    Error envelopes are turned back into the typed errors the server raised.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        if timeout is None:
            timeout = get_settings().admin_view_timeout_seconds
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_pending(
        self, kind: ContentKind | None = None
    ) -> PendingRequestListResponse:
        params = {"kind": kind.value} if kind else None
        data = await self._send("GET", "/v1/admin/access/requests", params=params)
        return PendingRequestListResponse.model_validate(data)

    async def approve(self, request_id: UUID) -> ResolutionResponse:
        data = await self._send(
            "POST", f"/v1/admin/access/requests/{request_id}/approve"
        )
        return ResolutionResponse.model_validate(data)

    async def deny(
        self, request_id: UUID, reason: str | None = None
    ) -> ResolutionResponse:
        data = await self._send(
            "POST",
            f"/v1/admin/access/requests/{request_id}/deny",
            json={"reason": reason},
        )
        return ResolutionResponse.model_validate(data)

    async def delete_orphaned(self, request_id: UUID) -> ResolutionResponse:
        data = await self._send("DELETE", f"/v1/admin/access/requests/{request_id}")
        return ResolutionResponse.model_validate(data)

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(
                method, url, headers=self._headers, **kwargs
            )
        except httpx.TimeoutException as e:
            logger.error("admin_access_api_timeout", method=method, url=url)
            raise AdminClientError("Access API timeout") from e
        except httpx.RequestError as e:
            logger.error("admin_access_api_request_error", url=url, error=str(e))
            raise AdminClientError(f"Access API request error: {e}") from e

        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}

        code = body.get("code") if isinstance(body, dict) else None
        message = body.get("message") if isinstance(body, dict) else None
        if code:
            raise error_from_code(code, message)

        logger.error(
            "admin_access_api_error",
            status_code=response.status_code,
            response_text=response.text[:500],
        )
        raise AdminClientError(message or f"Access API error: {response.status_code}")


# ==============================================================================
# Read Model
# ==============================================================================


class ResolutionState(str, Enum):
    UNCONFIRMED = "unconfirmed"  # Resolved, not yet seen gone from the listing
    LINGERING = "lingering"  # Still listed after the confirmatory re-fetch


@dataclass
class LocalResolution:
    """A resolution this view performed (or observed via 404), until confirmed."""

    request_id: UUID
    outcome: RequestOutcome
    state: ResolutionState = ResolutionState.UNCONFIRMED
    resolved_elsewhere: bool = False


class AdminRequestView:
    """Pending-request listing with optimistic removal and one re-fetch."""

    def __init__(
        self,
        client: AdminAccessClient,
        kind: ContentKind | None = None,
        refetch_delay: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if refetch_delay is None:
            refetch_delay = get_settings().admin_view_refetch_delay
        self.client = client
        self.kind = kind
        self.refetch_delay = refetch_delay
        self._sleep = sleep
        self._rows: dict[UUID, PendingRequestResponse] = {}
        self.integrity_faults: list[IntegrityFaultResponse] = []
        self.resolutions: dict[UUID, LocalResolution] = {}
        self.confirmatory_fetches = 0

    @property
    def requests(self) -> list[PendingRequestResponse]:
        return list(self._rows.values())

    @property
    def unconfirmed(self) -> list[LocalResolution]:
        return self._in_state(ResolutionState.UNCONFIRMED)

    @property
    def lingering(self) -> list[LocalResolution]:
        return self._in_state(ResolutionState.LINGERING)

    @property
    def has_integrity_faults(self) -> bool:
        return bool(self.integrity_faults)

    async def refresh(self) -> None:
        """Reload the listing.

        Rows resolved locally but not yet confirmed stay hidden; the
        confirmatory re-fetch is what decides whether they linger.
        """
        listing = await self.client.list_pending(self.kind)
        self._apply(listing, confirming=set())

    async def approve(self, request_id: UUID) -> ResolutionResponse | None:
        return await self._resolve(
            request_id,
            RequestOutcome.APPROVED,
            lambda: self.client.approve(request_id),
        )

    async def deny(
        self, request_id: UUID, reason: str | None = None
    ) -> ResolutionResponse | None:
        return await self._resolve(
            request_id,
            RequestOutcome.DENIED,
            lambda: self.client.deny(request_id, reason),
        )

    async def delete_orphaned(self, request_id: UUID) -> ResolutionResponse | None:
        return await self._resolve(
            request_id,
            RequestOutcome.ORPHANED,
            lambda: self.client.delete_orphaned(request_id),
        )

    async def _resolve(
        self,
        request_id: UUID,
        outcome: RequestOutcome,
        call: Callable[[], Awaitable[ResolutionResponse]],
    ) -> ResolutionResponse | None:
        """Run a mutation, then reconcile with one confirmatory re-fetch.

        Returns None when the request had already been resolved elsewhere.
        Any other error propagates and leaves the view untouched.
        """
        try:
            result = await call()
        except NotFoundError:
            logger.info(
                "admin_view_request_resolved_elsewhere",
                request_id=str(request_id),
                outcome=outcome.value,
            )
            result = None

        self._rows.pop(request_id, None)
        self.resolutions[request_id] = LocalResolution(
            request_id=request_id,
            outcome=outcome,
            resolved_elsewhere=result is None,
        )

        await self._sleep(self.refetch_delay)
        listing = await self.client.list_pending(self.kind)
        self.confirmatory_fetches += 1
        self._apply(listing, confirming={request_id})

        return result

    def _apply(
        self, listing: PendingRequestListResponse, confirming: set[UUID]
    ) -> None:
        fetched = {item.request_id: item for item in listing.items}

        for resolution in list(self.resolutions.values()):
            request_id = resolution.request_id
            if request_id not in fetched:
                del self.resolutions[request_id]
                logger.debug(
                    "admin_view_resolution_confirmed",
                    request_id=str(request_id),
                    outcome=resolution.outcome.value,
                )
            elif request_id in confirming or resolution.state == ResolutionState.LINGERING:
                if resolution.state != ResolutionState.LINGERING:
                    logger.warning(
                        "admin_view_request_lingering",
                        request_id=str(request_id),
                        outcome=resolution.outcome.value,
                        refetch_delay=self.refetch_delay,
                    )
                resolution.state = ResolutionState.LINGERING
            else:
                # Inside the lag window: keep the optimistic removal
                fetched.pop(request_id)

        self._rows = fetched
        self.integrity_faults = list(listing.integrity_faults)

        if self.integrity_faults:
            logger.error(
                "admin_view_integrity_faults",
                count=len(self.integrity_faults),
                request_ids=[str(f.request_id) for f in self.integrity_faults],
            )

    def _in_state(self, state: ResolutionState) -> list[LocalResolution]:
        return [r for r in self.resolutions.values() if r.state == state]
