"""HTTP endpoints for access requests and enrollments.

Learner:
- GET  /v1/access/requests/mine - My pending requests
- POST /v1/access/requests - Request access to a course or question bank
- GET  /v1/access/{kind}/{unit_id} - Access state of a content unit
- POST /v1/access/{kind}/{unit_id}/enroll - Self-enroll in public content

Admin:
- GET    /v1/admin/access/requests - Pending requests (with integrity faults)
- POST   /v1/admin/access/requests/{request_id}/approve
- POST   /v1/admin/access/requests/{request_id}/deny
- DELETE /v1/admin/access/requests/{request_id} - Remove an orphaned request
- DELETE /v1/admin/access/enrollments/{kind}/{unit_id}/{learner_id}
- GET    /v1/admin/access/integrity - Orphaned records and faulty pairs
- DELETE /v1/admin/access/enrollments/orphaned - Remove orphaned enrollments

AccessError subclasses raised here are rendered by the application's
exception handler, which maps each error code to its status.
"""

from uuid import UUID

from fastapi import APIRouter, status

from coursegate.auth.dependencies import AdminUser, StudentUser
from coursegate.catalog.models import ContentKind

from .dependencies import IntegrityDep, QueryServiceDep, ResolverDep
from .schemas import (
    AccessRequestListResponse,
    AccessRequestResponse,
    AccessStatusResponse,
    CreateAccessRequest,
    DenyAccessRequest,
    EnrollmentResponse,
    IntegrityReportResponse,
    OrphanCleanupResponse,
    PendingRequestListResponse,
    ResolutionResponse,
    UnenrollResponse,
)


router = APIRouter(prefix="/v1/access", tags=["access"])
admin_router = APIRouter(prefix="/v1/admin/access", tags=["admin-access"])


# ==============================================================================
# Learner Endpoints
# ==============================================================================


@router.get(
    "/requests/mine",
    response_model=AccessRequestListResponse,
    summary="List my pending access requests",
)
async def list_my_requests(
    service: QueryServiceDep,
    current_user: StudentUser,
) -> AccessRequestListResponse:
    requests = await service.list_for_learner(current_user.id)
    return AccessRequestListResponse(
        items=[AccessRequestResponse.from_request(r) for r in requests],
        total=len(requests),
    )


@router.post(
    "/requests",
    response_model=AccessRequestResponse,
    status_code=status.HTTP_200_OK,
    summary="Request access to content",
)
async def create_access_request(
    data: CreateAccessRequest,
    resolver: ResolverDep,
    current_user: StudentUser,
) -> AccessRequestResponse:
    """Submit a request for a course or question bank.

    Rejected when the content is not open for requests, when the learner
    already has access, or when a request is already pending.
    """
    request = await resolver.create(
        learner_id=current_user.id,
        content_unit_id=data.content_unit_id,
        content_kind=data.content_kind,
        reason=data.reason,
    )
    return AccessRequestResponse.from_request(request)


@router.get(
    "/{kind}/{unit_id}",
    response_model=AccessStatusResponse,
    summary="Get my access state for a content unit",
)
async def get_access_state(
    kind: ContentKind,
    unit_id: UUID,
    service: QueryServiceDep,
    current_user: StudentUser,
) -> AccessStatusResponse:
    access = await service.get_access(current_user.id, kind, unit_id)
    return AccessStatusResponse.from_status(access)


@router.post(
    "/{kind}/{unit_id}/enroll",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in public content",
)
async def enroll(
    kind: ContentKind,
    unit_id: UUID,
    resolver: ResolverDep,
    current_user: StudentUser,
) -> EnrollmentResponse:
    """Self-enroll without review. Only public, published content allows it."""
    enrollment = await resolver.enroll_direct(current_user.id, unit_id, kind)
    return EnrollmentResponse.from_enrollment(enrollment)


# ==============================================================================
# Admin Endpoints
# ==============================================================================


@admin_router.get(
    "/requests",
    response_model=PendingRequestListResponse,
    summary="List pending access requests",
)
async def list_pending_requests(
    service: QueryServiceDep,
    _: AdminUser,
    kind: ContentKind | None = None,
) -> PendingRequestListResponse:
    """Pending requests, newest first.

    Requests whose learner or content unit was deleted are flagged
    ``is_orphaned``. Requests found next to a live enrollment are returned
    under ``integrity_faults`` rather than as items.
    """
    listing = await service.list_pending(kind)
    return PendingRequestListResponse.from_listing(listing)


@admin_router.post(
    "/requests/{request_id}/approve",
    response_model=ResolutionResponse,
    summary="Approve an access request",
)
async def approve_request(
    request_id: UUID,
    resolver: ResolverDep,
    admin: AdminUser,
) -> ResolutionResponse:
    """Turn the request into an enrollment. 404 if already resolved."""
    resolution = await resolver.approve(request_id, admin.id)
    return ResolutionResponse.from_resolution(resolution)


@admin_router.post(
    "/requests/{request_id}/deny",
    response_model=ResolutionResponse,
    summary="Deny an access request",
)
async def deny_request(
    request_id: UUID,
    resolver: ResolverDep,
    admin: AdminUser,
    data: DenyAccessRequest | None = None,
) -> ResolutionResponse:
    resolution = await resolver.deny(
        request_id, admin.id, reason=data.reason if data else None
    )
    return ResolutionResponse.from_resolution(resolution)


@admin_router.delete(
    "/requests/{request_id}",
    response_model=ResolutionResponse,
    summary="Delete an orphaned access request",
)
async def delete_orphaned_request(
    request_id: UUID,
    resolver: ResolverDep,
    admin: AdminUser,
) -> ResolutionResponse:
    """Remove a request whose learner or content unit no longer exists.

    409 if both still exist; use deny for those.
    """
    resolution = await resolver.delete_orphaned(request_id, admin.id)
    return ResolutionResponse.from_resolution(resolution)


@admin_router.get(
    "/integrity",
    response_model=IntegrityReportResponse,
    summary="Scan for orphaned records and integrity faults",
)
async def integrity_report(
    scanner: IntegrityDep,
    _: AdminUser,
) -> IntegrityReportResponse:
    """Read every pair row and report what needs attention. Changes nothing."""
    report = await scanner.scan()
    return IntegrityReportResponse.from_report(report)


@admin_router.delete(
    "/enrollments/orphaned",
    response_model=OrphanCleanupResponse,
    summary="Remove orphaned enrollments",
)
async def cleanup_orphaned_enrollments(
    scanner: IntegrityDep,
    admin: AdminUser,
) -> OrphanCleanupResponse:
    removed = await scanner.cleanup_orphaned_enrollments(admin.id)
    return OrphanCleanupResponse(
        removed=[EnrollmentResponse.from_enrollment(e) for e in removed],
        total=len(removed),
    )


@admin_router.delete(
    "/enrollments/{kind}/{unit_id}/{learner_id}",
    response_model=UnenrollResponse,
    summary="Remove an enrollment",
)
async def unenroll(
    kind: ContentKind,
    unit_id: UUID,
    learner_id: UUID,
    resolver: ResolverDep,
    admin: AdminUser,
) -> UnenrollResponse:
    enrollment = await resolver.unenroll(
        learner_id, unit_id, admin.id, content_kind=kind
    )
    return UnenrollResponse(enrollment=EnrollmentResponse.from_enrollment(enrollment))
