"""Pydantic schemas for access requests and enrollments.

Request/Response models for:
- Gate state of a content unit
- Submitting and listing access requests
- Admin resolution (approve, deny, orphan cleanup)
- Integrity scans and orphaned enrollment cleanup
- Direct enrollment and unenrollment
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from coursegate.catalog.models import ContentKind

from .integrity import IntegrityReport
from .models import (
    PENDING_STATUS,
    AccessPair,
    AccessRequest,
    AccessState,
    Enrollment,
    EnrollmentSource,
    RequestOutcome,
    Resolution,
)
from .service import AccessStatus, FaultEntry, PendingEntry, PendingListing


# ==============================================================================
# Request Schemas
# ==============================================================================


class CreateAccessRequest(BaseModel):
    """Request access to a course or question bank."""

    content_unit_id: UUID = Field(..., description="Course or question bank")
    content_kind: ContentKind
    reason: str | None = Field(None, description="Why the learner wants access")


class DenyAccessRequest(BaseModel):
    """Admin denial, with an optional note."""

    reason: str | None = Field(None, max_length=500)


# ==============================================================================
# Response Schemas
# ==============================================================================


class AccessRequestResponse(BaseModel):
    """A pending access request."""

    request_id: UUID
    learner_id: UUID
    content_unit_id: UUID
    content_kind: ContentKind
    reason: str | None = None
    status: Literal["pending"] = PENDING_STATUS
    requested_at: datetime

    @classmethod
    def from_request(cls, request: AccessRequest) -> "AccessRequestResponse":
        return cls(
            request_id=request.request_id,
            learner_id=request.learner_id,
            content_unit_id=request.content_unit_id,
            content_kind=request.content_kind,
            reason=request.reason,
            requested_at=request.requested_at,
        )


class EnrollmentResponse(BaseModel):
    """Granted access for a learner."""

    learner_id: UUID
    content_unit_id: UUID
    content_kind: ContentKind
    source: EnrollmentSource
    progress: int = 0
    enrolled_at: datetime
    last_accessed: datetime

    @classmethod
    def from_enrollment(cls, enrollment: Enrollment) -> "EnrollmentResponse":
        return cls(
            learner_id=enrollment.learner_id,
            content_unit_id=enrollment.content_unit_id,
            content_kind=enrollment.content_kind,
            source=enrollment.source,
            progress=enrollment.progress,
            enrolled_at=enrollment.enrolled_at,
            last_accessed=enrollment.last_accessed,
        )


class AccessStatusResponse(BaseModel):
    """What the learner may do with a content unit."""

    content_unit_id: UUID
    content_kind: ContentKind
    state: AccessState
    request: AccessRequestResponse | None = None
    enrollment: EnrollmentResponse | None = None

    @classmethod
    def from_status(cls, access: AccessStatus) -> "AccessStatusResponse":
        return cls(
            content_unit_id=access.content_unit.id,
            content_kind=access.content_unit.kind,
            state=access.state,
            request=(
                AccessRequestResponse.from_request(access.request)
                if access.request
                else None
            ),
            enrollment=(
                EnrollmentResponse.from_enrollment(access.enrollment)
                if access.enrollment
                else None
            ),
        )


class AccessRequestListResponse(BaseModel):
    """A learner's pending requests."""

    items: list[AccessRequestResponse]
    total: int


class PendingRequestResponse(AccessRequestResponse):
    """Pending request as shown to admins."""

    is_orphaned: bool = Field(
        False, description="Learner or content unit no longer exists"
    )
    learner_name: str | None = Field(None, description="Null if the learner is gone")
    learner_email: str | None = None
    content_title: str | None = Field(None, description="Null if the content is gone")

    @classmethod
    def from_entry(cls, entry: PendingEntry) -> "PendingRequestResponse":
        learner = entry.learner
        unit = entry.content_unit
        return cls(
            **AccessRequestResponse.from_request(entry.request).model_dump(),
            is_orphaned=entry.is_orphaned,
            learner_name=(learner.name or None) if learner else None,
            learner_email=(learner.email or None) if learner else None,
            content_title=(unit.title or None) if unit else None,
        )


class IntegrityFaultResponse(BaseModel):
    """A request listed alongside a live enrollment for the same pair."""

    request_id: UUID
    learner_id: UUID
    content_unit_id: UUID
    content_kind: ContentKind
    requested_at: datetime
    enrolled_at: datetime

    @classmethod
    def from_entry(cls, entry: FaultEntry) -> "IntegrityFaultResponse":
        return cls(
            request_id=entry.request.request_id,
            learner_id=entry.request.learner_id,
            content_unit_id=entry.request.content_unit_id,
            content_kind=entry.request.content_kind,
            requested_at=entry.request.requested_at,
            enrolled_at=entry.enrollment.enrolled_at,
        )

    @classmethod
    def from_pair(cls, pair: AccessPair) -> "IntegrityFaultResponse":
        return cls.from_entry(FaultEntry(request=pair.request, enrollment=pair.enrollment))


class PendingRequestListResponse(BaseModel):
    """Admin listing. Integrity faults are reported apart from the items."""

    items: list[PendingRequestResponse]
    integrity_faults: list[IntegrityFaultResponse] = Field(default_factory=list)
    total: int

    @classmethod
    def from_listing(cls, listing: PendingListing) -> "PendingRequestListResponse":
        return cls(
            items=[PendingRequestResponse.from_entry(e) for e in listing.items],
            integrity_faults=[
                IntegrityFaultResponse.from_entry(f) for f in listing.integrity_faults
            ],
            total=len(listing.items),
        )


class ResolutionResponse(BaseModel):
    """Outcome of approve, deny or orphan cleanup."""

    request_id: UUID
    learner_id: UUID
    content_unit_id: UUID
    content_kind: ContentKind
    outcome: RequestOutcome
    resolved_by: UUID
    resolved_at: datetime
    enrollment: EnrollmentResponse | None = None

    @classmethod
    def from_resolution(cls, resolution: Resolution) -> "ResolutionResponse":
        return cls(
            request_id=resolution.request.request_id,
            learner_id=resolution.request.learner_id,
            content_unit_id=resolution.request.content_unit_id,
            content_kind=resolution.request.content_kind,
            outcome=resolution.outcome,
            resolved_by=resolution.resolved_by,
            resolved_at=resolution.resolved_at,
            enrollment=(
                EnrollmentResponse.from_enrollment(resolution.enrollment)
                if resolution.enrollment
                else None
            ),
        )


class UnenrollResponse(BaseModel):
    """Removed enrollment."""

    message: str = "Enrollment removed"
    enrollment: EnrollmentResponse


class IntegrityReportResponse(BaseModel):
    """Result of a full scan of the pair rows."""

    pairs_scanned: int
    orphaned_enrollments: list[EnrollmentResponse]
    orphaned_requests: list[AccessRequestResponse]
    integrity_faults: list[IntegrityFaultResponse]

    @classmethod
    def from_report(cls, report: IntegrityReport) -> "IntegrityReportResponse":
        return cls(
            pairs_scanned=report.pairs_scanned,
            orphaned_enrollments=[
                EnrollmentResponse.from_enrollment(e) for e in report.orphaned_enrollments
            ],
            orphaned_requests=[
                AccessRequestResponse.from_request(r) for r in report.orphaned_requests
            ],
            integrity_faults=[
                IntegrityFaultResponse.from_pair(p) for p in report.integrity_faults
            ],
        )


class OrphanCleanupResponse(BaseModel):
    """Enrollments removed because their learner or content unit is gone."""

    removed: list[EnrollmentResponse]
    total: int
