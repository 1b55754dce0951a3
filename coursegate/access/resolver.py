"""Request resolution.

RequestResolver is the only writer of requests and enrollments. Each
operation reads the pair, applies its guards, then issues one conditional
write. The write's condition is what makes concurrent resolutions of the
same request safe: exactly one applies, the rest see ``NotFoundError``.
"""

from uuid import UUID

from coursegate.catalog.models import ContentKind, ContentUnit
from coursegate.catalog.service import CatalogService
from coursegate.core.logging import get_logger

from .errors import (
    AlreadyEnrolledError,
    DuplicateRequestError,
    IntegrityFault,
    NotFoundError,
    NotOrphanedError,
    NotRequestableError,
    NotSelfEnrollableError,
    OrphanedReferenceError,
    ValidationError,
)
from .gate import classify
from .models import (
    AccessPair,
    AccessRequest,
    AccessState,
    Enrollment,
    EnrollmentSource,
    RequestOutcome,
    Resolution,
)
from .orphans import OrphanDetector
from .store import EnrollmentStore, RequestStore


logger = get_logger(__name__)


class RequestResolver:
    """Creates and resolves access requests, grants and removes enrollments."""

    def __init__(
        self,
        requests: RequestStore,
        enrollments: EnrollmentStore,
        catalog: CatalogService,
        orphans: OrphanDetector,
        reason_max_length: int = 1000,
    ):
        self.requests = requests
        self.enrollments = enrollments
        self.catalog = catalog
        self.orphans = orphans
        self.reason_max_length = reason_max_length

    # ==========================================================================
    # Learner operations
    # ==========================================================================

    async def create(
        self,
        learner_id: UUID,
        content_unit_id: UUID,
        content_kind: ContentKind,
        reason: str | None = None,
    ) -> AccessRequest:
        """Submit a pending access request.

        Raises:
            ValidationError: Reason too long, or kind does not match the catalog
            NotFoundError: Content unit does not exist
            AlreadyEnrolledError: Learner already has access
            DuplicateRequestError: A request is already pending for the pair
            NotRequestableError: Content does not accept requests
        """
        reason = (reason or "").strip() or None
        if reason and len(reason) > self.reason_max_length:
            raise ValidationError(
                f"Reason must be at most {self.reason_max_length} characters"
            )

        unit = await self._load_unit(content_unit_id, content_kind)
        pair = await self._load_pair(learner_id, content_unit_id)

        if unit.is_default_unlocked or (pair and pair.enrollment):
            logger.warning(
                "access_request_rejected",
                reason="already_enrolled",
                learner_id=str(learner_id),
                content_unit_id=str(content_unit_id),
            )
            raise AlreadyEnrolledError()

        if pair and pair.request:
            logger.warning(
                "access_request_rejected",
                reason="duplicate_request",
                learner_id=str(learner_id),
                content_unit_id=str(content_unit_id),
                existing_request_id=str(pair.request.request_id),
            )
            raise DuplicateRequestError()

        if not unit.is_published or not unit.is_requestable:
            logger.warning(
                "access_request_rejected",
                reason="not_requestable",
                learner_id=str(learner_id),
                content_unit_id=str(content_unit_id),
            )
            raise NotRequestableError()

        request = AccessRequest(
            learner_id=learner_id,
            content_unit_id=content_unit_id,
            content_kind=content_kind,
            reason=reason,
        )

        applied, current = await self.requests.insert(request)
        if not applied:
            # Lost a race with a concurrent create or enrollment
            logger.warning(
                "access_request_create_conflict",
                learner_id=str(learner_id),
                content_unit_id=str(content_unit_id),
            )
            if current and current.enrollment:
                raise AlreadyEnrolledError()
            raise DuplicateRequestError()

        await self.requests.index(request)

        logger.info(
            "access_request_created",
            request_id=str(request.request_id),
            learner_id=str(learner_id),
            content_unit_id=str(content_unit_id),
            content_kind=content_kind.value,
        )

        return request

    async def enroll_direct(
        self,
        learner_id: UUID,
        content_unit_id: UUID,
        content_kind: ContentKind,
    ) -> Enrollment:
        """Self-enroll into public content.

        Raises:
            NotFoundError: Content unit does not exist
            AlreadyEnrolledError: Learner already has access
            DuplicateRequestError: A request is already pending for the pair
            NotSelfEnrollableError: Content is not open for direct enrollment
        """
        unit = await self._load_unit(content_unit_id, content_kind)
        pair = await self._load_pair(learner_id, content_unit_id)

        state = classify(
            learner_id,
            unit,
            has_enrollment=bool(pair and pair.enrollment),
            has_pending_request=bool(pair and pair.request),
        )

        if state == AccessState.ENROLLED:
            raise AlreadyEnrolledError()
        if state == AccessState.REQUESTED:
            raise DuplicateRequestError()
        if state != AccessState.AVAILABLE_DIRECT:
            logger.warning(
                "direct_enrollment_rejected",
                learner_id=str(learner_id),
                content_unit_id=str(content_unit_id),
                state=state.value,
            )
            raise NotSelfEnrollableError()

        enrollment = Enrollment(
            learner_id=learner_id,
            content_unit_id=content_unit_id,
            content_kind=content_kind,
            source=EnrollmentSource.DIRECT_ENROLLMENT,
        )

        applied, current = await self.enrollments.insert(enrollment)
        if not applied:
            logger.warning(
                "direct_enrollment_conflict",
                learner_id=str(learner_id),
                content_unit_id=str(content_unit_id),
            )
            if current and current.request and not current.enrollment:
                raise DuplicateRequestError()
            raise AlreadyEnrolledError()

        logger.info(
            "direct_enrollment_created",
            learner_id=str(learner_id),
            content_unit_id=str(content_unit_id),
            content_kind=content_kind.value,
        )

        return enrollment

    # ==========================================================================
    # Admin operations
    # ==========================================================================

    async def approve(self, request_id: UUID, admin_id: UUID) -> Resolution:
        """Grant access: the request becomes an enrollment atomically.

        Raises:
            NotFoundError: Request already resolved or never existed
            OrphanedReferenceError: Learner or content unit is gone
            IntegrityFault: Pair holds both a request and an enrollment
        """
        request = await self._load_pending(request_id)

        if await self.orphans.is_orphaned(request):
            logger.warning(
                "access_request_approve_rejected",
                reason="orphaned_reference",
                request_id=str(request_id),
                admin_id=str(admin_id),
            )
            raise OrphanedReferenceError()

        enrollment = Enrollment(
            learner_id=request.learner_id,
            content_unit_id=request.content_unit_id,
            content_kind=request.content_kind,
            source=EnrollmentSource.REQUEST_APPROVAL,
        )

        if not await self.enrollments.grant_from_request(request, enrollment):
            self._log_already_resolved(request_id, admin_id, "approve")
            raise NotFoundError("Request already resolved")

        await self.requests.unindex(request_id)

        logger.info(
            "access_request_approved",
            request_id=str(request_id),
            learner_id=str(request.learner_id),
            content_unit_id=str(request.content_unit_id),
            admin_id=str(admin_id),
        )

        return Resolution(
            request=request,
            outcome=RequestOutcome.APPROVED,
            resolved_by=admin_id,
            enrollment=enrollment,
        )

    async def deny(
        self, request_id: UUID, admin_id: UUID, reason: str | None = None
    ) -> Resolution:
        """Reject a request. No enrollment is created.

        Raises:
            NotFoundError: Request already resolved or never existed
        """
        request = await self._load_pending(request_id)

        if not await self.requests.delete_if_pending(request):
            self._log_already_resolved(request_id, admin_id, "deny")
            raise NotFoundError("Request already resolved")

        await self.requests.unindex(request_id)

        logger.info(
            "access_request_denied",
            request_id=str(request_id),
            learner_id=str(request.learner_id),
            content_unit_id=str(request.content_unit_id),
            admin_id=str(admin_id),
            reason=reason,
        )

        return Resolution(
            request=request,
            outcome=RequestOutcome.DENIED,
            resolved_by=admin_id,
        )

    async def delete_orphaned(self, request_id: UUID, admin_id: UUID) -> Resolution:
        """Remove a request whose learner or content unit no longer exists.

        Raises:
            NotFoundError: Request already resolved or never existed
            NotOrphanedError: Both references still resolve
        """
        request = await self._load_pending(request_id)

        if not await self.orphans.is_orphaned(request):
            logger.warning(
                "orphan_cleanup_rejected",
                request_id=str(request_id),
                admin_id=str(admin_id),
            )
            raise NotOrphanedError()

        if not await self.requests.delete_if_pending(request):
            self._log_already_resolved(request_id, admin_id, "delete_orphaned")
            raise NotFoundError("Request already resolved")

        await self.requests.unindex(request_id)

        logger.info(
            "orphaned_request_deleted",
            request_id=str(request_id),
            learner_id=str(request.learner_id),
            content_unit_id=str(request.content_unit_id),
            admin_id=str(admin_id),
        )

        return Resolution(
            request=request,
            outcome=RequestOutcome.ORPHANED,
            resolved_by=admin_id,
        )

    async def unenroll(
        self,
        learner_id: UUID,
        content_unit_id: UUID,
        admin_id: UUID,
        content_kind: ContentKind | None = None,
    ) -> Enrollment:
        """Remove an enrollment.

        Raises:
            NotFoundError: Pair holds no enrollment (of that kind)
        """
        pair = await self._load_pair(learner_id, content_unit_id)
        enrollment = pair.enrollment if pair else None

        if enrollment is None or (
            content_kind is not None and enrollment.content_kind != content_kind
        ):
            raise NotFoundError("Enrollment not found")

        if not await self.enrollments.delete_if_unchanged(enrollment):
            logger.info(
                "enrollment_already_removed",
                learner_id=str(learner_id),
                content_unit_id=str(content_unit_id),
                admin_id=str(admin_id),
            )
            raise NotFoundError("Enrollment not found")

        logger.info(
            "enrollment_removed",
            learner_id=str(learner_id),
            content_unit_id=str(content_unit_id),
            admin_id=str(admin_id),
        )

        return enrollment

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _load_unit(
        self, content_unit_id: UUID, content_kind: ContentKind
    ) -> ContentUnit:
        # Write paths read the catalog itself; a cached descriptor may be stale
        unit = await self.catalog.get_content_unit(content_unit_id, use_cache=False)
        if unit is None:
            raise NotFoundError("Content not found")
        if unit.kind != content_kind:
            raise ValidationError(f"Content is not a {content_kind.value}")
        return unit

    async def _load_pair(
        self, learner_id: UUID, content_unit_id: UUID
    ) -> AccessPair | None:
        """Load a pair, refusing to act on one that breaks mutual exclusivity."""
        pair = await self.requests.get_pair(learner_id, content_unit_id)
        if pair and pair.is_faulty:
            logger.error(
                "access_integrity_fault",
                learner_id=str(learner_id),
                content_unit_id=str(content_unit_id),
                request_id=str(pair.request.request_id),
                enrolled_at=pair.enrollment.enrolled_at.isoformat(),
            )
            raise IntegrityFault(learner_id, content_unit_id)
        return pair

    async def _load_pending(self, request_id: UUID) -> AccessRequest:
        """Find a pending request by id, confirmed against its pair row.

        A lookup row whose pair no longer holds the request is stale and is
        removed on the way out.
        """
        indexed = await self.requests.find(request_id)
        if indexed is None:
            logger.info("access_request_not_found", request_id=str(request_id))
            raise NotFoundError("Request not found")

        pair = await self._load_pair(indexed.learner_id, indexed.content_unit_id)
        if pair is None or pair.request is None or pair.request.request_id != request_id:
            logger.info("access_request_stale_lookup_removed", request_id=str(request_id))
            await self.requests.unindex(request_id)
            raise NotFoundError("Request not found")

        return pair.request

    def _log_already_resolved(self, request_id: UUID, admin_id: UUID, action: str) -> None:
        logger.info(
            "access_request_already_resolved",
            request_id=str(request_id),
            admin_id=str(admin_id),
            action=action,
        )
