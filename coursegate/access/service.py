"""Read side of the access engine.

Answers the learner's "what can I do with this content" question and builds
the admin's pending-request listing. Nothing here writes.
"""

from dataclasses import dataclass, field
from uuid import UUID

from coursegate.catalog.models import ContentKind, ContentUnit, Learner
from coursegate.catalog.service import CatalogService
from coursegate.core.logging import get_logger

from .errors import NotFoundError
from .gate import classify
from .models import AccessPair, AccessRequest, AccessState, Enrollment
from .orphans import OrphanDetector
from .store import RequestStore


logger = get_logger(__name__)


@dataclass
class AccessStatus:
    """Gate result for one learner and one content unit."""

    content_unit: ContentUnit
    state: AccessState
    request: AccessRequest | None = None
    enrollment: Enrollment | None = None


@dataclass
class PendingEntry:
    """A listed request with the learner and unit it points at, if they exist."""

    request: AccessRequest
    learner: Learner | None = None
    content_unit: ContentUnit | None = None

    @property
    def is_orphaned(self) -> bool:
        return self.learner is None or self.content_unit is None


@dataclass
class FaultEntry:
    """A listed request whose pair also holds an enrollment."""

    request: AccessRequest
    enrollment: Enrollment


@dataclass
class PendingListing:
    items: list[PendingEntry] = field(default_factory=list)
    integrity_faults: list[FaultEntry] = field(default_factory=list)


class AccessQueryService:
    """Queries over requests and enrollments."""

    def __init__(
        self,
        requests: RequestStore,
        catalog: CatalogService,
        orphans: OrphanDetector,
        list_limit: int = 500,
    ):
        self.requests = requests
        self.catalog = catalog
        self.orphans = orphans
        self.list_limit = list_limit

    async def get_access(
        self, learner_id: UUID, content_kind: ContentKind, content_unit_id: UUID
    ) -> AccessStatus:
        """Classify a learner's access to a content unit.

        Raises:
            NotFoundError: Unknown content unit, or one of another kind
        """
        unit = await self.catalog.get_content_unit(content_unit_id)
        if unit is None or unit.kind != content_kind:
            raise NotFoundError("Content not found")

        pair = await self.requests.get_pair(learner_id, content_unit_id)
        if pair and pair.is_faulty:
            self._log_fault(pair)

        request = pair.request if pair else None
        enrollment = pair.enrollment if pair else None

        return AccessStatus(
            content_unit=unit,
            state=classify(
                learner_id,
                unit,
                has_enrollment=enrollment is not None,
                has_pending_request=request is not None,
            ),
            request=request,
            enrollment=enrollment,
        )

    async def list_for_learner(self, learner_id: UUID) -> list[AccessRequest]:
        """A learner's own pending requests."""
        return await self.requests.list_for_learner(learner_id)

    async def list_pending(self, kind: ContentKind | None = None) -> PendingListing:
        """Pending requests for review, with orphan flags.

        Each lookup row is checked against its pair row:
        - pair holds the request: listed
        - pair holds the request and an enrollment: integrity fault
        - pair holds only an enrollment: already approved, not listed
        - pair holds nothing: listed; the resolution is still propagating
        """
        listing = PendingListing()

        for request in await self.requests.list_pending(kind, limit=self.list_limit):
            pair = await self.requests.get_pair(
                request.learner_id, request.content_unit_id
            )

            if pair and pair.is_faulty:
                self._log_fault(pair)
                listing.integrity_faults.append(
                    FaultEntry(request=pair.request, enrollment=pair.enrollment)
                )
                continue

            if pair and pair.enrollment:
                logger.debug(
                    "pending_listing_skipped_enrolled",
                    request_id=str(request.request_id),
                )
                continue

            if pair and pair.request and pair.request.request_id == request.request_id:
                request = pair.request

            refs = await self.orphans.resolve_request(request)
            listing.items.append(
                PendingEntry(
                    request=request,
                    learner=refs.learner,
                    content_unit=refs.content_unit,
                )
            )

        logger.info(
            "pending_requests_listed",
            kind=kind.value if kind else None,
            count=len(listing.items),
            integrity_faults=len(listing.integrity_faults),
        )

        return listing

    def _log_fault(self, pair: AccessPair) -> None:
        logger.error(
            "access_integrity_fault",
            learner_id=str(pair.learner_id),
            content_unit_id=str(pair.content_unit_id),
            request_id=str(pair.request.request_id),
            enrolled_at=pair.enrollment.enrolled_at.isoformat(),
        )
