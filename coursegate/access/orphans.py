"""Orphan detection for requests and enrollments.

A request or enrollment is orphaned when its learner or content unit no
longer exists. This is recomputed on every call against the catalog itself;
deactivated learners still exist and are not orphans.
"""

from dataclasses import dataclass
from uuid import UUID

from coursegate.catalog.models import ContentUnit, Learner
from coursegate.catalog.service import CatalogService
from coursegate.core.logging import get_logger

from .models import AccessRequest, Enrollment


logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedReferences:
    """The learner and content unit a record points at, as they exist now."""

    learner: Learner | None
    content_unit: ContentUnit | None

    @property
    def is_orphaned(self) -> bool:
        return self.learner is None or self.content_unit is None

    @property
    def missing(self) -> str | None:
        if self.learner is None:
            return "learner"
        if self.content_unit is None:
            return "content_unit"
        return None


class OrphanDetector:
    """Existence checks for the references requests and enrollments carry."""

    def __init__(self, catalog: CatalogService):
        self.catalog = catalog

    async def resolve(
        self, learner_id: UUID, content_unit_id: UUID
    ) -> ResolvedReferences:
        """Load both references, bypassing the descriptor cache."""
        return ResolvedReferences(
            learner=await self.catalog.get_learner(learner_id),
            content_unit=await self.catalog.get_content_unit(
                content_unit_id, use_cache=False
            ),
        )

    async def resolve_request(self, request: AccessRequest) -> ResolvedReferences:
        refs = await self.resolve(request.learner_id, request.content_unit_id)
        if refs.is_orphaned:
            logger.info(
                "access_request_orphaned",
                request_id=str(request.request_id),
                missing=refs.missing,
                learner_id=str(request.learner_id),
                content_unit_id=str(request.content_unit_id),
            )
        return refs

    async def is_orphaned(self, request: AccessRequest) -> bool:
        return (await self.resolve_request(request)).is_orphaned

    async def is_enrollment_orphaned(self, enrollment: Enrollment) -> bool:
        refs = await self.resolve(enrollment.learner_id, enrollment.content_unit_id)
        if refs.is_orphaned:
            logger.info(
                "enrollment_orphaned",
                missing=refs.missing,
                learner_id=str(enrollment.learner_id),
                content_unit_id=str(enrollment.content_unit_id),
            )
        return refs.is_orphaned
