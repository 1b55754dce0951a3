"""Maintenance scans over every pair row.

Everything here reads the whole content_access table, so it runs from the
admin endpoints and scripts, never on a learner's request path.
"""

from dataclasses import dataclass, field
from uuid import UUID

from coursegate.core.logging import get_logger

from .lookup_repair import LookupRepairReport, rebuild_request_lookup
from .models import AccessPair, AccessRequest, Enrollment
from .orphans import OrphanDetector
from .store import EnrollmentStore, RequestStore


logger = get_logger(__name__)


@dataclass
class IntegrityReport:
    orphaned_enrollments: list[Enrollment] = field(default_factory=list)
    orphaned_requests: list[AccessRequest] = field(default_factory=list)
    integrity_faults: list[AccessPair] = field(default_factory=list)
    pairs_scanned: int = 0


class IntegrityScanner:
    """Finds orphaned records and faulty pairs, and cleans up enrollments."""

    def __init__(
        self,
        requests: RequestStore,
        enrollments: EnrollmentStore,
        orphans: OrphanDetector,
    ):
        self.requests = requests
        self.enrollments = enrollments
        self.orphans = orphans

    async def scan(self) -> IntegrityReport:
        """Report without changing anything.

        A faulty pair is reported once, as a fault, and its references are
        not checked.
        """
        report = IntegrityReport()
        for pair in await self.requests.scan_pairs():
            report.pairs_scanned += 1
            if pair.is_faulty:
                report.integrity_faults.append(pair)
            elif pair.enrollment is not None:
                if await self.orphans.is_enrollment_orphaned(pair.enrollment):
                    report.orphaned_enrollments.append(pair.enrollment)
            elif pair.request is not None:
                if await self.orphans.is_orphaned(pair.request):
                    report.orphaned_requests.append(pair.request)

        logger.info(
            "integrity_scan_completed",
            pairs_scanned=report.pairs_scanned,
            orphaned_enrollments=len(report.orphaned_enrollments),
            orphaned_requests=len(report.orphaned_requests),
            integrity_faults=len(report.integrity_faults),
        )
        return report

    async def cleanup_orphaned_enrollments(self, admin_id: UUID) -> list[Enrollment]:
        """Delete enrollments whose learner or content unit is gone.

        Each candidate is checked again right before its conditional delete,
        and an enrollment that changed since the scan is left in place.
        Faulty pairs are never touched.
        """
        removed: list[Enrollment] = []
        for pair in await self.requests.scan_pairs():
            if pair.is_faulty or pair.enrollment is None:
                continue
            enrollment = pair.enrollment
            if not await self.orphans.is_enrollment_orphaned(enrollment):
                continue
            if not await self.enrollments.delete_if_unchanged(enrollment):
                continue
            removed.append(enrollment)
            logger.info(
                "orphaned_enrollment_removed",
                learner_id=str(enrollment.learner_id),
                content_unit_id=str(enrollment.content_unit_id),
                admin_id=str(admin_id),
            )

        logger.info(
            "orphaned_enrollments_cleaned",
            removed=len(removed),
            admin_id=str(admin_id),
        )
        return removed

    async def rebuild_lookup(self) -> LookupRepairReport:
        pairs = await self.requests.scan_pairs()
        lookup = await self.requests.scan_lookup()
        return await rebuild_request_lookup(self.requests, pairs, lookup)
