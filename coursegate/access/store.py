# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra-backed stores for access requests and enrollments.

Both stores write the same ``content_access`` partition, one per
(learner, content unit) pair. Every mutation is a lightweight transaction
conditioned on the value the caller last saw, so two concurrent resolutions
of one request can never both apply.

RequestStore owns the request columns and the ``access_requests`` lookup.
EnrollmentStore owns the enrollment columns.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from coursegate.catalog.models import ContentKind
from coursegate.core.database.lwt import lwt_result
from coursegate.core.logging import get_logger

from .models import AccessPair, AccessRequest, Enrollment


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = get_logger(__name__)


class _ContentAccessTable:
    """Shared access to the ``content_access`` pair rows."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_pair = self.session.prepare(f"""
            SELECT learner_id, content_unit_id, content_kind, request_id, reason,
                   requested_at, enrolled_at, source, progress, last_accessed
            FROM {self.keyspace}.content_access
            WHERE learner_id = ? AND content_unit_id = ?
        """)

        self._scan_pairs = self.session.prepare(f"""
            SELECT learner_id, content_unit_id, content_kind, request_id, reason,
                   requested_at, enrolled_at, source, progress, last_accessed
            FROM {self.keyspace}.content_access
        """)

    async def get_pair(
        self, learner_id: UUID, content_unit_id: UUID
    ) -> AccessPair | None:
        """Load everything stored for a pair, or None if nothing is."""
        result = await self.session.aexecute(
            self._get_pair, [learner_id, content_unit_id]
        )
        row = result[0] if result else None
        return AccessPair.from_row(row) if row else None

    async def scan_pairs(self) -> list[AccessPair]:
        """Read every pair row. Full-table scan, for maintenance only."""
        result = await self.session.aexecute(self._scan_pairs)
        return [AccessPair.from_row(row) for row in result]


# ==============================================================================
# Requests
# ==============================================================================


class RequestStore(_ContentAccessTable):
    """Pending access requests."""

    def _prepare_statements(self) -> None:
        super()._prepare_statements()

        # Conditional insert: only one writer can create the pair row
        self._insert_request = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.content_access
            (learner_id, content_unit_id, content_kind, request_id, reason,
             requested_at)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._delete_request = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.content_access
            WHERE learner_id = ? AND content_unit_id = ?
            IF request_id = ?
        """)

        # Lookup by request id
        self._index_request = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.access_requests
            (request_id, learner_id, content_unit_id, content_kind, reason,
             requested_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._unindex_request = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.access_requests
            WHERE request_id = ?
        """)

        self._get_indexed = self.session.prepare(f"""
            SELECT request_id, learner_id, content_unit_id, content_kind, reason,
                   requested_at
            FROM {self.keyspace}.access_requests
            WHERE request_id = ?
        """)

        self._list_indexed = self.session.prepare(f"""
            SELECT request_id, learner_id, content_unit_id, content_kind, reason,
                   requested_at
            FROM {self.keyspace}.access_requests
        """)

        self._list_indexed_by_kind = self.session.prepare(f"""
            SELECT request_id, learner_id, content_unit_id, content_kind, reason,
                   requested_at
            FROM {self.keyspace}.access_requests
            WHERE content_kind = ?
        """)

        self._list_indexed_by_learner = self.session.prepare(f"""
            SELECT request_id, learner_id, content_unit_id, content_kind, reason,
                   requested_at
            FROM {self.keyspace}.access_requests
            WHERE learner_id = ?
        """)

    async def insert(self, request: AccessRequest) -> tuple[bool, AccessPair | None]:
        """Create the pair row holding a new pending request.

        Returns:
            Tuple of (applied, current pair). When not applied, the current
            pair is whatever made the insert lose.
        """
        result = await self.session.aexecute(
            self._insert_request,
            [
                request.learner_id,
                request.content_unit_id,
                request.content_kind.value,
                request.request_id,
                request.reason,
                request.requested_at,
            ],
        )
        applied, row = lwt_result(result)
        if applied:
            return True, None
        return False, AccessPair.from_row(row) if row else None

    async def delete_if_pending(self, request: AccessRequest) -> bool:
        """Delete the pair row if it still holds this request."""
        result = await self.session.aexecute(
            self._delete_request,
            [request.learner_id, request.content_unit_id, request.request_id],
        )
        applied, _ = lwt_result(result)
        return applied

    async def index(self, request: AccessRequest) -> None:
        """Write the lookup row for a request."""
        await self.session.aexecute(
            self._index_request,
            [
                request.request_id,
                request.learner_id,
                request.content_unit_id,
                request.content_kind.value,
                request.reason,
                request.requested_at,
            ],
        )

    async def unindex(self, request_id: UUID) -> None:
        """Remove the lookup row for a request."""
        await self.session.aexecute(self._unindex_request, [request_id])

    async def find(self, request_id: UUID) -> AccessRequest | None:
        """Look a request up by id. May lag behind the pair row."""
        result = await self.session.aexecute(self._get_indexed, [request_id])
        row = result[0] if result else None
        return AccessRequest.from_row(row) if row else None

    async def list_pending(
        self, kind: ContentKind | None = None, limit: int = 500
    ) -> list[AccessRequest]:
        """List the newest ``limit`` pending requests, newest first.

        The lookup table has no clustering order to sort on, so every pending
        row (of the kind) is read and sorted here before the limit applies.
        The driver pages through the result.
        """
        if kind:
            result = await self.session.aexecute(
                self._list_indexed_by_kind, [kind.value]
            )
        else:
            result = await self.session.aexecute(self._list_indexed)
        requests = [AccessRequest.from_row(row) for row in result]
        requests.sort(key=lambda r: r.requested_at, reverse=True)
        return requests[:limit]

    async def scan_lookup(self) -> list[AccessRequest]:
        """Read every lookup row, in table order."""
        result = await self.session.aexecute(self._list_indexed)
        return [AccessRequest.from_row(row) for row in result]

    async def list_for_learner(self, learner_id: UUID) -> list[AccessRequest]:
        """List a learner's pending requests, newest first."""
        result = await self.session.aexecute(
            self._list_indexed_by_learner, [learner_id]
        )
        requests = [AccessRequest.from_row(row) for row in result]
        requests.sort(key=lambda r: r.requested_at, reverse=True)
        return requests


# ==============================================================================
# Enrollments
# ==============================================================================


class EnrollmentStore(_ContentAccessTable):
    """Granted access."""

    def _prepare_statements(self) -> None:
        super()._prepare_statements()

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.content_access
            (learner_id, content_unit_id, content_kind, enrolled_at, source,
             progress, last_accessed)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        # Approval: consume the request and grant access in one transaction
        self._grant_from_request = self.session.prepare(f"""
            UPDATE {self.keyspace}.content_access
            SET request_id = null, reason = null, requested_at = null,
                content_kind = ?, enrolled_at = ?, source = ?, progress = ?,
                last_accessed = ?
            WHERE learner_id = ? AND content_unit_id = ?
            IF request_id = ?
        """)

        self._delete_enrollment = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.content_access
            WHERE learner_id = ? AND content_unit_id = ?
            IF enrolled_at = ?
        """)

    async def insert(self, enrollment: Enrollment) -> tuple[bool, AccessPair | None]:
        """Create the pair row holding a new enrollment.

        Returns:
            Tuple of (applied, current pair)
        """
        result = await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.learner_id,
                enrollment.content_unit_id,
                enrollment.content_kind.value,
                enrollment.enrolled_at,
                enrollment.source.value,
                enrollment.progress,
                enrollment.last_accessed,
            ],
        )
        applied, row = lwt_result(result)
        if applied:
            return True, None
        return False, AccessPair.from_row(row) if row else None

    async def grant_from_request(
        self, request: AccessRequest, enrollment: Enrollment
    ) -> bool:
        """Replace a pending request with an enrollment.

        Applies only if the pair still holds ``request``; otherwise someone
        else already resolved it and nothing changes.
        """
        result = await self.session.aexecute(
            self._grant_from_request,
            [
                enrollment.content_kind.value,
                enrollment.enrolled_at,
                enrollment.source.value,
                enrollment.progress,
                enrollment.last_accessed,
                request.learner_id,
                request.content_unit_id,
                request.request_id,
            ],
        )
        applied, _ = lwt_result(result)
        return applied

    async def delete_if_unchanged(self, enrollment: Enrollment) -> bool:
        """Delete the enrollment if it is still the one the caller saw."""
        result = await self.session.aexecute(
            self._delete_enrollment,
            [enrollment.learner_id, enrollment.content_unit_id, enrollment.enrolled_at],
        )
        applied, _ = lwt_result(result)
        if not applied:
            logger.debug(
                "enrollment_delete_not_applied",
                learner_id=str(enrollment.learner_id),
                content_unit_id=str(enrollment.content_unit_id),
            )
        return applied
