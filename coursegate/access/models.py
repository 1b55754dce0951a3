"""Access request and enrollment models and Cassandra schema.

A (learner, content unit) pair lives in a single ``content_access`` row:
- request columns are set while an access request is pending
- enrollment columns are set once access has been granted

Both sets share one partition so every transition is a single lightweight
transaction. A pair must never carry both at once.

``access_requests`` is a lookup keyed by request id, written after the pair
row. It is what the admin listing reads and may briefly lag behind.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from coursegate.catalog.models import ContentKind


if TYPE_CHECKING:
    from cassandra.cluster import Row


class AccessState(str, Enum):
    """A learner's current relationship to a content unit."""

    ENROLLED = "enrolled"
    REQUESTED = "requested"
    AVAILABLE_DIRECT = "available_direct"  # Self-enroll, no review
    AVAILABLE_REQUEST = "available_request"  # May submit a request
    LOCKED = "locked"


class RequestOutcome(str, Enum):
    """How a pending request was resolved."""

    APPROVED = "approved"
    DENIED = "denied"
    ORPHANED = "orphaned"


class EnrollmentSource(str, Enum):
    """How an enrollment came to exist."""

    REQUEST_APPROVAL = "request_approval"
    DIRECT_ENROLLMENT = "direct_enrollment"


PENDING_STATUS = "pending"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CONTENT_ACCESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.content_access (
    learner_id UUID,
    content_unit_id UUID,
    content_kind TEXT,
    request_id UUID,
    reason TEXT,
    requested_at TIMESTAMP,
    enrolled_at TIMESTAMP,
    source TEXT,
    progress INT,
    last_accessed TIMESTAMP,
    PRIMARY KEY ((learner_id, content_unit_id))
)
"""

ACCESS_REQUESTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.access_requests (
    request_id UUID PRIMARY KEY,
    learner_id UUID,
    content_unit_id UUID,
    content_kind TEXT,
    reason TEXT,
    requested_at TIMESTAMP
)
"""

# Indexes for "my requests" and the admin listing filter
ACCESS_REQUESTS_LEARNER_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS ON {keyspace}.access_requests (learner_id)
"""

ACCESS_REQUESTS_KIND_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS ON {keyspace}.access_requests (content_kind)
"""


# List of all CQL statements (format with keyspace before executing)
ACCESS_TABLES_CQL = [
    CONTENT_ACCESS_TABLE_CQL,
    ACCESS_REQUESTS_TABLE_CQL,
    ACCESS_REQUESTS_LEARNER_INDEX_CQL,
    ACCESS_REQUESTS_KIND_INDEX_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (driver returns naive UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


@dataclass
class AccessRequest:
    """A learner's pending ask for access. Only exists while pending."""

    learner_id: UUID
    content_unit_id: UUID
    content_kind: ContentKind
    reason: str | None = None
    request_id: UUID = field(default_factory=uuid4)
    requested_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def status(self) -> str:
        return PENDING_STATUS

    @classmethod
    def from_row(cls, row: "Row") -> "AccessRequest":
        """Create instance from a ``content_access`` or ``access_requests`` row."""
        return cls(
            learner_id=row.learner_id,
            content_unit_id=row.content_unit_id,
            content_kind=ContentKind(row.content_kind),
            reason=row.reason,
            request_id=row.request_id,
            requested_at=ensure_utc_aware(row.requested_at) or datetime.now(UTC),
        )


@dataclass
class Enrollment:
    """Granted access for a (learner, content unit) pair."""

    learner_id: UUID
    content_unit_id: UUID
    content_kind: ContentKind
    source: EnrollmentSource = EnrollmentSource.REQUEST_APPROVAL
    progress: int = 0
    enrolled_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_accessed: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: "Row") -> "Enrollment":
        """Create instance from a ``content_access`` row."""
        enrolled_at = ensure_utc_aware(row.enrolled_at) or datetime.now(UTC)
        return cls(
            learner_id=row.learner_id,
            content_unit_id=row.content_unit_id,
            content_kind=ContentKind(row.content_kind),
            source=EnrollmentSource(row.source or EnrollmentSource.REQUEST_APPROVAL.value),
            progress=row.progress or 0,
            enrolled_at=enrolled_at,
            last_accessed=ensure_utc_aware(row.last_accessed) or enrolled_at,
        )


@dataclass
class AccessPair:
    """Everything stored for one (learner, content unit) pair.

    ``request`` and ``enrollment`` are mutually exclusive; a pair carrying both
    is an integrity fault and is reported, never repaired.
    """

    learner_id: UUID
    content_unit_id: UUID
    request: AccessRequest | None = None
    enrollment: Enrollment | None = None

    @property
    def is_faulty(self) -> bool:
        return self.request is not None and self.enrollment is not None

    @classmethod
    def from_row(cls, row: "Row") -> "AccessPair":
        """Split a ``content_access`` row into its request and enrollment."""
        return cls(
            learner_id=row.learner_id,
            content_unit_id=row.content_unit_id,
            request=AccessRequest.from_row(row) if row.request_id else None,
            enrollment=Enrollment.from_row(row) if row.enrolled_at else None,
        )


@dataclass
class Resolution:
    """Result of a terminal operation on a pending request."""

    request: AccessRequest
    outcome: RequestOutcome
    resolved_by: UUID
    enrollment: Enrollment | None = None
    resolved_at: datetime = field(default_factory=lambda: datetime.now(UTC))
