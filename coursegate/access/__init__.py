"""Access requests and enrollment.

- AccessState / classify: what a learner may do with a content unit
- RequestResolver: the only writer of requests and enrollments
- OrphanDetector: requests whose learner or content unit is gone
- AdminRequestView: admin read model with one confirmatory re-fetch

Services live in their own modules (``coursegate.access.resolver`` etc.) so
that importing the models does not pull in the database layer.
"""

from .errors import (
    AccessError,
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


__all__ = [
    "AccessError",
    "AccessPair",
    "AccessRequest",
    "AccessState",
    "AlreadyEnrolledError",
    "DuplicateRequestError",
    "Enrollment",
    "EnrollmentSource",
    "IntegrityFault",
    "NotFoundError",
    "NotOrphanedError",
    "NotRequestableError",
    "NotSelfEnrollableError",
    "OrphanedReferenceError",
    "RequestOutcome",
    "Resolution",
    "ValidationError",
    "classify",
]
