"""Access classification.

Pure function over a content unit's flags and the learner's stored facts.
Same inputs always give the same state, so clients may re-derive it locally.
"""

from uuid import UUID

from coursegate.catalog.models import ContentUnit

from .models import AccessState


def classify(
    learner_id: UUID,
    content_unit: ContentUnit,
    has_enrollment: bool,
    has_pending_request: bool,
) -> AccessState:
    """Classify a learner's relationship to a content unit.

    First match wins:
    1. not published -> LOCKED
    2. default unlocked -> ENROLLED, regardless of anything else
    3. enrollment -> ENROLLED
    4. pending request -> REQUESTED
    5. public -> AVAILABLE_DIRECT
    6. requestable -> AVAILABLE_REQUEST
    7. otherwise -> LOCKED

    ``learner_id`` is part of the contract but does not influence the result.
    """
    if not content_unit.is_published:
        return AccessState.LOCKED
    if content_unit.is_default_unlocked:
        return AccessState.ENROLLED
    if has_enrollment:
        return AccessState.ENROLLED
    if has_pending_request:
        return AccessState.REQUESTED
    if content_unit.is_public:
        return AccessState.AVAILABLE_DIRECT
    if content_unit.is_requestable:
        return AccessState.AVAILABLE_REQUEST
    return AccessState.LOCKED
