"""Content catalog and identity lookups consumed by the access engine.

- ContentKind: COURSE, QBANK
- ContentUnit: access flags of a course or question bank
- Learner: identity reference
- CatalogService: read-only lookups, descriptors cached in Redis
"""

from .models import ContentKind, ContentStatus, ContentUnit, Learner
from .service import CatalogService


__all__ = [
    "CatalogService",
    "ContentKind",
    "ContentStatus",
    "ContentUnit",
    "Learner",
]
