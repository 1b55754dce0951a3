"""Reconcile the request lookup table with the pair rows.

The pair row is authoritative. A crash between the conditional write and the
lookup write leaves the lookup missing a request (never listed) or holding
one that was already resolved (listed until someone tries to resolve it).

Safe to run against live traffic: the pair row is read again before every
lookup write, so a request created or resolved after the scan is left as is.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from coursegate.core.logging import get_logger

from .models import AccessPair, AccessRequest
from .store import RequestStore


logger = get_logger(__name__)


@dataclass
class LookupRepairReport:
    indexed: int = 0
    unindexed: int = 0
    integrity_faults: list[AccessPair] = field(default_factory=list)


async def rebuild_request_lookup(
    requests: RequestStore,
    pairs: Iterable[AccessPair],
    lookup: Iterable[AccessRequest],
) -> LookupRepairReport:
    """Index every pending request and drop lookup rows with no pending pair.

    Pairs holding both a request and an enrollment are reported and left
    untouched, lookup rows included.
    """
    report = LookupRepairReport()
    pending: dict[UUID, AccessRequest] = {}
    faulty: set[UUID] = set()

    for pair in pairs:
        if pair.request is None:
            continue
        if pair.is_faulty:
            logger.error(
                "access_integrity_fault",
                learner_id=str(pair.learner_id),
                content_unit_id=str(pair.content_unit_id),
                request_id=str(pair.request.request_id),
            )
            report.integrity_faults.append(pair)
            faulty.add(pair.request.request_id)
            continue
        pending[pair.request.request_id] = pair.request

    indexed_ids = set()
    for row in lookup:
        indexed_ids.add(row.request_id)
        if row.request_id in pending or row.request_id in faulty:
            continue
        # The pair snapshot may predate this request
        if await _pair_holding(requests, row) is not None:
            continue
        await requests.unindex(row.request_id)
        report.unindexed += 1

    for request_id, request in pending.items():
        if request_id in indexed_ids:
            continue
        pair = await _pair_holding(requests, request)
        if pair is None or pair.is_faulty:
            continue
        await requests.index(request)
        report.indexed += 1

    logger.info(
        "request_lookup_rebuilt",
        indexed=report.indexed,
        unindexed=report.unindexed,
        integrity_faults=len(report.integrity_faults),
    )
    return report


async def _pair_holding(
    requests: RequestStore, request: AccessRequest
) -> AccessPair | None:
    """Re-read the pair row and return it if it still holds ``request``."""
    pair = await requests.get_pair(request.learner_id, request.content_unit_id)
    if pair and pair.request and pair.request.request_id == request.request_id:
        return pair
    return None
