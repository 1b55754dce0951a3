"""Tests for rebuilding the request lookup from pair rows."""

from uuid import uuid4

import pytest

from coursegate.access.lookup_repair import rebuild_request_lookup
from coursegate.access.models import AccessRequest, Enrollment
from coursegate.catalog.models import ContentKind


def new_request() -> AccessRequest:
    return AccessRequest(uuid4(), uuid4(), ContentKind.COURSE)


def pairs_of(db):
    return [p for p in (db.pair(key) for key in set(db.requests) | set(db.enrollments)) if p]


@pytest.mark.asyncio
async def test_indexes_missing_requests(db, request_store) -> None:
    request = new_request()
    db.requests[(request.learner_id, request.content_unit_id)] = request

    report = await rebuild_request_lookup(request_store, pairs_of(db), lookup=[])

    assert report.indexed == 1
    assert await request_store.find(request.request_id) == request


@pytest.mark.asyncio
async def test_drops_resolved_lookup_rows(db, request_store) -> None:
    stale = new_request()
    db.lookup[stale.request_id] = stale

    report = await rebuild_request_lookup(
        request_store, pairs_of(db), lookup=list(db.lookup.values())
    )

    assert report.unindexed == 1
    assert db.lookup == {}


@pytest.mark.asyncio
async def test_consistent_rows_untouched(db, request_store) -> None:
    request = new_request()
    db.requests[(request.learner_id, request.content_unit_id)] = request
    db.lookup[request.request_id] = request

    report = await rebuild_request_lookup(
        request_store, pairs_of(db), lookup=list(db.lookup.values())
    )

    assert (report.indexed, report.unindexed) == (0, 0)


@pytest.mark.asyncio
async def test_faulty_pair_reported_and_left_alone(db, request_store) -> None:
    request = new_request()
    key = (request.learner_id, request.content_unit_id)
    db.requests[key] = request
    db.enrollments[key] = Enrollment(*key, ContentKind.COURSE)
    db.lookup[request.request_id] = request

    report = await rebuild_request_lookup(
        request_store, pairs_of(db), lookup=list(db.lookup.values())
    )

    assert len(report.integrity_faults) == 1
    assert report.unindexed == 0
    assert request.request_id in db.lookup


@pytest.mark.asyncio
async def test_request_created_after_pair_scan_kept(
    db, request_store, resolver, catalog, learner
) -> None:
    pairs = pairs_of(db)
    # Submitted between the pair scan and the lookup scan
    request = await resolver.create(learner.id, catalog.add_unit().id, ContentKind.COURSE)

    report = await rebuild_request_lookup(
        request_store, pairs, lookup=list(db.lookup.values())
    )

    assert report.unindexed == 0
    assert await request_store.find(request.request_id) == request


@pytest.mark.asyncio
async def test_request_resolved_after_pair_scan_not_indexed(
    db, request_store, resolver, catalog, learner, admin_id
) -> None:
    request = await resolver.create(learner.id, catalog.add_unit().id, ContentKind.COURSE)
    pairs = pairs_of(db)
    await resolver.approve(request.request_id, admin_id)

    report = await rebuild_request_lookup(request_store, pairs, lookup=[])

    assert report.indexed == 0
    assert request.request_id not in db.lookup
