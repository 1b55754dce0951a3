"""Tests for orphan detection."""

from uuid import uuid4

import pytest

from coursegate.access.models import AccessRequest, Enrollment
from coursegate.catalog.models import ContentKind


@pytest.fixture
def live_request(catalog, learner) -> AccessRequest:
    unit = catalog.add_unit()
    return AccessRequest(learner.id, unit.id, ContentKind.COURSE)


@pytest.mark.asyncio
async def test_live_references(orphans, live_request) -> None:
    assert await orphans.is_orphaned(live_request) is False


@pytest.mark.asyncio
async def test_learner_hard_deleted(orphans, catalog, live_request) -> None:
    del catalog.learners[live_request.learner_id]
    assert await orphans.is_orphaned(live_request) is True


@pytest.mark.asyncio
async def test_content_hard_deleted(orphans, catalog, live_request) -> None:
    del catalog.units[live_request.content_unit_id]
    assert await orphans.is_orphaned(live_request) is True


@pytest.mark.asyncio
async def test_deactivated_learner_is_not_orphaned(orphans, catalog) -> None:
    learner = catalog.add_learner(is_active=False)
    unit = catalog.add_unit()
    request = AccessRequest(learner.id, unit.id, ContentKind.COURSE)

    assert await orphans.is_orphaned(request) is False


@pytest.mark.asyncio
async def test_recomputed_on_every_call(orphans, catalog, live_request) -> None:
    assert await orphans.is_orphaned(live_request) is False
    del catalog.learners[live_request.learner_id]
    assert await orphans.is_orphaned(live_request) is True
    catalog.add_learner(live_request.learner_id)
    assert await orphans.is_orphaned(live_request) is False


@pytest.mark.asyncio
async def test_both_missing(orphans) -> None:
    request = AccessRequest(uuid4(), uuid4(), ContentKind.QBANK)
    assert await orphans.is_orphaned(request) is True


@pytest.mark.asyncio
async def test_deleted_unit_still_cached(orphans, catalog, live_request) -> None:
    unit = catalog.units.pop(live_request.content_unit_id)
    catalog.cache[unit.id] = unit

    assert await orphans.is_orphaned(live_request) is True


@pytest.mark.asyncio
async def test_resolve_returns_references(orphans, catalog, live_request) -> None:
    refs = await orphans.resolve_request(live_request)

    assert refs.learner == catalog.learners[live_request.learner_id]
    assert refs.content_unit == catalog.units[live_request.content_unit_id]
    assert refs.missing is None

    del catalog.units[live_request.content_unit_id]
    refs = await orphans.resolve_request(live_request)

    assert refs.content_unit is None
    assert refs.missing == "content_unit"
    assert refs.learner is not None


class TestEnrollments:
    @pytest.mark.asyncio
    async def test_live(self, orphans, catalog, learner) -> None:
        unit = catalog.add_unit(is_public=True)
        enrollment = Enrollment(learner.id, unit.id, ContentKind.COURSE)

        assert await orphans.is_enrollment_orphaned(enrollment) is False

    @pytest.mark.asyncio
    async def test_learner_gone(self, orphans, catalog, learner) -> None:
        unit = catalog.add_unit()
        enrollment = Enrollment(learner.id, unit.id, ContentKind.COURSE)
        del catalog.learners[learner.id]

        assert await orphans.is_enrollment_orphaned(enrollment) is True

    @pytest.mark.asyncio
    async def test_content_gone(self, orphans, learner) -> None:
        enrollment = Enrollment(learner.id, uuid4(), ContentKind.QBANK)

        assert await orphans.is_enrollment_orphaned(enrollment) is True
