"""Tests for the read side: gate state and the pending listing."""

from uuid import uuid4

import pytest

from coursegate.access.errors import NotFoundError
from coursegate.access.models import AccessRequest, AccessState, Enrollment
from coursegate.catalog.models import ContentKind


class TestGetAccess:
    @pytest.mark.asyncio
    async def test_available_request(self, query_service, catalog, learner) -> None:
        unit = catalog.add_unit(is_requestable=True)

        access = await query_service.get_access(learner.id, ContentKind.COURSE, unit.id)

        assert access.state == AccessState.AVAILABLE_REQUEST
        assert access.request is None
        assert access.enrollment is None

    @pytest.mark.asyncio
    async def test_requested(self, query_service, resolver, catalog, learner) -> None:
        unit = catalog.add_unit()
        request = await resolver.create(learner.id, unit.id, ContentKind.COURSE)

        access = await query_service.get_access(learner.id, ContentKind.COURSE, unit.id)

        assert access.state == AccessState.REQUESTED
        assert access.request.request_id == request.request_id

    @pytest.mark.asyncio
    async def test_default_unlocked_without_enrollment(
        self, query_service, catalog, learner
    ) -> None:
        unit = catalog.add_unit(is_default_unlocked=True)

        access = await query_service.get_access(learner.id, ContentKind.COURSE, unit.id)

        assert access.state == AccessState.ENROLLED
        assert access.enrollment is None

    @pytest.mark.asyncio
    async def test_unknown_unit(self, query_service, learner) -> None:
        with pytest.raises(NotFoundError):
            await query_service.get_access(learner.id, ContentKind.COURSE, uuid4())

    @pytest.mark.asyncio
    async def test_wrong_kind_is_not_found(self, query_service, catalog, learner) -> None:
        unit = catalog.add_unit(kind=ContentKind.QBANK)
        with pytest.raises(NotFoundError):
            await query_service.get_access(learner.id, ContentKind.COURSE, unit.id)


class TestListPending:
    @pytest.mark.asyncio
    async def test_lists_with_orphan_flags(
        self, query_service, resolver, catalog, learner
    ) -> None:
        live_unit = catalog.add_unit()
        gone = catalog.add_learner()
        live = await resolver.create(learner.id, live_unit.id, ContentKind.COURSE)
        orphan = await resolver.create(gone.id, live_unit.id, ContentKind.COURSE)
        del catalog.learners[gone.id]

        listing = await query_service.list_pending()

        flags = {e.request.request_id: e.is_orphaned for e in listing.items}
        assert flags == {live.request_id: False, orphan.request_id: True}
        assert listing.integrity_faults == []

    @pytest.mark.asyncio
    async def test_entries_carry_resolved_references(
        self, query_service, resolver, catalog, learner
    ) -> None:
        kept = catalog.add_unit()
        removed = catalog.add_unit()
        await resolver.create(learner.id, kept.id, ContentKind.COURSE)
        await resolver.create(learner.id, removed.id, ContentKind.COURSE)
        del catalog.units[removed.id]

        listing = await query_service.list_pending()

        entries = {e.request.content_unit_id: e for e in listing.items}
        assert entries[kept.id].learner == learner
        assert entries[kept.id].content_unit == kept
        assert entries[removed.id].learner == learner
        assert entries[removed.id].content_unit is None
        assert entries[removed.id].is_orphaned is True

    @pytest.mark.asyncio
    async def test_filter_by_kind(self, query_service, resolver, catalog, learner) -> None:
        course = catalog.add_unit(kind=ContentKind.COURSE)
        qbank = catalog.add_unit(kind=ContentKind.QBANK)
        await resolver.create(learner.id, course.id, ContentKind.COURSE)
        qbank_request = await resolver.create(learner.id, qbank.id, ContentKind.QBANK)

        listing = await query_service.list_pending(ContentKind.QBANK)

        assert [e.request.request_id for e in listing.items] == [qbank_request.request_id]

    @pytest.mark.asyncio
    async def test_integrity_fault_is_reported_apart(
        self, query_service, resolver, catalog, learner, db
    ) -> None:
        unit = catalog.add_unit()
        request = await resolver.create(learner.id, unit.id, ContentKind.COURSE)
        db.enrollments[(learner.id, unit.id)] = Enrollment(
            learner.id, unit.id, ContentKind.COURSE
        )

        listing = await query_service.list_pending()

        assert listing.items == []
        assert len(listing.integrity_faults) == 1
        assert listing.integrity_faults[0].request.request_id == request.request_id

    @pytest.mark.asyncio
    async def test_stale_row_after_approval_is_not_listed(
        self, query_service, catalog, learner, db
    ) -> None:
        unit = catalog.add_unit()
        request = AccessRequest(learner.id, unit.id, ContentKind.COURSE)
        db.lookup[request.request_id] = request
        db.enrollments[(learner.id, unit.id)] = Enrollment(
            learner.id, unit.id, ContentKind.COURSE
        )

        listing = await query_service.list_pending()

        assert listing.items == []
        assert listing.integrity_faults == []

    @pytest.mark.asyncio
    async def test_stale_row_after_denial_is_still_listed(
        self, query_service, catalog, learner, db
    ) -> None:
        unit = catalog.add_unit()
        request = AccessRequest(learner.id, unit.id, ContentKind.COURSE)
        db.lookup[request.request_id] = request

        listing = await query_service.list_pending()

        assert [e.request.request_id for e in listing.items] == [request.request_id]


@pytest.mark.asyncio
async def test_list_for_learner(query_service, resolver, catalog, learner) -> None:
    first = await resolver.create(learner.id, catalog.add_unit().id, ContentKind.COURSE)
    other = catalog.add_learner()
    await resolver.create(other.id, catalog.add_unit().id, ContentKind.COURSE)

    mine = await query_service.list_for_learner(learner.id)

    assert [r.request_id for r in mine] == [first.request_id]
