"""Shared fixtures.

The in-memory stores below follow the same contract as the Cassandra ones:
every conditional write checks and applies in one step with no await in
between, the way a lightweight transaction does on a single partition.
Each method yields to the event loop first so ``asyncio.gather`` can
interleave concurrent callers.
"""

import asyncio
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from coursegate.access.models import AccessPair, AccessRequest, Enrollment
from coursegate.access.integrity import IntegrityScanner
from coursegate.access.orphans import OrphanDetector
from coursegate.access.resolver import RequestResolver
from coursegate.access.service import AccessQueryService
from coursegate.catalog.models import ContentKind, ContentStatus, ContentUnit, Learner
from coursegate.config import get_settings


PairKey = tuple[UUID, UUID]


# ==============================================================================
# In-memory stores
# ==============================================================================


class InMemoryAccessDB:
    """Pair rows plus the request lookup, as plain dicts."""

    def __init__(self) -> None:
        self.requests: dict[PairKey, AccessRequest] = {}
        self.enrollments: dict[PairKey, Enrollment] = {}
        self.lookup: dict[UUID, AccessRequest] = {}

    def pair(self, key: PairKey) -> AccessPair | None:
        request = self.requests.get(key)
        enrollment = self.enrollments.get(key)
        if request is None and enrollment is None:
            return None
        return AccessPair(
            learner_id=key[0],
            content_unit_id=key[1],
            request=request,
            enrollment=enrollment,
        )

    def delete_row(self, key: PairKey) -> None:
        self.requests.pop(key, None)
        self.enrollments.pop(key, None)


class _InMemoryTable:
    def __init__(self, db: InMemoryAccessDB) -> None:
        self.db = db

    async def get_pair(self, learner_id: UUID, content_unit_id: UUID) -> AccessPair | None:
        await asyncio.sleep(0)
        return self.db.pair((learner_id, content_unit_id))

    async def scan_pairs(self) -> list[AccessPair]:
        await asyncio.sleep(0)
        keys = list(self.db.requests) + [k for k in self.db.enrollments if k not in self.db.requests]
        return [self.db.pair(key) for key in keys]


class InMemoryRequestStore(_InMemoryTable):
    async def insert(self, request: AccessRequest) -> tuple[bool, AccessPair | None]:
        await asyncio.sleep(0)
        key = (request.learner_id, request.content_unit_id)
        current = self.db.pair(key)
        if current is not None:
            return False, current
        self.db.requests[key] = request
        return True, None

    async def delete_if_pending(self, request: AccessRequest) -> bool:
        await asyncio.sleep(0)
        key = (request.learner_id, request.content_unit_id)
        current = self.db.requests.get(key)
        if current is None or current.request_id != request.request_id:
            return False
        self.db.delete_row(key)
        return True

    async def index(self, request: AccessRequest) -> None:
        await asyncio.sleep(0)
        self.db.lookup[request.request_id] = request

    async def unindex(self, request_id: UUID) -> None:
        await asyncio.sleep(0)
        self.db.lookup.pop(request_id, None)

    async def find(self, request_id: UUID) -> AccessRequest | None:
        await asyncio.sleep(0)
        return self.db.lookup.get(request_id)

    async def list_pending(
        self, kind: ContentKind | None = None, limit: int = 500
    ) -> list[AccessRequest]:
        await asyncio.sleep(0)
        rows = [r for r in self.db.lookup.values() if kind is None or r.content_kind == kind]
        rows.sort(key=lambda r: r.requested_at, reverse=True)
        return rows[:limit]

    async def scan_lookup(self) -> list[AccessRequest]:
        await asyncio.sleep(0)
        return list(self.db.lookup.values())

    async def list_for_learner(self, learner_id: UUID) -> list[AccessRequest]:
        await asyncio.sleep(0)
        rows = [r for r in self.db.lookup.values() if r.learner_id == learner_id]
        rows.sort(key=lambda r: r.requested_at, reverse=True)
        return rows


class InMemoryEnrollmentStore(_InMemoryTable):
    async def insert(self, enrollment: Enrollment) -> tuple[bool, AccessPair | None]:
        await asyncio.sleep(0)
        key = (enrollment.learner_id, enrollment.content_unit_id)
        current = self.db.pair(key)
        if current is not None:
            return False, current
        self.db.enrollments[key] = enrollment
        return True, None

    async def grant_from_request(
        self, request: AccessRequest, enrollment: Enrollment
    ) -> bool:
        await asyncio.sleep(0)
        key = (request.learner_id, request.content_unit_id)
        current = self.db.requests.get(key)
        if current is None or current.request_id != request.request_id:
            return False
        del self.db.requests[key]
        self.db.enrollments[key] = enrollment
        return True

    async def delete_if_unchanged(self, enrollment: Enrollment) -> bool:
        await asyncio.sleep(0)
        key = (enrollment.learner_id, enrollment.content_unit_id)
        current = self.db.enrollments.get(key)
        if current is None or current.enrolled_at != enrollment.enrolled_at:
            return False
        self.db.delete_row(key)
        return True


class InMemoryCatalog:
    """Content units and learners that tests can add and hard-delete."""

    def __init__(self) -> None:
        self.units: dict[UUID, ContentUnit] = {}
        self.learners: dict[UUID, Learner] = {}
        # Descriptors a cache would still serve after the unit changed
        self.cache: dict[UUID, ContentUnit] = {}

    def add_unit(
        self,
        kind: ContentKind = ContentKind.COURSE,
        status: ContentStatus = ContentStatus.PUBLISHED,
        is_public: bool = False,
        is_requestable: bool = True,
        is_default_unlocked: bool = False,
    ) -> ContentUnit:
        unit = ContentUnit(
            id=uuid4(),
            kind=kind,
            status=status,
            is_public=is_public,
            is_requestable=is_requestable,
            is_default_unlocked=is_default_unlocked,
            title="Pharmacology I",
        )
        self.units[unit.id] = unit
        return unit

    def add_learner(
        self,
        learner_id: UUID | None = None,
        is_active: bool = True,
        name: str = "Ana Souza",
    ) -> Learner:
        learner_id = learner_id or uuid4()
        learner = Learner(
            id=learner_id,
            is_active=is_active,
            name=name,
            email=f"{learner_id.hex[:8]}@example.com",
        )
        self.learners[learner.id] = learner
        return learner

    async def get_content_unit(
        self, content_unit_id: UUID, use_cache: bool = True
    ) -> ContentUnit | None:
        await asyncio.sleep(0)
        if use_cache and content_unit_id in self.cache:
            return self.cache[content_unit_id]
        return self.units.get(content_unit_id)

    async def get_learner(self, learner_id: UUID) -> Learner | None:
        await asyncio.sleep(0)
        return self.learners.get(learner_id)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def db() -> InMemoryAccessDB:
    return InMemoryAccessDB()


@pytest.fixture
def request_store(db: InMemoryAccessDB) -> InMemoryRequestStore:
    return InMemoryRequestStore(db)


@pytest.fixture
def enrollment_store(db: InMemoryAccessDB) -> InMemoryEnrollmentStore:
    return InMemoryEnrollmentStore(db)


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog()


@pytest.fixture
def orphans(catalog: InMemoryCatalog) -> OrphanDetector:
    return OrphanDetector(catalog)


@pytest.fixture
def resolver(
    request_store: InMemoryRequestStore,
    enrollment_store: InMemoryEnrollmentStore,
    catalog: InMemoryCatalog,
    orphans: OrphanDetector,
) -> RequestResolver:
    return RequestResolver(
        requests=request_store,
        enrollments=enrollment_store,
        catalog=catalog,
        orphans=orphans,
        reason_max_length=100,
    )


@pytest.fixture
def query_service(
    request_store: InMemoryRequestStore,
    catalog: InMemoryCatalog,
    orphans: OrphanDetector,
) -> AccessQueryService:
    return AccessQueryService(requests=request_store, catalog=catalog, orphans=orphans)


@pytest.fixture
def integrity(
    request_store: InMemoryRequestStore,
    enrollment_store: InMemoryEnrollmentStore,
    orphans: OrphanDetector,
) -> IntegrityScanner:
    return IntegrityScanner(
        requests=request_store, enrollments=enrollment_store, orphans=orphans
    )


@pytest.fixture
def learner(catalog: InMemoryCatalog) -> Learner:
    return catalog.add_learner()


@pytest.fixture
def admin_id() -> UUID:
    return uuid4()


# ==============================================================================
# HTTP
# ==============================================================================


def make_token(user_id: UUID, role: str = "student", token_type: str = "access") -> str:
    """Sign a token the way the identity service does."""
    settings = get_settings()
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "email": f"{user_id.hex[:8]}@example.com",
        "role": role,
        "type": token_type,
        "iat": now,
        "exp": now + timedelta(minutes=15),
    }
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


@pytest.fixture
def auth_header():
    """Build an Authorization header for a user and role."""

    def _header(user_id: UUID, role: str = "student") -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}

    return _header


@pytest.fixture
def client(
    resolver: RequestResolver,
    query_service: AccessQueryService,
    integrity: IntegrityScanner,
) -> Iterator[TestClient]:
    """Test client wired to the in-memory stores (lifespan not run)."""
    from coursegate.access.dependencies import (
        get_integrity_scanner,
        get_query_service,
        get_resolver,
    )
    from coursegate.main import app

    app.dependency_overrides[get_resolver] = lambda: resolver
    app.dependency_overrides[get_query_service] = lambda: query_service
    app.dependency_overrides[get_integrity_scanner] = lambda: integrity
    yield TestClient(app)
    app.dependency_overrides.clear()
