# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Lookups against the catalog and identity tables.

Descriptors are cached in Redis for a short TTL. Lookups made to decide
whether a reference still exists (orphan detection) always bypass the cache,
because a cached descriptor would keep answering for a unit that has been
hard-deleted.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from coursegate.core.logging import get_logger
from coursegate.core.redis import content_unit_cache_key

from .models import ContentUnit, Learner


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis


logger = get_logger(__name__)


class CatalogService:
    """Read-only access to content unit descriptors and learner references."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        redis: "Redis | None" = None,
        cache_ttl_seconds: int = 60,
    ):
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self.cache_ttl_seconds = cache_ttl_seconds
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_content_unit = self.session.prepare(f"""
            SELECT id, kind, title, status, is_public, is_requestable,
                   is_default_unlocked
            FROM {self.keyspace}.content_units
            WHERE id = ?
        """)

        self._get_learner = self.session.prepare(f"""
            SELECT id, email, name, is_active
            FROM {self.keyspace}.users
            WHERE id = ?
        """)

    async def get_content_unit(
        self, content_unit_id: UUID, use_cache: bool = True
    ) -> ContentUnit | None:
        """Load a content unit descriptor.

        Args:
            content_unit_id: Unit to load
            use_cache: Whether a cached descriptor may answer

        Returns:
            The descriptor, or None if the unit does not exist
        """
        cache_key = content_unit_cache_key(str(content_unit_id))
        if use_cache and self.redis:
            cached = await self.redis.hgetall(cache_key)
            if cached:
                return ContentUnit.from_cache(cached)

        result = await self.session.aexecute(self._get_content_unit, [content_unit_id])
        row = result[0] if result else None
        if not row:
            return None

        unit = ContentUnit.from_row(row)

        if self.redis:
            await self.redis.hset(cache_key, mapping=unit.to_cache())
            await self.redis.expire(cache_key, self.cache_ttl_seconds)

        return unit

    async def get_learner(self, learner_id: UUID) -> Learner | None:
        """Load a learner reference (never cached)."""
        result = await self.session.aexecute(self._get_learner, [learner_id])
        row = result[0] if result else None
        return Learner.from_row(row) if row else None

