"""Rebuild the access_requests lookup table from content_access.

Run after an outage that may have interrupted writes between a pair row and
its lookup row. Safe to re-run and safe while the API is serving. Pairs
with integrity faults are reported and left alone.

Usage:
    python -m scripts.rebuild_request_lookup
"""

import asyncio

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra_asyncio.cluster import Cluster

from coursegate.access.integrity import IntegrityScanner
from coursegate.access.orphans import OrphanDetector
from coursegate.access.store import EnrollmentStore, RequestStore
from coursegate.catalog.service import CatalogService
from coursegate.config.settings import get_settings


logger = structlog.get_logger(__name__)


async def run_rebuild() -> None:
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    logger.info(
        "lookup_rebuild_starting",
        keyspace=keyspace,
        hosts=settings.cassandra_hosts,
    )

    auth_provider = None
    if settings.cassandra_username and settings.cassandra_password:
        auth_provider = PlainTextAuthProvider(
            username=settings.cassandra_username,
            password=settings.cassandra_password,
        )

    cluster = Cluster(
        contact_points=settings.cassandra_hosts,
        port=settings.cassandra_port,
        auth_provider=auth_provider,
        protocol_version=settings.cassandra_protocol_version,
    )

    session = cluster.connect()
    session.set_keyspace(keyspace)

    try:
        scanner = IntegrityScanner(
            requests=RequestStore(session=session, keyspace=keyspace),
            enrollments=EnrollmentStore(session=session, keyspace=keyspace),
            orphans=OrphanDetector(CatalogService(session=session, keyspace=keyspace)),
        )
        report = await scanner.rebuild_lookup()
        logger.info(
            "lookup_rebuild_completed",
            indexed=report.indexed,
            unindexed=report.unindexed,
            integrity_faults=len(report.integrity_faults),
        )
    finally:
        session.shutdown()
        cluster.shutdown()


if __name__ == "__main__":
    asyncio.run(run_rebuild())
