"""Database connection module for the access engine."""

from coursegate.core.database.async_cassandra import (
    AsyncCassandraConnection,
    get_async_cassandra_session,
    init_async_cassandra,
    shutdown_async_cassandra,
)
from coursegate.core.database.lwt import lwt_result


__all__ = [
    "AsyncCassandraConnection",
    "get_async_cassandra_session",
    "init_async_cassandra",
    "lwt_result",
    "shutdown_async_cassandra",
]
