"""Read-only views of the content catalog and identity tables.

The access engine never writes these tables; they belong to the catalog and
identity services. The CQL below documents the columns the engine reads and
lets a fresh development keyspace be bootstrapped.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID


if TYPE_CHECKING:
    from cassandra.cluster import Row


class ContentKind(str, Enum):
    """Kind of gated content."""

    COURSE = "course"
    QBANK = "qbank"


class ContentStatus(str, Enum):
    """Catalog publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

    @classmethod
    def parse(cls, value: str | None) -> "ContentStatus":
        """Read a status as the catalog stores it.

        Case-insensitive; ``active`` is the legacy spelling of published.
        Anything unrecognised is treated as a draft, so it stays locked.
        """
        normalized = (value or "").strip().lower()
        if normalized == "active":
            return cls.PUBLISHED
        try:
            return cls(normalized)
        except ValueError:
            return cls.DRAFT



# ==============================================================================
# CQL Table Definitions
# ==============================================================================

USERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    email TEXT,
    name TEXT,
    role TEXT,
    is_active BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

CONTENT_UNITS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.content_units (
    id UUID PRIMARY KEY,
    kind TEXT,
    title TEXT,
    status TEXT,
    is_public BOOLEAN,
    is_requestable BOOLEAN,
    is_default_unlocked BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

CATALOG_TABLES_CQL = [
    USERS_TABLE_CQL,
    CONTENT_UNITS_TABLE_CQL,
]


# ==============================================================================
# Entities
# ==============================================================================


@dataclass(frozen=True)
class ContentUnit:
    """Access flags of a course or question bank, as the gate sees them."""

    id: UUID
    kind: ContentKind
    status: ContentStatus
    is_public: bool = False
    is_requestable: bool = False
    is_default_unlocked: bool = False
    title: str = ""

    @property
    def is_published(self) -> bool:
        return self.status == ContentStatus.PUBLISHED

    @classmethod
    def from_row(cls, row: "Row") -> "ContentUnit":
        """Create instance from Cassandra row."""
        return cls(
            id=row.id,
            kind=ContentKind(row.kind),
            status=ContentStatus.parse(row.status),
            is_public=bool(row.is_public),
            is_requestable=bool(row.is_requestable),
            is_default_unlocked=bool(row.is_default_unlocked),
            title=row.title or "",
        )

    def to_cache(self) -> dict[str, str]:
        """Flatten to a Redis hash."""
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "status": self.status.value,
            "is_public": "1" if self.is_public else "0",
            "is_requestable": "1" if self.is_requestable else "0",
            "is_default_unlocked": "1" if self.is_default_unlocked else "0",
            "title": self.title,
        }

    @classmethod
    def from_cache(cls, data: dict[str, str]) -> "ContentUnit":
        """Rebuild from a Redis hash written by ``to_cache``."""
        return cls(
            id=UUID(data["id"]),
            kind=ContentKind(data["kind"]),
            status=ContentStatus.parse(data["status"]),
            is_public=data.get("is_public") == "1",
            is_requestable=data.get("is_requestable") == "1",
            is_default_unlocked=data.get("is_default_unlocked") == "1",
            title=data.get("title", ""),
        )


@dataclass(frozen=True)
class Learner:
    """Identity reference for a learner."""

    id: UUID
    is_active: bool = True
    name: str = ""
    email: str = ""

    @classmethod
    def from_row(cls, row: "Row") -> "Learner":
        """Create instance from Cassandra row."""
        return cls(
            id=row.id,
            is_active=row.is_active is not False,
            name=row.name or "",
            email=row.email or "",
        )
