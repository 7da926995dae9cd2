"""Base repository with shared query helpers."""

from typing import Any, Generic, Type, TypeVar

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from contactsync.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository bound to one model and one session."""

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """Initialize repository with model and session."""
        self.model = model
        self.session = session

    async def get_by_id(self, id: Any) -> ModelType | None:
        """Get entity by primary key."""
        return await self.session.get(self.model, id)

    def upsert_statement(self):
        """Dialect-specific INSERT that supports ``ON CONFLICT`` clauses.

        PostgreSQL in production, SQLite in tests. Both expose
        ``on_conflict_do_update`` / ``on_conflict_do_nothing`` and ``excluded``.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(self.model)
        if dialect == "sqlite":
            return sqlite_insert(self.model)
        raise NotImplementedError(f"Atomic upsert not supported for dialect {dialect!r}")
