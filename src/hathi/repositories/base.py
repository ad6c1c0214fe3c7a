"""
Base Repository

Shared plumbing for the store components: every public operation opens its
own scoped session from an injected session factory, is timed, and has
infrastructure errors wrapped with the operation label.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hathi.core.exceptions import StoreFailureError
from hathi.core.logging import log_duration
from hathi.models.base import Base

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository bound to one model and a session factory.

    Callers never see sessions: each operation opens one through
    ``_operation`` and returns plain DTOs.

    Usage:
        class NoteRepository(BaseRepository[Note]):
            def __init__(self, session_factory):
                super().__init__(Note, session_factory)
    """

    def __init__(
        self,
        model: type[ModelType],
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.model = model
        self.session_factory = session_factory

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[AsyncSession]:
        """
        Open a scoped session for one store operation.

        Domain errors raised inside the block propagate unchanged;
        ``SQLAlchemyError`` is re-raised as ``StoreFailureError(name)``.
        Uncommitted work is rolled back when the session closes.
        """
        async with log_duration(name):
            async with self.session_factory() as session:
                try:
                    yield session
                except SQLAlchemyError as e:
                    logger.exception("Store failure during %s", name)
                    raise StoreFailureError(name, e) from e

    async def _get_by_id(self, session: AsyncSession, id: str) -> ModelType | None:
        """Get a record by primary key. Returns None if not found."""
        result = await session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalars().first()
