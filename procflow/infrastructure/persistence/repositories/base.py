"""Base repository: primary-key reads and conditional (compare-and-set) updates."""

from collections.abc import Iterator
from enum import Enum
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.infrastructure.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


def plain_values(values: dict[str, Any]) -> dict[str, Any]:
    """Replace enum members with their stored string values."""
    return {k: v.value if isinstance(v, Enum) else v for k, v in values.items()}


class BaseRepository(Generic[ModelType]):
    """Base repository with _get and _compare_and_set.

    compare_and_set is the only write path for shared mutable rows: one
    UPDATE ... WHERE id = :id AND <expected columns> RETURNING *, so zero
    matched rows means another writer got there first.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]) -> None:
        self.db = db
        self.model = model

    async def _get(self, entity_id: str) -> ModelType | None:
        """Return a single record by primary key, or None."""
        model: Any = self.model
        result = await self.db.execute(select(self.model).where(model.id == entity_id))
        return result.scalar_one_or_none()

    def _conditions(self, expected: dict[str, Any]) -> Iterator[ColumnElement[bool]]:
        for column, value in plain_values(expected).items():
            attr = getattr(self.model, column)
            yield attr.is_(None) if value is None else attr == value

    async def _compare_and_set(
        self, entity_id: str, expected: dict[str, Any], values: dict[str, Any]
    ) -> ModelType | None:
        """Apply values when every expected column holds; return the updated row or None."""
        model: Any = self.model
        stmt = (
            update(self.model)
            .where(model.id == entity_id, *self._conditions(expected))
            .values(**plain_values(values))
            .returning(self.model)
            .execution_options(populate_existing=True, synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
