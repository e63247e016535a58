"""Generation marker repository: durable 'generation attempted' keys."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from procflow.application.dtos.workflow import WorkflowOwner
from procflow.infrastructure.persistence.models.workflow import WorkflowGenerationMarker
from procflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class GenerationMarkerRepository:
    """Generation marker repository. Implements IGenerationMarkerRepository."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def has_attempt(self, owner: WorkflowOwner, version: int) -> bool:
        result = await self.db.execute(
            select(WorkflowGenerationMarker.id).where(
                WorkflowGenerationMarker.owner_kind == owner.kind.value,
                WorkflowGenerationMarker.owner_id == owner.id,
                WorkflowGenerationMarker.version == version,
            )
        )
        return result.scalar_one_or_none() is not None

    async def record_attempt(self, owner: WorkflowOwner, version: int) -> bool:
        """Insert the marker in a savepoint; a unique violation means it already existed."""
        try:
            async with self.db.begin_nested():
                self.db.add(
                    WorkflowGenerationMarker(
                        owner_kind=owner.kind.value, owner_id=owner.id, version=version
                    )
                )
        except IntegrityError:
            logger.info(
                "Generation marker %s:%s@%d already recorded",
                owner.kind.value,
                owner.id,
                version,
            )
            return False
        return True
