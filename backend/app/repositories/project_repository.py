"""Repository for Project lookups."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.project import Project


class ProjectRepository:
    """Stateless repository for Project table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, project_id: uuid.UUID) -> Project | None:
        """Fetch a project by primary key.

        Args:
            db: Async database session.
            project_id: UUID primary key.

        Returns:
            Project if found, None otherwise.
        """
        return await db.get(Project, project_id)

    @staticmethod
    async def get_for_user(
        db: AsyncSession,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Project | None:
        """Fetch a project only if it belongs to the user.

        Args:
            db: Async database session.
            project_id: UUID primary key.
            user_id: Expected owner.

        Returns:
            Project if found and owned by user_id, None otherwise.
        """
        stmt = select(Project).where(
            Project.id == project_id,
            Project.user_id == user_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
