"""Repository for DirectoryLink lookups."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.directory_link import DirectoryLink


class DirectoryLinkRepository:
    """Stateless repository for DirectoryLink table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, link_id: uuid.UUID) -> DirectoryLink | None:
        """Fetch a directory link by primary key.

        Args:
            db: Async database session.
            link_id: UUID primary key.

        Returns:
            DirectoryLink if found, None otherwise.
        """
        return await db.get(DirectoryLink, link_id)
