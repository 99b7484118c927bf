"""Repository for Submission operations.

Records bookmarklet form fills and counts successful submissions against
the owner's plan quota.
"""

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.submission import Submission


class SubmissionRepository:
    """Stateless repository for Submission table operations.

    All methods are static — no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        project_id: uuid.UUID,
        link_id: uuid.UUID,
        directory: str,
        category: str,
        status: str = "success",
        page_url: str | None = None,
        page_title: str | None = None,
        page_description: str | None = None,
        notes: str | None = None,
    ) -> Submission:
        """Create a new submission record.

        Args:
            db: Async database session.
            user_id: Owner of the token that produced the submission.
            project_id: Project whose data filled the form.
            link_id: Directory link.
            directory: Directory name at submission time.
            category: Directory category at submission time.
            status: Submission status.
            page_url: Filled page URL.
            page_title: Filled page title.
            page_description: Filled page meta description.
            notes: Free-text notes (usage counters).

        Returns:
            Created Submission with database-generated fields.
        """
        submission = Submission(
            user_id=user_id,
            project_id=project_id,
            link_id=link_id,
            directory=directory,
            category=category,
            status=status,
            page_url=page_url,
            page_title=page_title,
            page_description=page_description,
            notes=notes,
        )
        db.add(submission)
        await db.flush()
        await db.refresh(submission)
        return submission

    @staticmethod
    async def count_successful(db: AsyncSession, user_id: uuid.UUID) -> int:
        """Count a user's successful submissions.

        Args:
            db: Async database session.
            user_id: Owner.

        Returns:
            Number of submissions with status 'success'.
        """
        stmt = (
            select(func.count())
            .select_from(Submission)
            .where(Submission.user_id == user_id, Submission.status == "success")
        )
        result = await db.execute(stmt)
        return result.scalar_one()
