"""Submission model - one recorded directory submission.

Written when the generated script reports a successful form fill.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, String, Text, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class Submission(Base):
    """A directory submission made through the bookmarklet.

    Attributes:
        id: UUID primary key.
        user_id: Owner (from the token, not from a session).
        project_id: Project whose data filled the form.
        link_id: Directory link the form belongs to.
        directory: Directory name at submission time.
        category: Directory category at submission time.
        status: success, pending, rejected, failed.
        page_url: URL of the filled page.
        page_title: Title of the filled page.
        page_description: Meta description of the filled page.
        notes: Usage counters at submission time.
        submitted_at: Submission timestamp.
    """

    __tablename__ = "submissions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('success', 'pending', 'rejected', 'failed')",
            name="ck_submissions_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    link_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("directory_links.id", ondelete="CASCADE"),
        nullable=False,
    )
    directory: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default="pending"
    )
    page_url: Mapped[str | None] = mapped_column(Text(), nullable=True)
    page_title: Mapped[str | None] = mapped_column(Text(), nullable=True)
    page_description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text(), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )
