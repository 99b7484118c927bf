"""User model - account owner of projects and submissions.

Only the columns the bookmarklet pipeline reads are mapped here: identity
and the subscription plan that sets bookmarklet usage and submission quotas.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.project import Project

_DEFAULT_UUID = text("gen_random_uuid()")


class User(Base, TimestampMixin):
    """User account.

    Attributes:
        id: UUID primary key.
        email: Unique email address.
        name: Display name.
        plan: Subscription plan (free, pro, business, enterprise).
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "plan IN ('free', 'pro', 'business', 'enterprise')",
            name="ck_users_plan",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    plan: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="free",
        default="free",
    )

    projects: Mapped[list["Project"]] = relationship(
        "Project",
        back_populates="user",
        cascade="all, delete-orphan",
    )
