"""Directory link model - a third-party submission site.

The requirement set (declared form fields) drives the declared-field phase
of the generated form filler.
"""

import uuid
from typing import Any

from sqlalchemy import String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class DirectoryLink(Base, TimestampMixin):
    """A directory/listing site users submit projects to.

    Attributes:
        id: UUID primary key.
        name: Directory display name.
        submission_url: Page hosting the submission form.
        category: Directory category (e.g., "Business Listing").
        required_fields: Ordered list of {name, type, required, placeholder}.
    """

    __tablename__ = "directory_links"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    submission_url: Mapped[str | None] = mapped_column(Text(), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    required_fields: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'[]'::jsonb"),
        default=list,
    )
