"""Project model - the business/contact/SEO record a bookmarklet fills forms from.

Nested groups (address, SEO metadata, social handles, article and classified
sub-records) are stored as JSONB documents; the bookmarklet reads them as a
whole and never queries inside them.
"""

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.user import User

_EMPTY_OBJECT = text("'{}'::jsonb")
_EMPTY_ARRAY = text("'[]'::jsonb")


class Project(Base, TimestampMixin):
    """A user's project (website/business) used to fill directory forms.

    Attributes:
        id: UUID primary key.
        user_id: Owner.
        project_name: Display name.
        title: Listing title.
        website_url: Website URL.
        email: Contact email.
        company_name: Registered company name.
        phone: Contact phone.
        whatsapp: WhatsApp number.
        business_description: Free-text description.
        category: Business category.
        keywords: Project keyword list.
        business_hours: Opening hours text.
        established_year: Year founded.
        logo_image_url: Logo URL.
        address: {building, address_line1..3, district, city, state, country, pincode}.
        seo_metadata: {meta_title, meta_description, keywords, target_keywords,
            sitemap_url, robots_url}.
        social: {facebook, twitter, instagram, linkedin, youtube}.
        article_submission: {article_title, article_content, author_name,
            author_bio, tags}.
        classified: {product_name, price, condition, product_image_url}.
        custom_fields: [{key, value}] pairs declared fields can resolve to.
    """

    __tablename__ = "projects"

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
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    website_url: Mapped[str | None] = mapped_column(Text(), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    whatsapp: Mapped[str | None] = mapped_column(String(50), nullable=True)
    business_description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    keywords: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, server_default=_EMPTY_ARRAY, default=list
    )
    business_hours: Mapped[str | None] = mapped_column(String(255), nullable=True)
    established_year: Mapped[str | None] = mapped_column(String(10), nullable=True)
    logo_image_url: Mapped[str | None] = mapped_column(Text(), nullable=True)
    address: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, server_default=_EMPTY_OBJECT, default=dict
    )
    seo_metadata: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, server_default=_EMPTY_OBJECT, default=dict
    )
    social: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, server_default=_EMPTY_OBJECT, default=dict
    )
    article_submission: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, server_default=_EMPTY_OBJECT, default=dict
    )
    classified: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, server_default=_EMPTY_OBJECT, default=dict
    )
    custom_fields: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, server_default=_EMPTY_ARRAY, default=list
    )

    user: Mapped["User"] = relationship("User", back_populates="projects")
