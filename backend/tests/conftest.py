import socket
import uuid
from collections.abc import AsyncGenerator, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, patch

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.models import DirectoryLink, Project, Submission, User
from app.models.base import Base

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Test user ID (consistent across tests for predictable auth)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
TEST_PROJECT_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")
TEST_LINK_ID = uuid.UUID("00000000-0000-0000-0000-000000000003")

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow


def create_test_jwt(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT for test authentication.

    Args:
        user_id: User UUID to encode in the sub claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# =============================================================================
# Model factories (transient instances, no database)
# =============================================================================


def make_user(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    plan: str = "pro",
) -> User:
    """Build a User without persisting it."""
    return User(id=user_id, email=f"{user_id.hex[:8]}@example.com", plan=plan)


def make_project(
    project_id: uuid.UUID = TEST_PROJECT_ID,
    *,
    user_id: uuid.UUID = TEST_USER_ID,
    **overrides: Any,
) -> Project:
    """Build a fully populated Project without persisting it."""
    values: dict[str, Any] = {
        "project_name": "Acme Widgets",
        "title": "Acme Widgets - Handmade Widgets",
        "website_url": "https://example.com",
        "email": "hello@example.com",
        "company_name": "Acme Widgets Ltd",
        "phone": "+1 555 0100",
        "whatsapp": "+1 555 0101",
        "business_description": "Handmade widgets since 1999.",
        "category": "Manufacturing",
        "keywords": ["widgets", "handmade"],
        "business_hours": "Mon-Fri 9:00-17:00",
        "established_year": "1999",
        "logo_image_url": "https://example.com/logo.png",
        "address": {
            "building": "Unit 4",
            "address_line1": "12 Market Street",
            "city": "Springfield",
            "state": "Illinois",
            "country": "USA",
            "pincode": "62701",
        },
        "seo_metadata": {
            "meta_title": "Acme Widgets | Handmade",
            "meta_description": "The finest handmade widgets.",
            "keywords": ["widgets", "acme"],
            "target_keywords": ["handmade widgets", "widgets"],
            "sitemap_url": "https://example.com/sitemap.xml",
            "robots_url": "https://example.com/robots.txt",
        },
        "social": {
            "facebook": "https://facebook.com/acme",
            "twitter": "https://twitter.com/acme",
        },
        "article_submission": {},
        "classified": {},
        "custom_fields": [],
    }
    values.update(overrides)
    return Project(id=project_id, user_id=user_id, **values)


def make_link(
    link_id: uuid.UUID = TEST_LINK_ID,
    *,
    required_fields: list[dict[str, Any]] | None = None,
) -> DirectoryLink:
    """Build a DirectoryLink without persisting it."""
    return DirectoryLink(
        id=link_id,
        name="Example Directory",
        submission_url="https://directory.example.org/submit",
        category="Business Listing",
        required_fields=required_fields or [],
    )


# =============================================================================
# In-memory repositories
# =============================================================================


@dataclass
class FakeRecords:
    """Rows served by the patched repositories."""

    users: dict[uuid.UUID, User] = field(default_factory=dict)
    projects: dict[uuid.UUID, Project] = field(default_factory=dict)
    links: dict[uuid.UUID, DirectoryLink] = field(default_factory=dict)
    submissions: list[Submission] = field(default_factory=list)

    def add(self, *rows: Any) -> None:
        for row in rows:
            if isinstance(row, User):
                self.users[row.id] = row
            elif isinstance(row, Project):
                self.projects[row.id] = row
            elif isinstance(row, DirectoryLink):
                self.links[row.id] = row


@pytest.fixture
def records() -> Iterator[FakeRecords]:
    """Patch every repository with dict-backed fakes.

    Seeds the default user (pro plan), project and link.
    """
    from app.repositories.directory_link_repository import DirectoryLinkRepository
    from app.repositories.project_repository import ProjectRepository
    from app.repositories.submission_repository import SubmissionRepository
    from app.repositories.user_repository import UserRepository

    fake = FakeRecords()
    fake.add(make_user(), make_project(), make_link())

    async def get_for_user(_db, project_id, user_id):
        project = fake.projects.get(project_id)
        if project is None or project.user_id != user_id:
            return None
        return project

    async def create_submission(_db, **kwargs):
        kwargs.setdefault("status", "success")
        submission = Submission(id=uuid.uuid4(), **kwargs)
        fake.submissions.append(submission)
        return submission

    async def count_successful(_db, user_id):
        return sum(
            1
            for s in fake.submissions
            if s.user_id == user_id and s.status == "success"
        )

    with (
        patch.object(
            UserRepository,
            "get_by_id",
            AsyncMock(side_effect=lambda _db, uid: fake.users.get(uid)),
        ),
        patch.object(
            ProjectRepository,
            "get_by_id",
            AsyncMock(side_effect=lambda _db, pid: fake.projects.get(pid)),
        ),
        patch.object(
            ProjectRepository, "get_for_user", AsyncMock(side_effect=get_for_user)
        ),
        patch.object(
            DirectoryLinkRepository,
            "get_by_id",
            AsyncMock(side_effect=lambda _db, lid: fake.links.get(lid)),
        ),
        patch.object(
            SubmissionRepository, "create", AsyncMock(side_effect=create_submission)
        ),
        patch.object(
            SubmissionRepository,
            "count_successful",
            AsyncMock(side_effect=count_successful),
        ),
    ):
        yield fake


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    records,  # noqa: ARG001 - patches repositories
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client in local-first mode (DEFAULT_USER_ID).

    Sets up:
    - get_db override yielding a mock session (repositories are patched)
    - DEFAULT_USER_ID = TEST_USER_ID with auth disabled
    - httpx.AsyncClient with ASGI transport

    Yields:
        Configured AsyncClient.
    """
    from app.core.database import get_db
    from app.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield AsyncMock(spec=AsyncSession)

    app.dependency_overrides[get_db] = override_get_db

    original_auth_enabled = settings.auth_enabled
    original_default_user = settings.default_user_id
    settings.auth_enabled = False
    settings.default_user_id = TEST_USER_ID

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    settings.auth_enabled = original_auth_enabled
    settings.default_user_id = original_default_user
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_bookmarklet_token_store() -> Iterator[None]:
    """Reset bookmarklet token store before each test.

    Yields:
        None (autouse fixture).
    """
    from app.services.bookmarklet_token_store import reset_token_store

    reset_token_store()
    yield
    reset_token_store()


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Security: Rate limiting is tested separately; disable for other tests
    to avoid flaky failures from rate limit triggers.

    Yields:
        None (autouse fixture).
    """
    from app.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled
