"""
Pytest configuration and shared fixtures for backend tests.
"""

import os
import sys
from pathlib import Path

# Configure the environment before any application module reads settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["REDIS_URL"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["REPLICATE_API_TOKEN"] = ""
os.environ.setdefault("SCHEDULER_ENABLED", "false")

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from typing import AsyncGenerator
from uuid import uuid4

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from infrastructure.database.models import Base, Quiz, QuizStatus, Template, User, UserRole
from infrastructure.database.connection import get_db
from core.cache import template_cache, word_usage_cache
from core.security import PasswordHasher, TokenService
from infrastructure.config import get_settings

# Initialize security services
password_hasher = PasswordHasher(rounds=4)
settings = get_settings()
token_service = TokenService(
    secret_key=settings.jwt_secret_key,
    algorithm=settings.jwt_algorithm,
)


# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "Testpassword123"

WORDLE_VARIABLES = {"title": "string", "answer": "string", "hint": "string"}


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Session factory bound to the test engine, for code that opens its own sessions."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def clear_caches():
    template_cache.clear()
    word_usage_cache.clear()
    yield
    template_cache.clear()
    word_usage_cache.clear()


async def make_user(
    db_session: AsyncSession,
    email: str,
    name: str = "Test User",
    role: str = UserRole.USER.value,
) -> User:
    user = User(
        id=str(uuid4()),
        email=email,
        password_hash=password_hasher.hash(TEST_PASSWORD),
        name=name,
        role=role,
        status="active",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def headers_for(user: User) -> dict:
    access_token = token_service.create_access_token(user_id=user.id)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    return await make_user(db_session, "test@example.com")


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "other@example.com", name="Other User")


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(
        db_session, "admin@example.com", name="Admin User", role=UserRole.ADMIN.value
    )


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user."""
    return headers_for(test_user)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    # Reset rate limiter state between tests to prevent cross-test 429s
    app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def template(db_session: AsyncSession, test_user: User) -> Template:
    """A WORDLE template owned by the test user."""
    template = Template(
        user_id=test_user.id,
        name="Daily Wordle",
        html="<div class='quiz'>{{title}}</div>",
        css=".quiz { color: black; }",
        quiz_type="WORDLE",
        variables=WORDLE_VARIABLES,
    )
    db_session.add(template)
    await db_session.commit()
    await db_session.refresh(template)
    return template


@pytest.fixture
async def quiz(db_session: AsyncSession, test_user: User, template: Template) -> Quiz:
    """A READY quiz with an image, created from the test template."""
    quiz = Quiz(
        user_id=test_user.id,
        template_id=template.id,
        title="Guess the word",
        quiz_type="WORDLE",
        variables={"title": "Guess the word", "answer": "PLAGE", "hint": "Sable et mer"},
        answer="PLAGE",
        language="fr",
        image_url="https://replicate.delivery/quiz.png",
        status=QuizStatus.READY.value,
    )
    db_session.add(quiz)
    await db_session.commit()
    await db_session.refresh(quiz)
    return quiz


@pytest.fixture
def test_password() -> str:
    return TEST_PASSWORD


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Create extra users: ``await user_factory("x@example.com")``."""

    async def _create(email: str, name: str = "Test User", role: str = UserRole.USER.value) -> User:
        return await make_user(db_session, email, name=name, role=role)

    return _create


@pytest.fixture
def make_headers():
    return headers_for
