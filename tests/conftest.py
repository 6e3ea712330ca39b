import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.main import app
from app.database import Base, get_db
from app.api.deps import create_access_token
from app.models.user import User
from app.models.contact import Contact
from app.models.contact_segment import ContactSegment
from tests.factories import ContactFactory

# Test database URL (SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


@pytest_asyncio.fixture
async def test_engine():
    """Create test database and tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def test_user(test_db: AsyncSession):
    """Create a test user."""
    user = User(
        email="test@example.com",
        first_name="Test",
        last_name="User",
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(test_db: AsyncSession):
    """A second tenant, used for isolation checks."""
    user = User(
        email="other@example.com",
        first_name="Other",
        last_name="Tenant",
        is_active=True,
    )
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest.fixture
def make_contact(test_db: AsyncSession):
    """Insert a contact for a user; factory defaults fill unspecified fields."""

    async def _make_contact(user: User, **overrides) -> Contact:
        contact = Contact(user_id=user.id, **ContactFactory(**overrides))
        test_db.add(contact)
        await test_db.commit()
        await test_db.refresh(contact)
        return contact

    return _make_contact


@pytest.fixture
def make_segment(test_db: AsyncSession):
    """Insert a segment row directly, without triggering a refresh."""

    async def _make_segment(user: User, conditions=None, **overrides) -> ContactSegment:
        values = {
            "name": "Test Segment",
            "is_active": True,
            "is_auto_update": True,
            "contact_count": 0,
        }
        values.update(overrides)
        segment = ContactSegment(user_id=user.id, conditions=conditions, **values)
        test_db.add(segment)
        await test_db.commit()
        await test_db.refresh(segment)
        return segment

    return _make_segment


@pytest_asyncio.fixture
async def client(test_db: AsyncSession):
    """Create test client with overridden database."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def authenticated_client(client: AsyncClient, test_user: User):
    """Create authenticated test client."""
    token = create_access_token({"sub": str(test_user.id)})

    client.headers["Authorization"] = f"Bearer {token}"
    return client
