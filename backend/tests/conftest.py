"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile

# Must be set before the app modules read settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="harvex-logs-"))
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from http.cookies import SimpleCookie
from typing import AsyncGenerator, Optional

import pytest
from faker import Faker
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from main import app
from core.config import settings
from core.security import session_manager
from db.base import Base
from db.models.product import Product
from db.models.user import User
from db.session import get_db_session
from db.types import utcnow
from utils.rate_limit import limiter

# Initialize Faker for test data generation
fake = Faker()

TEST_PASSWORD = "CorrectHorse42!"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test; StaticPool keeps one shared connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging data and asserting on persisted state."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Every test starts with empty per-client request counters."""
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async client bound to the app with the database dependency overridden."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def unique_email() -> str:
    return f"{fake.unique.user_name()}@harvexmail.com"


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory for persisted users; defaults to a fully onboarded buyer/seller."""
    async def _make_user(**overrides) -> User:
        password = overrides.pop("password", TEST_PASSWORD)
        fields = {
            "email": unique_email(),
            "password_hash": await session_manager.hash_password(password),
            "first_name": fake.first_name(),
            "last_name": fake.last_name(),
            "company_name": fake.company(),
            "contact_type": "Buyer; Seller",
            "approved": True,
            "eula_accepted_at": utcnow(),
            "doc_uploaded": True,
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_product(db_session: AsyncSession):
    """Factory for persisted, active products."""
    async def _make_product(seller: User, **overrides) -> Product:
        fields = {
            "name": f"{fake.word().title()} {fake.color_name()}",
            "category": "Flower",
            "type": "Indica",
            "certification": "GMP",
            "seller_id": seller.id,
            "price_per_unit": 4.0,
            "grams_available": 5000,
            "thc_min": 20.0,
            "thc_max": 24.0,
            "cbd_min": 0.1,
            "cbd_max": 0.5,
            "is_active": True,
        }
        fields.update(overrides)
        product = Product(**fields)
        db_session.add(product)
        await db_session.commit()
        return product

    return _make_product


def auth_headers(user: User) -> dict:
    token = session_manager.sign_access_token({"userId": user.id, "email": user.email})
    return {"Authorization": f"Bearer {token}"}


def refresh_cookie_header(token: str) -> dict:
    return {"Cookie": f"{settings.REFRESH_COOKIE_NAME}={token}"}


def _refresh_morsel(response):
    for header in response.headers.get_list("set-cookie"):
        cookie = SimpleCookie()
        cookie.load(header)
        if settings.REFRESH_COOKIE_NAME in cookie:
            return cookie[settings.REFRESH_COOKIE_NAME]
    return None


def refresh_cookie_from(response) -> Optional[str]:
    """Refresh token set by ``response``, or None if it set none."""
    morsel = _refresh_morsel(response)
    if morsel is None or morsel["max-age"] == "0":
        return None
    return morsel.value


def refresh_cookie_cleared(response) -> bool:
    morsel = _refresh_morsel(response)
    return morsel is not None and morsel["max-age"] == "0"


@pytest.fixture
def registration_data() -> dict:
    return {
        "email": unique_email(),
        "password": TEST_PASSWORD,
        "firstName": fake.first_name(),
        "lastName": fake.last_name(),
        "companyName": fake.company(),
        "contactType": "Buyer",
        "city": fake.city(),
    }
