"""
Shared fixtures: a throwaway SQLite database per test, one profile per tier,
and an HTTP client wired to the same database.
"""
import uuid
import pytest
import pytest_asyncio
from decimal import Decimal
from fastapi import HTTPException, Request, status
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from models import Base, Profile
from dependencies.roles import Tier
from routers.auth.schemas import CurrentUser
from routers.listings.helpers import catalog_helpers


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed so several sessions can see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tiermarket.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(session_factory):
    """Create a profile and return the caller value the engine expects."""
    async def _make_user(tier: Tier, is_banned: bool = False, email: str = None) -> CurrentUser:
        user_id = uuid.uuid4()
        async with session_factory() as session:
            session.add(Profile(
                id=user_id,
                email=email or f"{tier.value}-{user_id.hex[:8]}@example.com",
                business_name=f"{tier.value.title()} Co",
                tier=tier.value,
                is_banned=is_banned
            ))
            await session.commit()
        return CurrentUser(user_id=user_id, email=email, tier=tier, is_banned=is_banned)
    return _make_user


@pytest_asyncio.fixture
async def users(make_user):
    return {
        "admin": await make_user(Tier.ADMIN),
        "importer": await make_user(Tier.IMPORTER),
        "wholesaler": await make_user(Tier.WHOLESALER),
        "retailer": await make_user(Tier.RETAILER),
        "customer": await make_user(Tier.CUSTOMER),
        "banned": await make_user(Tier.RETAILER, is_banned=True),
    }


@pytest.fixture
def make_listing(session_factory):
    """Create a listing through the catalog, in its own session."""
    async def _make_listing(seller, price="10.00", stock=5, min_order_quantity=None, name="Olive oil 1L", category_id=None):
        async with session_factory() as session:
            return await catalog_helpers.create_listing(
                session,
                seller,
                product={"name": name, "description": "Cold pressed", "category_id": category_id},
                price=Decimal(price),
                stock_quantity=stock,
                min_order_quantity=min_order_quantity
            )
    return _make_listing


BUYER_INFO = {
    "customer_name": "Amina Benali",
    "customer_address": "12 Rue Didouche Mourad, Algiers",
    "customer_phone": "+213555000111",
}


@pytest.fixture
def buyer_info():
    return dict(BUYER_INFO)


@pytest_asyncio.fixture
async def client(session_factory, users):
    """
    API client. Callers are picked with the X-Test-User header (a key of the
    users fixture); no header means an anonymous request.
    """
    from main import app
    from config import get_db
    from routers.auth.auth import get_current_user, get_optional_user

    async def override_get_db():
        async with session_factory() as session:
            yield session

    def lookup(request: Request):
        key = request.headers.get("X-Test-User")
        user = users.get(key) if key else None
        request.state.current_user = user
        return user

    async def override_current_user(request: Request):
        user = lookup(request)
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        return user

    async def override_optional_user(request: Request):
        return lookup(request)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_current_user
    app.dependency_overrides[get_optional_user] = override_optional_user

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


