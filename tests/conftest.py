from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.models import Base, Order, OrderStatus, User
from app.services.tracking.hub import TrackingHub
from app.services.tracking.state_machine import OrderWorkflow

ADMIN_PIN = "2468"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tracking.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def hub():
    return TrackingHub()


@pytest.fixture
def notifications():
    """Status notifications the workflow scheduled, in order."""
    return []


@pytest.fixture
def workflow(db, hub, notifications):
    return OrderWorkflow(db, hub=hub, notifier=notifications.append)


@pytest.fixture
def uploads():
    """(key, body, content_type) of every photo sent to storage."""
    return []


@pytest.fixture
def uploader(uploads):
    async def upload(key, body, content_type):
        uploads.append((key, body, content_type))
        return f"https://cdn.example.com/{key}"
    return upload


@pytest.fixture
def make_order(db):
    async def _make(status=OrderStatus.PENDING, **fields):
        values = dict(
            full_name="Fatima Al-Sabah",
            email="fatima@example.com",
            phone="55512345",
            address="Block 3, Street 12, House 7",
            city="Salmiya",
            governorate="Hawalli",
            items=[{"name": "Rose Box", "quantity": 1}],
            total_amount=Decimal("12.500"),
            payment_method="cash",
        )
        values.update(fields)
        order = Order(order_status=status, **values)
        db.add(order)
        await db.commit()
        return order
    return _make


@pytest.fixture
async def admin(db):
    user = User(name="Sara", pin_code=ADMIN_PIN, role="admin", is_active=True)
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def tracking_app(session_factory, hub, notifications, uploader):
    from app.main import app
    from app.db import get_db
    from app.api.delivery.dependencies import (
        get_photo_uploader,
        get_session_factory,
        get_status_notifier,
        get_tracking_hub,
    )

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tracking_hub] = lambda: hub
    app.dependency_overrides[get_status_notifier] = lambda: notifications.append
    app.dependency_overrides[get_photo_uploader] = lambda: uploader
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(tracking_app):
    async with AsyncClient(transport=ASGITransport(app=tracking_app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def admin_client(client, admin):
    response = await client.post("/login/admin", data={"pin_code": ADMIN_PIN})
    assert response.status_code == 200
    return client
