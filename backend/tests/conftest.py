# backend/tests/conftest.py

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fakeredis import aioredis as fake_aioredis

from salon_booking.database import create_engine_for, create_session_factory, init_models, run_transaction
from salon_booking.models import Users
from salon_booking.services import background
from salon_booking.services.cache import CacheLayer
from salon_booking.services.reservations import BookingCoordinator
from salon_booking.services.settings.store import save_settings_document
from salon_booking.services.slots.availability import AvailabilityService
from salon_booking.services.slots.config import EngineConfig

TOKYO = ZoneInfo("Asia/Tokyo")

# 2030-01-07 is a Monday; default template opens Monday 18:00-20:00 → one slot at 18:00
MONDAY = "2030-01-07"
NOW = datetime(2030, 1, 1, 9, 0, tzinfo=TOKYO)


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'salon.db'}", busy_timeout=5)
    await init_models(engine)
    yield engine
    await background.drain(timeout=5)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def config():
    return EngineConfig(timezone="Asia/Tokyo", birthday_bonus_points=500, points_earn_rate=0.05)


@pytest.fixture
def cache():
    return CacheLayer(memory_capacity=256, memory_ttl=30, default_ttl=300)


@pytest.fixture
async def fake_redis():
    client = fake_aioredis.FakeRedis()
    yield client
    await client.aclose()


@pytest.fixture
def availability(session_factory, cache, config):
    return AvailabilityService(session_factory, cache, config)


@pytest.fixture
def coordinator(session_factory, cache, availability, config):
    return BookingCoordinator(session_factory, cache, availability, notifier=None, config=config)


@pytest.fixture
def store_settings(session_factory, cache):
    """Write a raw settings document and drop cached settings/slots."""

    async def _store(document: dict):
        async def work(session):
            await save_settings_document(session, document)

        await run_transaction(session_factory, work)
        await cache.invalidate("*")

    return _store


@pytest.fixture
def create_user(session_factory):
    async def _create(email="hanako@example.com", points=0, birthday=None, name="Hanako"):
        async def work(session):
            user = Users(email=email, points=points, birthday=birthday, name=name)
            session.add(user)
            await session.flush()
            return user

        return await run_transaction(session_factory, work)

    return _create


def reservation_payload(**overrides) -> dict:
    payload = {
        "date": MONDAY,
        "time": "18:00",
        "customerName": "Hanako Yamada",
        "customerEmail": "hanako@example.com",
        "customerPhone": "090-1234-5678",
        "serviceName": "Eyelash extension",
        "price": 20000,
        "maintenancePrice": 2000,
        "totalPrice": 22000,
        "pointsUsed": 0,
        "finalPrice": 22000,
        "intakeForm": {"allergies": "none"},
    }
    payload.update(overrides)
    return payload
