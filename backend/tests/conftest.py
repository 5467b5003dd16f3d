import pytest

from app.database import create_engine_from_url, create_session_factory, drop_models, init_models
from app.models import User
from app.services.group_store import GroupStore


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(engine)
    yield engine
    await drop_models(engine)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory):
    store = GroupStore(session_factory)
    yield store
    store.destroy()


@pytest.fixture
async def users(session_factory):
    """Users 10, 11 and 12, ready to be put into groups."""
    async with session_factory() as session:
        session.add_all([
            User(id=10, name="Ten", email="ten@example.com"),
            User(id=11, name="Eleven", email="eleven@example.com"),
            User(id=12, name="Twelve", email="twelve@example.com"),
        ])
        await session.commit()
    return [10, 11, 12]
