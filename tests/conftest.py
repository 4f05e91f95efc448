"""
Pytest configuration and fixtures
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  register tables with Base.metadata
from database import Base, get_db, use_immediate_transactions
from core.pool_manager import RewardPool
from core.substrate import ManualClock
from services.payout_service import WalletGateway

START = 1_700_000_000
DURATION = 600
ETHER = 10 ** 18
CENT = ETHER // 100  # 0.01 units


class FixedEntropy:
    """Entropy source that always returns the same seed"""

    def __init__(self, value: int):
        self.value = value

    def seed(self, db, state, participants, now):
        return self.value


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of a test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite with one connection per session, as in production"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'reward_pool.db'}",
        connect_args={"check_same_thread": False},
    )
    use_immediate_transactions(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def gateway():
    return WalletGateway()


@pytest.fixture
def make_pool(db, clock, gateway):
    """Build and initialize a RewardPool; keyword arguments override defaults"""
    def _make(**overrides):
        options = {
            "clock": clock,
            "gateway": gateway,
            "round_duration": DURATION,
        }
        options.update(overrides)
        pool = RewardPool(**options)
        pool.init_pool(db)
        return pool

    return _make


@pytest.fixture
def pool(make_pool):
    return make_pool()


@pytest.fixture
def client_pool(pool):
    """Pool served by the test client; override in a test class to change it"""
    return pool


@pytest.fixture
def client(session_factory, client_pool):
    """Test client with database and pool dependency overrides"""
    from main import app
    from api.dependencies import get_pool

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pool] = lambda: client_pool
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
