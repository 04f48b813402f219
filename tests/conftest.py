
import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from content_variants.database import Base, get_db
from content_variants.dependencies import get_cache
from content_variants.main import app
from content_variants.models import ContentVariant
from content_variants.schemas import ContentCreate, VariantCreate
from content_variants.store.memory import InMemoryVariantStore
from content_variants.store.sql import SqlVariantStore
from content_variants.utils.cache import CacheService


SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeTimer:
    """Monotonic-style timer the cache reads; tests move it by hand."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TickingClock:
    """Wall clock for the stores, one second later on every call."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class BrokenCache:
    """Cache whose every call blows up"""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RuntimeError("cache is down")
        return fail


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def timer():
    return FakeTimer()


@pytest.fixture
def cache(timer):
    return CacheService(maxsize=1000, default_ttl=1800, timer=timer)


@pytest.fixture(params=["sql", "memory"])
def store(request, db):
    """Every store test runs against both implementations"""
    if request.param == "sql":
        return SqlVariantStore(db, clock=TickingClock())
    return InMemoryVariantStore(clock=TickingClock())


@pytest.fixture
def client(db, cache):
    """Test client with database and cache dependency overrides"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_content_data(variant_count=2, default_index=None, language="en"):
    return ContentCreate(
        title="Homepage banner",
        description="Banner shown on top of the homepage",
        language=language,
        variants=[
            VariantCreate(data=f"variant payload number {i}", is_default=(i == default_index))
            for i in range(variant_count)
        ],
    )


@pytest.fixture
def sample_content(store):
    """Content with two variants, the first one default"""
    return store.create_content(make_content_data())


def force_default_flags(store, content_id, default_ids):
    """Bypass the store API to corrupt the default flags."""
    if isinstance(store, SqlVariantStore):
        store.db.execute(
            update(ContentVariant)
            .where(ContentVariant.content_id == content_id)
            .values(is_default=ContentVariant.id.in_(default_ids))
        )
        store.db.commit()
    else:
        for row in store._variants.values():
            if row["content_id"] == content_id:
                row["is_default"] = row["id"] in default_ids
