"""Shared fixtures: in-memory database, API client, auth headers and a controllable rate limiter."""

import os

# Configure before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["GEOLOCATION_ENABLED"] = "false"
os.environ["ENABLE_BACKGROUND_TASKS"] = "false"
os.environ["RATE_LIMIT_BACKEND"] = "memory"

import pytest
from fastapi.testclient import TestClient

from portfolio import crud, models
from portfolio.core.database import Base, SessionLocal, engine, get_db
from portfolio.core.rate_limit import InMemoryRateLimitStore, RateLimiter, get_rate_limiter
from portfolio.core.security import create_access_token
from portfolio.main import app


class FakeClock:
    """Manually advanced time source for the rate limiter."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(InMemoryRateLimitStore(), clock=clock)


@pytest.fixture
def client(db, rate_limiter):
    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db):
    return crud.create_user(db, email="admin@example.com", password="admin-password",
                            name="Admin", role=models.UserRole.ADMIN)


@pytest.fixture
def regular_user(db):
    return crud.create_user(db, email="user@example.com", password="user-password", name="User")


@pytest.fixture
def admin_headers(admin_user):
    token = create_access_token({"sub": admin_user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(regular_user):
    token = create_access_token({"sub": regular_user.id})
    return {"Authorization": f"Bearer {token}"}
