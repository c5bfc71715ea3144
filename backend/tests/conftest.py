"""Pytest configuration and fixtures."""

import os

# Point the app at an in-memory database before any opsconsole import
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from datetime import date, datetime, timezone
from typing import Callable, Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from opsconsole.core.clock import get_clock
from opsconsole.core.config import PromotionFailurePolicy
from opsconsole.core.rbac import UserRole
from opsconsole.core.security import create_access_token
from opsconsole.db.base import Base
from opsconsole.db.session import enable_sqlite_foreign_keys, get_db
from opsconsole.main import app
# Import all models to ensure they're registered with Base.metadata
from opsconsole.models import *
from opsconsole.services.maintenance_query_service import MaintenanceQueryService
from opsconsole.services.maintenance_scheduler_service import MaintenanceSchedulerService

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

# 10:00 in Kuala Lumpur on 2024-04-01
FIXED_NOW = datetime(2024, 4, 1, 2, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enable_sqlite_foreign_keys)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Frozen clock; business date is 2024-04-01."""
    return lambda: FIXED_NOW


@pytest.fixture
def today() -> date:
    return date(2024, 4, 1)


@pytest.fixture
def engine_service(db_session: Session, clock) -> MaintenanceSchedulerService:
    return MaintenanceSchedulerService(
        db_session, clock=clock, failure_policy=PromotionFailurePolicy.ROLLBACK
    )


@pytest.fixture
def pending_engine_service(db_session: Session, clock) -> MaintenanceSchedulerService:
    return MaintenanceSchedulerService(
        db_session, clock=clock, failure_policy=PromotionFailurePolicy.PENDING_APPLY
    )


@pytest.fixture
def queries(db_session: Session, clock) -> MaintenanceQueryService:
    return MaintenanceQueryService(db_session, clock=clock)


@pytest.fixture
def make_item(db_session: Session):
    """Factory for inventory items."""
    counter = {"n": 0}

    def _make(
        quantity: int = 10,
        minimum_stock: int = 2,
        in_maintenance_quantity: int = 0,
        title: str = "Torque Wrench",
    ) -> InventoryItem:
        counter["n"] += 1
        item = InventoryItem(
            title=title,
            sku=f"EQ-{counter['n']:04d}",
            category="tools",
            quantity=quantity,
            minimum_stock=minimum_stock,
            in_maintenance_quantity=in_maintenance_quantity,
        )
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _make


@pytest.fixture
def test_item(make_item) -> InventoryItem:
    """Ten wrenches, reorder point two."""
    return make_item()


@pytest.fixture(scope="function")
def client(db_session: Session, clock) -> Generator[TestClient, None, None]:
    """Create a test client with database and clock overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    # Disable rate limiters during tests to avoid flaky failures
    from opsconsole.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()


def _token_headers(user_id: int, role: UserRole) -> dict:
    token = create_access_token(
        data={"sub": str(user_id), "email": f"{role.value}@example.com", "role": role.value}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> dict:
    """Staff member (user 7)."""
    return _token_headers(7, UserRole.STAFF)


@pytest.fixture
def manager_headers() -> dict:
    return _token_headers(2, UserRole.MANAGER)
