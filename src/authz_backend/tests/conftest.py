"""
Pytest configuration and fixtures for all tests.
"""

from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from authz_backend.model import Base
from authz_backend.permissions.cache import PermissionCache
from authz_backend.permissions.core import AuthorizationEvaluator
from authz_backend.tests.fixtures import WEEKDAY_NOON, MockCache


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """Create a test database session using SQLite in-memory."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mock_cache() -> MockCache:
    return MockCache()


@pytest.fixture
def cache(mock_cache) -> PermissionCache:
    return PermissionCache(backend=mock_cache, role_ttl=60, members_ttl=30, catalog_ttl=30)


@pytest.fixture
def evaluator(test_db, cache) -> AuthorizationEvaluator:
    return AuthorizationEvaluator(test_db, cache, clock=lambda: WEEKDAY_NOON)
