"""
Test configuration and fixtures for echoscore.

- Session-scoped engine (in-memory SQLite unless TEST_DATABASE_URL is set)
- Function-scoped session isolated per test
- TestClient with database dependency override
- Authenticated client fixtures for each role
"""

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from echoscore.config import settings
from echoscore.database import Base, create_db_engine, get_db
from echoscore.main import app
from echoscore.models import User, Session as UserSession
from tests.factories import create_session, create_user


# =============================================================================
# Database Fixtures
# =============================================================================


def get_test_database_url() -> str:
    """
    Get the test database URL.

    TEST_DATABASE_URL selects a real PostgreSQL database; otherwise tests
    run against a private in-memory SQLite database.
    """
    return os.environ.get("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def test_engine():
    """
    Create test database engine once per session.

    In-memory SQLite needs a single shared connection, hence StaticPool.
    """
    database_url = get_test_database_url()

    if database_url.startswith("sqlite"):
        engine = create_db_engine(database_url, poolclass=StaticPool)
    else:
        engine = create_db_engine(database_url)

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(test_engine) -> Generator[Session, None, None]:
    """
    Provide a database session isolated to one test.

    Services commit, so on PostgreSQL the session joins an outer transaction
    and turns those commits into savepoints that are rolled back afterwards.
    SQLite savepoints are unreliable through pysqlite, so there the schema
    is rebuilt after each test instead.
    """
    if test_engine.dialect.name == "sqlite":
        TestingSessionLocal = sessionmaker(bind=test_engine, autoflush=False)
        session = TestingSessionLocal()

        yield session

        session.close()
        Base.metadata.drop_all(test_engine)
        Base.metadata.create_all(test_engine)
        return

    connection = test_engine.connect()
    transaction = connection.begin()

    TestingSessionLocal = sessionmaker(
        bind=connection, autoflush=False, join_transaction_mode="create_savepoint"
    )
    session = TestingSessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# TestClient Fixtures
# =============================================================================


def _client_for(db: Session, token: str = None) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - managed by db fixture

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        if token:
            test_client.cookies.set(settings.session_cookie_name, token)
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """Anonymous TestClient with database dependency override."""
    yield from _client_for(db)


# =============================================================================
# Authentication Fixtures
# =============================================================================


@pytest.fixture
def test_user(db: Session) -> User:
    """A student."""
    return create_user(db, role=User.ROLE_STUDENT)


@pytest.fixture
def teacher_user(db: Session) -> User:
    return create_user(db, first_name="Ana", last_name="Rojas", role=User.ROLE_TEACHER)


@pytest.fixture
def admin_user(db: Session) -> User:
    return create_user(db, role=User.ROLE_ADMIN)


@pytest.fixture
def test_session(db: Session, test_user: User) -> UserSession:
    return create_session(db, test_user)


@pytest.fixture
def auth_client(db: Session, test_session: UserSession) -> Generator[TestClient, None, None]:
    """Authenticated TestClient for a student."""
    yield from _client_for(db, test_session.token)


@pytest.fixture
def teacher_client(db: Session, teacher_user: User) -> Generator[TestClient, None, None]:
    """Authenticated TestClient for a teacher."""
    yield from _client_for(db, create_session(db, teacher_user).token)


@pytest.fixture
def admin_client(db: Session, admin_user: User) -> Generator[TestClient, None, None]:
    """Authenticated TestClient for an admin."""
    yield from _client_for(db, create_session(db, admin_user).token)


# =============================================================================
# pytest markers
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m not slow')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
