import os
import tempfile

# Point the engine at a throw-away database before db.py is imported
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(tempfile.mkdtemp(), 'carelog_test.db')}"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from app import app  # noqa: E402
from db import create_db_and_tables, engine, get_session  # noqa: E402
from helpers import make_client, make_user  # noqa: E402


@pytest.fixture(scope="function")
def test_session():
    """Create a test database session."""
    create_db_and_tables()
    with Session(engine) as session:
        yield session
    # Clean up all test data after test
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def client(test_session):
    """Create a test client with dependency override."""

    def get_test_session():
        yield test_session

    app.dependency_overrides[get_session] = get_test_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def client_a(test_session):
    return make_client(test_session, "Alice Client")


@pytest.fixture
def client_b(test_session):
    return make_client(test_session, "Bob Client")


@pytest.fixture
def admin(test_session):
    return make_user(test_session, "admin@example.com", role="admin")


@pytest.fixture
def staff(test_session, client_a):
    """Staff member assigned to client A only."""
    return make_user(test_session, "staff@example.com", client_ids=[client_a.id])
