"""Shared fixtures: in-memory MongoDB, test settings and an API client"""
import mongomock
import pytest
from fastapi.testclient import TestClient

from taskflow.config import Settings
from taskflow.database import Database
from taskflow.main import create_app
from taskflow.models.common import utcnow
from taskflow.services.auth import AuthService

TEST_PASSWORD = "secret123"


@pytest.fixture
def settings():
    return Settings(
        MONGODB_URI="mongodb://localhost:27017/taskflow_test",
        ENVIRONMENT="test",
        JWT_SECRET="test-secret",
        BCRYPT_ROUNDS=4,
        RATE_LIMIT_MAX=1000,
        EMAIL_ENABLED=False,
        STATIC_DIR="does-not-exist",
    )


@pytest.fixture
def database(settings):
    db = Database(settings.MONGODB_URI, client_factory=mongomock.MongoClient)
    assert db.connect()
    yield db
    db.close()


@pytest.fixture
def app(settings, database):
    return create_app(settings, database)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_service(settings):
    return AuthService(settings)


@pytest.fixture
def make_user(database, auth_service):
    """Insert a user and return (document, Authorization headers)"""

    def _make_user(name="Alice", email="alice@example.com", is_active=True, notification_settings=None):
        now = utcnow()
        user = {
            "name": name,
            "email": email,
            "password_hash": auth_service.hash_password(TEST_PASSWORD),
            "role": "user",
            "avatar": None,
            "is_active": is_active,
            "notification_settings": notification_settings or {"email": True, "in_app": True},
            "last_login": None,
            "created_at": now,
            "updated_at": now,
        }
        user["_id"] = database.users.insert_one(user).inserted_id
        token = auth_service.create_access_token(user)
        return user, {"Authorization": f"Bearer {token}"}

    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user()


@pytest.fixture
def bob(make_user):
    return make_user(name="Bob", email="bob@example.com")

