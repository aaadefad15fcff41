"""Shared fixtures.

Every test runs in its own temporary working directory with a minimal
config file, so the database, uploads and config cache never leak
between tests.
"""

import pytest
from fastapi.testclient import TestClient

from school_cms.config import clear_config_cache
from school_cms.core.security import create_access_token
from school_cms.db import database
from school_cms.db.database import init_db
from school_cms.db.users_repository import create_user, get_user_by_username
from school_cms.web.api import create_app

ENV_OVERRIDES = (
    "SCHOOL_CMS_CONFIG",
    "SCHOOL_CMS_DB_PATH",
    "SCHOOL_CMS_UPLOADS_DIR",
    "JWT_SECRET",
    "PORT",
)

# Minimum bcrypt cost keeps the suite fast
TEST_CONFIG = """
auth:
  jwt_secret: test-secret
  bcrypt_rounds: 4
storage:
  db_path: data/test.db
  uploads_dir: data/uploads
"""


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Isolated working directory with a test config."""
    monkeypatch.chdir(tmp_path)
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "school_cms.yaml").write_text(TEST_CONFIG, encoding="utf-8")

    clear_config_cache()
    monkeypatch.setattr(database, "_db_path", None)
    yield tmp_path
    clear_config_cache()


@pytest.fixture
def db(workspace):
    """Initialized database with seed subjects and the admin account."""
    init_db()
    return database.get_db_path()


@pytest.fixture
def client(workspace):
    """Test client with the app lifespan (database init) running."""
    with TestClient(create_app()) as test_client:
        yield test_client


def auth_headers(username: str) -> dict[str, str]:
    """Bearer header for an existing user."""
    user = get_user_by_username(username)
    token = create_access_token(user.id, user.username, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for(client):
    """Build bearer headers for any existing username."""
    return auth_headers


@pytest.fixture
def admin_headers(client):
    return auth_headers("admin")


@pytest.fixture
def teacher(client):
    """Teacher assigned to subject '1'."""
    return create_user(
        username="teacher1",
        password="secret123",
        full_name="Math Teacher",
        role="teacher",
        assigned_subject_id="1",
    )


@pytest.fixture
def teacher_headers(teacher):
    return auth_headers(teacher.username)


@pytest.fixture
def student(client):
    return create_user(username="student1", password="secret123", full_name="Student One")


@pytest.fixture
def student_headers(student):
    return auth_headers(student.username)
