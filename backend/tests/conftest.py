from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from jobboard.database import get_db, init_db
from jobboard.main import app
from jobboard.config import settings
from jobboard.services.auth_service import auth_service
from jobboard.services.cache_service import cache_service
from jobboard.services.data_service import data_service
from jobboard.services.membership_service import membership_service
from jobboard.utils.timeutil import format_ts, utcnow


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def tmp_data(tmp_path):
    data_dir = tmp_path / "JobBoard"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def test_db(tmp_data):
    db_path = tmp_data / "db.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    init_db(db_path)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    cache_service.clear_all()
    data_service.initialize(TestSession)
    yield TestSession
    data_service.shutdown()
    cache_service.clear_all()
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def fresh_services():
    """Reset in-memory sessions, rate limits and the debounce window for each test."""
    original_debounce = settings.action_debounce_seconds
    settings.action_debounce_seconds = 0
    auth_service.clear()
    membership_service.reset()
    yield
    settings.action_debounce_seconds = original_debounce
    auth_service.clear()
    membership_service.reset()


@pytest.fixture
def client(tmp_data, test_db, fresh_services):
    original_data_dir = settings.data_dir
    settings.data_dir = tmp_data
    c = TestClient(app)
    yield c
    settings.data_dir = original_data_dir


@pytest.fixture
def admin_headers(client, test_db):
    with test_db() as db:
        auth_service.ensure_default_admin(db)
    r = client.post("/api/v1/auth/admin/login", json={
        "username": settings.admin_username,
        "password": settings.admin_password,
    })
    return {"Authorization": f"Bearer {r.json()['token']}"}


def job_payload(**overrides) -> dict:
    now = utcnow()
    payload = {
        "job_title": "Backend Engineer",
        "company": "Acme",
        "description": "Build services",
        "category_id": [1, 5],
        "post_time": format_ts(now - timedelta(hours=1)),
        "deadline": format_ts(now + timedelta(days=30)),
        "job_location": "Shanghai",
        "job_position": "Engineer",
        "job_graduation_year": ["25届"],
        "job_education_requirement": "本科",
    }
    payload.update(overrides)
    return payload
