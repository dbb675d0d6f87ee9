import os

os.environ.setdefault("CREATE_TABLES", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from database import Base, get_db
from main import app
from security import (
    ROLE_ADMIN,
    ROLE_CITIZEN,
    ROLE_VOLUNTEER,
    create_access_token,
    hash_password,
)
from services import notifications, storage

# Use in-memory SQLite for testing to ensure isolation and speed
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "password123"


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


# Override the application's dependency to use the test database
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
def test_db():
    # Create the database schema before each test
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    # Drop the database schema after each test to ensure a clean state
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function", autouse=True)
def reset_rate_limiter():
    from rate_limiter import limiter

    limiter._storage.reset()


@pytest.fixture(scope="function", autouse=True)
def local_uploads(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(storage, "AWS_S3_BUCKET_NAME", None)
    return tmp_path / "uploads" / "complaints"


@pytest.fixture(scope="function", autouse=True)
def outbox(monkeypatch):
    """Collects every email the app tries to send."""
    sent = []

    def fake_send(email):
        sent.append(email)
        return True

    monkeypatch.setattr(notifications, "send_email", fake_send)
    return sent


@pytest.fixture(scope="function")
def client(test_db):
    # The test_db fixture is requested to ensure the database is initialized
    with TestClient(app) as c:
        yield c


def auth_header(subject_id, role):
    return {"Authorization": f"Bearer {create_access_token(subject_id, role)}"}


@pytest.fixture
def make_citizen(test_db):
    def _make(email="citizen@test.com", name="Asha Citizen", **fields):
        user = models.User(
            name=name,
            username=email,
            email=email,
            password_hash=hash_password(PASSWORD),
            **fields,
        )
        test_db.add(user)
        test_db.commit()
        test_db.refresh(user)
        return user, auth_header(user.id, ROLE_CITIZEN)

    return _make


@pytest.fixture
def make_volunteer(test_db):
    def _make(email="volunteer@test.com", status="approved", name="Vikram Volunteer"):
        volunteer = models.Volunteer(
            name=name,
            email=email,
            password_hash=hash_password(PASSWORD),
            status=status,
        )
        test_db.add(volunteer)
        test_db.commit()
        test_db.refresh(volunteer)
        return volunteer, auth_header(volunteer.id, ROLE_VOLUNTEER)

    return _make


@pytest.fixture
def citizen(make_citizen):
    return make_citizen()


@pytest.fixture
def volunteer(make_volunteer):
    return make_volunteer()


@pytest.fixture
def admin(test_db):
    account = models.Admin(
        name="Root Admin",
        email="admin@test.com",
        password_hash=hash_password(PASSWORD),
        role="super_admin",
        is_active=True,
    )
    test_db.add(account)
    test_db.commit()
    test_db.refresh(account)
    return account, auth_header(account.id, ROLE_ADMIN)


@pytest.fixture
def make_complaint(client):
    def _make(headers, title="Overflowing bin", **fields):
        data = {
            "title": title,
            "description": "The bin on the corner has not been emptied in a week.",
            "address": "12 Market Road, Pune",
            **fields,
        }
        response = client.post("/api/complaints", data=data, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["complaint"]

    return _make
