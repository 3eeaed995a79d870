# JUAKALI/backend/tests/conftest.py : shared test configuration

import sys
import uuid
from pathlib import Path

# Adds the project root to PYTHONPATH
BASE_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BASE_DIR))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from juakali.main import app
from juakali.auth import create_access_token, hash_password
from juakali.database import Base, get_db
from juakali.models import models

# Test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "secret123"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db():
    """Fresh tables for every test, dropped afterwards"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """Test client bound to the test database"""
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Factory inserting a user straight into the database"""
    def _make(role="retailer", email=None, password=TEST_PASSWORD, **fields):
        fields.setdefault("first_name", role.capitalize())
        fields.setdefault("last_name", "Tester")
        user = models.User(
            email=email or f"{role}_{uuid.uuid4().hex[:8]}@juakali.co.ke",
            password_hash=hash_password(password),
            role=role,
            **fields
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def login_as(make_user):
    """Factory returning a user and the bearer headers of its session"""
    def _login(role="retailer", **fields):
        user = make_user(role, **fields)
        token = create_access_token({"sub": str(user.id)})
        return user, {"Authorization": f"Bearer {token}"}
    return _login
