"""
Shared fixtures: an in-memory SQLite database and a TestClient over the app
"""
import os
import sys

import pytest

# The app modules live at the repository root
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("GEOIP_DB_PATH", "/nonexistent/GeoLite2-City.mmdb")

from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
import main


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(main.app) as test_client:
        yield test_client
