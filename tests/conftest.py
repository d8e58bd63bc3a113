"""
Pytest configuration and shared fixtures.

Test defaults are set here before any app import so that settings are
built from them; real environment variables still take precedence.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_site_cms.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("ADMIN_USERNAME", "admin")
os.environ.setdefault("ADMIN_PASSWORD", "admin123")

import pytest
from fastapi.testclient import TestClient

# Clear settings cache before any app imports to ensure test env vars are used
from app.config import get_settings
get_settings.cache_clear()

from app.main import app
from app.storage import Base, engine


ADMIN_USERNAME = os.environ["ADMIN_USERNAME"]
ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]
SESSION_COOKIE = get_settings().SESSION_COOKIE_NAME


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database and session table for each test."""
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    # Cleanup - drop all tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def admin_client(client):
    """Client holding a valid admin session cookie."""
    response = client.post(
        "/api/auth/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client


def submit_contact(client, name="Jane Doe", email="jane@example.com", message="Hello, I need a website."):
    """Helper to create a contact message through the public endpoint."""
    response = client.post(
        "/api/contact",
        json={"name": name, "email": email, "message": message},
    )
    assert response.status_code == 200
    return response.json()
