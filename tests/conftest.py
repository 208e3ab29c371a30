"""Pytest configuration and fixtures."""

import pytest

from app import create_app
from models import db

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "BCRYPT_LOG_ROUNDS": 4,
    "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
    "LOG_FILE": None,
}


@pytest.fixture
def app():
    app = create_app(dict(TEST_CONFIG))
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def other_client(app):
    """A second browser, for a second user."""
    return app.test_client()


@pytest.fixture
def services(app):
    """The app's data access layer, used directly inside an app context."""
    with app.app_context():
        yield app.extensions["plantkeeper"]


def register(client, email="a@x.test", password="pw123"):
    return client.post("/api/register", json={"email": email, "password": password})


def create_plant(client, **attrs):
    attrs.setdefault("name", "Fern")
    r = client.post("/api/plants", json=attrs)
    assert r.status_code == 201, r.get_data(as_text=True)
    return r.get_json()["id"]


def get_plant(client, plant_id):
    for plant in client.get("/api/plants").get_json():
        if plant["id"] == plant_id:
            return plant
    return None
