"""Shared fixtures: an app backed by mongomock and a few seeded products."""

import sys
from pathlib import Path

import mongomock
import pytest
from fastapi.testclient import TestClient

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from database import AppContext, PRODUCTS  # noqa: E402
from main import create_app  # noqa: E402

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"


@pytest.fixture
def settings():
    return Settings(database_name="shop_test", jwt_secret=TEST_SECRET)


@pytest.fixture
def context(settings):
    client = mongomock.MongoClient()
    return AppContext(client=client, db=client[settings.database_name], settings=settings)


@pytest.fixture
def db(context):
    return context.db


@pytest.fixture
def client(settings, context):
    app = create_app(settings=settings, context=context)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def products(db):
    """Insert two products and return their ids as strings."""
    p1 = db[PRODUCTS].insert_one({"name": "Mug", "price": 10, "description": "Ceramic", "image": "mug.jpg"})
    p2 = db[PRODUCTS].insert_one({"name": "Pen", "price": 5, "description": "Blue ink", "image": "pen.jpg"})
    return {"P1": str(p1.inserted_id), "P2": str(p2.inserted_id)}


def register(client, email="a@x.com", password="p1", name="A"):
    return client.post("/api/register", json={"name": name, "email": email, "password": password})


def login_headers(client, email="a@x.com", password="p1", name="A"):
    register(client, email=email, password=password, name=name)
    response = client.post("/api/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def auth_headers(client):
    return login_headers(client)


@pytest.fixture
def other_headers(client):
    return login_headers(client, email="b@x.com", password="p2", name="B")
