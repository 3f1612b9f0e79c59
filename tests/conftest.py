import pytest
from fastapi.testclient import TestClient

from moodpulse.core import app
from moodpulse.repository import InMemoryMoodStore, get_repository, open_repository


@pytest.fixture
def store():
    return InMemoryMoodStore()


@pytest.fixture
def client(store):
    def override_repository():
        with open_repository(store) as repository:
            yield repository

    app.dependency_overrides[get_repository] = override_repository
    yield TestClient(app)
    app.dependency_overrides.clear()
